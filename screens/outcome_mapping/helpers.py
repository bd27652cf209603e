# screens/outcome_mapping/helpers.py
"""
Helper functions for the outcome mapping module.
Database lookups, the SQL-backed outcome provider and ordering utilities.
"""

from __future__ import annotations
import re
from typing import Optional, List, Dict, Iterable, NamedTuple, Protocol
from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.db import table_exists
from core.errors import TransportError
from .models import Outcome, OutcomeLevel, MappingContext, ContextKind


# ============================================================================
# OUTCOME PROVIDER
# ============================================================================

class OutcomeProvider(Protocol):
    def list(self, context: MappingContext, level: OutcomeLevel) -> List[Outcome]: ...


def dedupe_outcomes(outcomes: Iterable[Outcome]) -> List[Outcome]:
    """Drop repeats by id and by normalised reference code, keeping the first seen."""
    seen_ids = set()
    seen_codes = set()
    out: List[Outcome] = []
    for o in outcomes:
        code_key = (o.level, normalise_code(o.reference_code))
        if o.id in seen_ids or code_key in seen_codes:
            continue
        seen_ids.add(o.id)
        seen_codes.add(code_key)
        out.append(o)
    return out


class SqlOutcomeProvider:
    """Reads active outcome statements from curriculum_outcomes."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def list(self, context: MappingContext, level: OutcomeLevel) -> List[Outcome]:
        if level is OutcomeLevel.CO:
            if context.kind is not ContextKind.CO_PO:
                return []
            where = "course_id = :ctx AND level = 'CO'"
            params = {"ctx": context.context_id}
        else:
            where = "curriculum_id = :cur AND level = :lvl AND course_id IS NULL"
            params = {"cur": context.curriculum_id, "lvl": level.value}

        try:
            with self.engine.connect() as conn:
                if not table_exists(conn, "curriculum_outcomes"):
                    return []
                rows = conn.execute(sa_text(f"""
                    SELECT id, reference_code, statement, level, outcome_type, pso_flag
                    FROM curriculum_outcomes
                    WHERE {where} AND is_active = 1
                    ORDER BY sort_order, id
                """), params).fetchall()
        except SQLAlchemyError as e:
            raise TransportError(f"Could not load {level.value}s: {e}") from e

        return dedupe_outcomes(_row_to_outcome(r) for r in rows)


def _row_to_outcome(row) -> Outcome:
    m = row._mapping
    flags = frozenset({"pso"}) if m["pso_flag"] else frozenset()
    return Outcome(
        id=m["id"],
        reference_code=m["reference_code"],
        statement=m["statement"],
        level=OutcomeLevel(m["level"]),
        type=m["outcome_type"],
        flags=flags,
    )


class OutcomeScope(NamedTuple):
    level: OutcomeLevel
    curriculum_id: int
    course_id: Optional[int]


def outcome_scopes(conn, outcome_ids: Iterable[int]) -> Dict[int, OutcomeScope]:
    """Map outcome id -> (level, curriculum, course) for the given ids (unknown ids are absent)."""
    ids = [int(i) for i in outcome_ids]
    if not ids:
        return {}
    params = {f"id{n}": v for n, v in enumerate(ids)}
    placeholders = ", ".join(f":id{n}" for n in range(len(ids)))
    rows = conn.execute(sa_text(f"""
        SELECT id, level, curriculum_id, course_id
        FROM curriculum_outcomes WHERE id IN ({placeholders})
    """), params).fetchall()
    return {r[0]: OutcomeScope(OutcomeLevel(r[1]), r[2], r[3]) for r in rows}


# ============================================================================
# SELECTION LOOKUPS (used by the page)
# ============================================================================

def fetch_curricula(conn):
    """Active curriculum batches for the selector."""
    if not table_exists(conn, "curriculum_regulations"):
        return []
    return conn.execute(sa_text("""
        SELECT id, curriculum_batch, program_name, department_name
        FROM curriculum_regulations
        WHERE is_active = 1
        ORDER BY curriculum_batch, program_name
    """)).fetchall()


def fetch_courses(conn, curriculum_id: int):
    """Active courses of a curriculum batch."""
    if not table_exists(conn, "courses"):
        return []
    return conn.execute(sa_text("""
        SELECT id, course_code, course_title, term_si_no
        FROM courses
        WHERE curriculum_id = :cid AND is_active = 1
        ORDER BY term_si_no, course_code
    """), {"cid": curriculum_id}).fetchall()


# ============================================================================
# ORDERING & FORMATTING
# ============================================================================

_TRAILING_NUMBER = re.compile(r"(\d+)\s*$")


def normalise_code(code: str) -> str:
    return (code or "").strip().upper()


def reference_number(code: str) -> Optional[int]:
    """Numeric suffix of a reference code: "PO10" -> 10, "PEO 3" -> 3, "POX" -> None."""
    match = _TRAILING_NUMBER.search(code or "")
    return int(match.group(1)) if match else None


def order_outcomes(outcomes: Iterable[Outcome]) -> List[Outcome]:
    """
    Numeric-aware order: PO1, PO2, PO10.
    Codes without a number go last; ties keep provider order (sorted is stable).
    """
    def key(o: Outcome):
        n = reference_number(o.reference_code)
        return (n is None, n if n is not None else 0)

    return sorted(outcomes, key=key)


def truncate_text(text: str, max_length: int = 100) -> str:
    """Truncate text with ellipsis."""
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."
