# screens/outcome_mapping/store.py
"""
Mapping Store - persistence of weighted edges between adjacent outcome levels.

One row per (context, source, target). Writes go through upsert so that a
repeated save of the same pair updates the existing row instead of adding one.
"""

from __future__ import annotations
import json
import logging
from typing import Optional, List

from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.db import parse_timestamp
from core.errors import InvalidLevelPair, TransportError, ValidationError
from core.identity import IdentityProvider
from .models import MappingContext, MappingEdge, Strength, ContextKind, are_adjacent
from .helpers import outcome_scopes

logger = logging.getLogger(__name__)

_EDGE_COLUMNS = """
    id, context_kind, context_id, source_outcome_id, target_outcome_id, strength,
    justification, contribution_descriptor, created_by, created_at, updated_at
"""


def _row_to_edge(row, context: MappingContext) -> MappingEdge:
    m = row._mapping
    return MappingEdge(
        context=context,
        id=m["id"],
        source_outcome_id=m["source_outcome_id"],
        target_outcome_id=m["target_outcome_id"],
        strength=Strength(m["strength"]),
        justification=m["justification"] or "",
        contribution_descriptor=m["contribution_descriptor"] or "",
        created_by=m["created_by"],
        created_at=parse_timestamp(m["created_at"]),
        updated_at=parse_timestamp(m["updated_at"]),
    )


class MappingStore:
    """SQL-backed mapping persistence."""

    def __init__(self, engine: Engine, identity: IdentityProvider):
        self.engine = engine
        self.identity = identity

    # ========================================================================
    # READ OPERATIONS
    # ========================================================================

    def get_all(self, context: MappingContext) -> List[MappingEdge]:
        """Every edge stored for the context."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(sa_text(f"""
                    SELECT {_EDGE_COLUMNS}
                    FROM outcome_mappings
                    WHERE context_kind = :kind AND context_id = :ctx
                    ORDER BY id
                """), {"kind": context.kind.value, "ctx": context.context_id}).fetchall()
        except SQLAlchemyError as e:
            raise TransportError(f"Could not load mappings: {e}") from e
        return [_row_to_edge(r, context) for r in rows]

    def get(self, context: MappingContext, source_id: int, target_id: int) -> Optional[MappingEdge]:
        try:
            with self.engine.connect() as conn:
                row = self._fetch(conn, context, source_id, target_id)
        except SQLAlchemyError as e:
            raise TransportError(f"Could not load mapping: {e}") from e
        return _row_to_edge(row, context) if row else None

    def _fetch(self, conn, context: MappingContext, source_id: int, target_id: int):
        return conn.execute(sa_text(f"""
            SELECT {_EDGE_COLUMNS}
            FROM outcome_mappings
            WHERE context_kind = :kind AND context_id = :ctx
              AND source_outcome_id = :src AND target_outcome_id = :tgt
        """), {
            "kind": context.kind.value,
            "ctx": context.context_id,
            "src": source_id,
            "tgt": target_id,
        }).fetchone()

    # ========================================================================
    # WRITE OPERATIONS
    # ========================================================================

    def upsert(self, edge: MappingEdge) -> MappingEdge:
        """
        Insert the edge, or update strength and text fields of the existing
        row for the same (context, source, target). Returns the stored row.
        """
        try:
            strength = Strength.parse(edge.strength)
        except ValueError:
            raise ValidationError(
                "Mapping strength must be between 1 and 3",
                {"strength": "Mapping strength must be between 1 and 3"},
            )

        context = edge.context
        actor = self.identity.current_user_id()
        try:
            with self.engine.begin() as conn:
                self._check_levels(conn, context, edge.source_outcome_id, edge.target_outcome_id)

                before = self._fetch(conn, context, edge.source_outcome_id, edge.target_outcome_id)
                conn.execute(sa_text("""
                    INSERT INTO outcome_mappings
                    (context_kind, context_id, source_outcome_id, target_outcome_id, strength,
                     justification, contribution_descriptor, created_by, created_at, updated_at)
                    VALUES (:kind, :ctx, :src, :tgt, :strength, :just, :contrib, :actor,
                            CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
                    ON CONFLICT(context_kind, context_id, source_outcome_id, target_outcome_id)
                    DO UPDATE SET
                        strength = excluded.strength,
                        justification = excluded.justification,
                        contribution_descriptor = excluded.contribution_descriptor,
                        updated_at = CURRENT_TIMESTAMP
                """), {
                    "kind": context.kind.value,
                    "ctx": context.context_id,
                    "src": edge.source_outcome_id,
                    "tgt": edge.target_outcome_id,
                    "strength": int(strength),
                    "just": (edge.justification or "").strip(),
                    "contrib": (edge.contribution_descriptor or "").strip(),
                    "actor": actor,
                })
                after = self._fetch(conn, context, edge.source_outcome_id, edge.target_outcome_id)
                stored = _row_to_edge(after, context)

                self._audit(
                    conn,
                    "update" if before else "create",
                    stored,
                    before_data=json.dumps(_row_to_edge(before, context).as_audit_dict()) if before else None,
                    after_data=json.dumps(stored.as_audit_dict()),
                    actor=actor,
                )
        except SQLAlchemyError as e:
            logger.error(f"Mapping upsert failed for {context.key}: {e}", exc_info=True)
            raise TransportError(f"Error saving mapping: {e}") from e

        logger.info(
            f"Mapping {context.kind.value}:{context.context_id} "
            f"{stored.source_outcome_id}->{stored.target_outcome_id} saved (strength={int(stored.strength)})"
        )
        return stored

    def delete(self, context: MappingContext, source_id: int, target_id: int) -> None:
        """Remove one edge. Absent edges are not an error."""
        actor = self.identity.current_user_id()
        try:
            with self.engine.begin() as conn:
                before = self._fetch(conn, context, source_id, target_id)
                if not before:
                    return
                conn.execute(sa_text("DELETE FROM outcome_mappings WHERE id = :id"), {"id": before._mapping["id"]})
                edge = _row_to_edge(before, context)
                self._audit(
                    conn, "delete", edge,
                    before_data=json.dumps(edge.as_audit_dict()),
                    after_data=None,
                    actor=actor,
                )
        except SQLAlchemyError as e:
            logger.error(f"Mapping delete failed for {context.key}: {e}", exc_info=True)
            raise TransportError(f"Error deleting mapping: {e}") from e
        logger.info(f"Mapping {context.kind.value}:{context.context_id} {source_id}->{target_id} deleted")

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _check_levels(self, conn, context: MappingContext, source_id: int, target_id: int) -> None:
        scopes = outcome_scopes(conn, [source_id, target_id])
        missing = [i for i in (source_id, target_id) if i not in scopes]
        if missing:
            raise InvalidLevelPair(f"Unknown outcome id(s): {', '.join(str(i) for i in missing)}")

        src_scope, tgt_scope = scopes[source_id], scopes[target_id]
        src, tgt = src_scope.level, tgt_scope.level
        if not are_adjacent(src, tgt):
            raise InvalidLevelPair(f"{src.value} cannot be mapped to {tgt.value}")
        kind: ContextKind = context.kind
        if (src, tgt) != (kind.source_level, kind.target_level):
            raise InvalidLevelPair(
                f"{kind.value} mappings link {kind.source_level.value} to {kind.target_level.value}, "
                f"not {src.value} to {tgt.value}"
            )

        # Both ends must belong to the course / curriculum the context covers
        if kind is ContextKind.CO_PO:
            in_scope = (
                src_scope.course_id == context.context_id
                and tgt_scope.curriculum_id == context.curriculum_id
            )
        else:
            in_scope = src_scope.curriculum_id == tgt_scope.curriculum_id == context.context_id
        if not in_scope:
            raise InvalidLevelPair(
                f"Outcomes {source_id} and {target_id} do not both belong to "
                f"{kind.value} context {context.context_id}"
            )

    def _audit(self, conn, action: str, edge: MappingEdge, before_data, after_data, actor) -> None:
        conn.execute(sa_text("""
            INSERT INTO outcome_mappings_audit
            (action, context_kind, context_id, source_outcome_id, target_outcome_id,
             before_data, after_data, actor_id, occurred_at)
            VALUES (:action, :kind, :ctx, :src, :tgt, :before, :after, :actor, CURRENT_TIMESTAMP)
        """), {
            "action": action,
            "kind": edge.context.kind.value,
            "ctx": edge.context.context_id,
            "src": edge.source_outcome_id,
            "tgt": edge.target_outcome_id,
            "before": before_data,
            "after": after_data,
            "actor": actor,
        })

    def audit_trail(self, context: MappingContext) -> List[dict]:
        """Audit events for a context, newest first."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(sa_text("""
                    SELECT action, source_outcome_id, target_outcome_id, before_data,
                           after_data, actor_id, occurred_at
                    FROM outcome_mappings_audit
                    WHERE context_kind = :kind AND context_id = :ctx
                    ORDER BY id DESC
                """), {"kind": context.kind.value, "ctx": context.context_id}).fetchall()
        except SQLAlchemyError as e:
            raise TransportError(f"Could not load mapping history: {e}") from e
        return [dict(r._mapping) for r in rows]
