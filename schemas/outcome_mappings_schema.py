# schemas/outcome_mappings_schema.py
"""
Weighted CO->PO and PO->PEO mapping edges plus their audit trail.
Strength uses the 1..3 ordinal scale (1 = weak, 2 = moderate, 3 = strong).
"""

from __future__ import annotations
from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
from core.schema_registry import register
import logging

logger = logging.getLogger(__name__)


def _exec(conn, sql: str):
    conn.execute(sa_text(sql))


def create_outcome_mappings(engine: Engine):
    with engine.begin() as conn:
        _exec(conn, """
        CREATE TABLE IF NOT EXISTS outcome_mappings(
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            context_kind TEXT NOT NULL CHECK(context_kind IN ('CO_PO','PO_PEO')),
            context_id INTEGER NOT NULL,
            source_outcome_id INTEGER NOT NULL,
            target_outcome_id INTEGER NOT NULL,
            strength INTEGER NOT NULL CHECK(strength IN (1, 2, 3)),
            justification TEXT NOT NULL DEFAULT '',
            contribution_descriptor TEXT NOT NULL DEFAULT '',
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(source_outcome_id) REFERENCES curriculum_outcomes(id) ON DELETE CASCADE,
            FOREIGN KEY(target_outcome_id) REFERENCES curriculum_outcomes(id) ON DELETE CASCADE,
            UNIQUE(context_kind, context_id, source_outcome_id, target_outcome_id)
        )
        """)
        _exec(conn, "CREATE INDEX IF NOT EXISTS ix_om_context ON outcome_mappings(context_kind, context_id)")


def create_outcome_mappings_audit(engine: Engine):
    with engine.begin() as conn:
        _exec(conn, """
        CREATE TABLE IF NOT EXISTS outcome_mappings_audit(
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            action TEXT NOT NULL CHECK(action IN ('create','update','delete')),
            context_kind TEXT NOT NULL,
            context_id INTEGER NOT NULL,
            source_outcome_id INTEGER NOT NULL,
            target_outcome_id INTEGER NOT NULL,
            before_data TEXT,
            after_data TEXT,
            actor_id INTEGER,
            occurred_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """)
        _exec(conn, "CREATE INDEX IF NOT EXISTS ix_oma_context ON outcome_mappings_audit(context_kind, context_id)")


@register
def ensure_outcome_mappings_schema(engine: Engine):
    create_outcome_mappings(engine)
    create_outcome_mappings_audit(engine)
    logger.info("✅ Installed outcome_mappings tables")
