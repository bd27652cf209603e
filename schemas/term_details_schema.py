# schemas/term_details_schema.py
"""
Term plan rows of a curriculum batch and the approval records that gate
the plan's sign-off by the program owner.
"""

from __future__ import annotations
from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
from core.schema_registry import register
import logging

logger = logging.getLogger(__name__)


def _exec(conn, sql: str):
    conn.execute(sa_text(sql))


def create_curriculum_term_details(engine: Engine):
    with engine.begin() as conn:
        _exec(conn, """
        CREATE TABLE IF NOT EXISTS curriculum_term_details(
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            curriculum_id INTEGER NOT NULL,
            si_no INTEGER NOT NULL,
            term_name TEXT NOT NULL,
            duration_weeks INTEGER NOT NULL CHECK(duration_weeks > 0),
            credits REAL NOT NULL DEFAULT 0,
            theory_course_count INTEGER NOT NULL DEFAULT 0,
            practical_other_count INTEGER NOT NULL DEFAULT 0,
            academic_start_year INTEGER NOT NULL,
            academic_end_year INTEGER NOT NULL,
            academic_year TEXT NOT NULL,
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(curriculum_id) REFERENCES curriculum_regulations(id) ON DELETE CASCADE,
            UNIQUE(curriculum_id, si_no)
        )
        """)
        _exec(conn, "CREATE INDEX IF NOT EXISTS ix_ctd_curriculum ON curriculum_term_details(curriculum_id)")


def create_term_details_approval(engine: Engine):
    with engine.begin() as conn:
        _exec(conn, """
        CREATE TABLE IF NOT EXISTS term_details_approval(
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            curriculum_id INTEGER NOT NULL,
            status TEXT NOT NULL CHECK(status IN ('Pending','Approved','Rejected')) DEFAULT 'Pending',
            submitted_by INTEGER NOT NULL,
            submitted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            approved_by INTEGER,
            approved_at TIMESTAMP,
            comments TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            FOREIGN KEY(curriculum_id) REFERENCES curriculum_regulations(id) ON DELETE CASCADE
        )
        """)
        _exec(conn, "CREATE INDEX IF NOT EXISTS ix_tda_curriculum ON term_details_approval(curriculum_id, is_active)")
        # One live approval record per curriculum
        _exec(conn, """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_tda_active
        ON term_details_approval(curriculum_id) WHERE is_active = 1
        """)


@register
def ensure_term_details_schema(engine: Engine):
    create_curriculum_term_details(engine)
    create_term_details_approval(engine)
    logger.info("✅ Installed term details tables")
