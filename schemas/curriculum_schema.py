# schemas/curriculum_schema.py
"""
Curriculum batches, courses and the outcome statements (CO / PO / PEO)
that the mapping screens read.

These records are owned by the curriculum setup screens; the mapping core
only reads them.
"""

from __future__ import annotations
from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
from core.schema_registry import register
import logging

logger = logging.getLogger(__name__)


def _exec(conn, sql: str):
    conn.execute(sa_text(sql))


def create_users(engine: Engine):
    with engine.begin() as conn:
        _exec(conn, """
        CREATE TABLE IF NOT EXISTS users(
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            first_name TEXT NOT NULL,
            last_name TEXT,
            email TEXT UNIQUE
        )
        """)


def create_curriculum_regulations(engine: Engine):
    """One row per curriculum batch of a program."""
    with engine.begin() as conn:
        _exec(conn, """
        CREATE TABLE IF NOT EXISTS curriculum_regulations(
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            curriculum_batch TEXT NOT NULL,
            program_name TEXT NOT NULL,
            department_name TEXT NOT NULL,
            program_owner_id INTEGER,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(program_owner_id) REFERENCES users(id) ON DELETE SET NULL
        )
        """)
        _exec(conn, "CREATE INDEX IF NOT EXISTS ix_cr_active ON curriculum_regulations(is_active)")


def create_courses(engine: Engine):
    with engine.begin() as conn:
        _exec(conn, """
        CREATE TABLE IF NOT EXISTS courses(
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            curriculum_id INTEGER NOT NULL,
            course_code TEXT NOT NULL,
            course_title TEXT NOT NULL,
            term_si_no INTEGER,
            is_active INTEGER NOT NULL DEFAULT 1,
            FOREIGN KEY(curriculum_id) REFERENCES curriculum_regulations(id) ON DELETE CASCADE,
            UNIQUE(curriculum_id, course_code)
        )
        """)
        _exec(conn, "CREATE INDEX IF NOT EXISTS ix_courses_curriculum ON courses(curriculum_id)")


def create_curriculum_outcomes(engine: Engine):
    """
    Outcome statements at all three levels.
    COs carry a course_id; POs and PEOs belong to the curriculum batch.
    """
    with engine.begin() as conn:
        _exec(conn, """
        CREATE TABLE IF NOT EXISTS curriculum_outcomes(
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            curriculum_id INTEGER NOT NULL,
            course_id INTEGER,
            level TEXT NOT NULL CHECK(level IN ('CO','PO','PEO')),
            reference_code TEXT NOT NULL,
            statement TEXT NOT NULL,
            outcome_type TEXT,
            pso_flag INTEGER NOT NULL DEFAULT 0,
            sort_order INTEGER NOT NULL DEFAULT 100,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(curriculum_id) REFERENCES curriculum_regulations(id) ON DELETE CASCADE,
            FOREIGN KEY(course_id) REFERENCES courses(id) ON DELETE CASCADE,
            CHECK((level = 'CO') = (course_id IS NOT NULL))
        )
        """)
        _exec(conn, "CREATE INDEX IF NOT EXISTS ix_co_curriculum_level ON curriculum_outcomes(curriculum_id, level)")
        _exec(conn, "CREATE INDEX IF NOT EXISTS ix_co_course ON curriculum_outcomes(course_id)")
        _exec(conn, """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_co_ref
        ON curriculum_outcomes(curriculum_id, COALESCE(course_id, 0), level, lower(reference_code))
        """)


@register
def ensure_curriculum_schema(engine: Engine):
    create_users(engine)
    create_curriculum_regulations(engine)
    create_courses(engine)
    create_curriculum_outcomes(engine)
    logger.info("✅ Installed curriculum tables")
