"""
Shared fixtures: a throwaway SQLite database with the schema installed,
seed helpers for curricula / courses / outcomes, and in-memory doubles for
the term detail persistence service.
"""

from datetime import date
from types import SimpleNamespace

import pytest
from sqlalchemy import text as sa_text

from core.db import get_engine, init_db
from core.errors import AlreadySubmitted, NotFoundError, TransportError
from core.identity import StaticIdentityProvider
from core.notifications import Notifier
from screens.outcome_mapping.models import MappingContext
from screens.term_details.models import (
    ApprovalStatus, CurriculumInfo, TermDetail, TermPlanSnapshot,
)


# --------------------------------------------------------------------------- #
# Database                                                                    #
# --------------------------------------------------------------------------- #
@pytest.fixture
def engine(tmp_path):
    eng = get_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


def _insert(conn, sql, params):
    return conn.execute(sa_text(sql), params).lastrowid


def add_outcome(conn, curriculum_id, level, code, statement=None, course_id=None, sort_order=100):
    return _insert(conn, """
        INSERT INTO curriculum_outcomes
        (curriculum_id, course_id, level, reference_code, statement, sort_order)
        VALUES (:cid, :course, :level, :code, :stmt, :sort)
    """, {
        "cid": curriculum_id,
        "course": course_id,
        "level": level,
        "code": code,
        "stmt": statement or f"{code} statement",
        "sort": sort_order,
    })


@pytest.fixture
def seeded(engine):
    """
    One curriculum (owner user 2) with one course, CO1-CO2, PO1/PO2/PO10
    (inserted out of order) and PEO1-PEO2.
    """
    with engine.begin() as conn:
        submitter = _insert(conn, "INSERT INTO users(first_name, last_name, email) VALUES ('Sam', 'Editor', 'sam@example.com')", {})
        owner = _insert(conn, "INSERT INTO users(first_name, last_name, email) VALUES ('Olu', 'Owner', 'olu@example.com')", {})
        cid = _insert(conn, """
            INSERT INTO curriculum_regulations(curriculum_batch, program_name, department_name, program_owner_id)
            VALUES ('2024-2028', 'B.Tech CSE', 'Computer Science', :owner)
        """, {"owner": owner})
        course = _insert(conn, """
            INSERT INTO courses(curriculum_id, course_code, course_title, term_si_no)
            VALUES (:cid, 'CS101', 'Programming Fundamentals', 1)
        """, {"cid": cid})

        ids = {
            "CO1": add_outcome(conn, cid, "CO", "CO1", course_id=course),
            "CO2": add_outcome(conn, cid, "CO", "CO2", course_id=course),
            "PO10": add_outcome(conn, cid, "PO", "PO10"),
            "PO2": add_outcome(conn, cid, "PO", "PO2"),
            "PO1": add_outcome(conn, cid, "PO", "PO1"),
            "PEO1": add_outcome(conn, cid, "PEO", "PEO1"),
            "PEO2": add_outcome(conn, cid, "PEO", "PEO2"),
        }

    return SimpleNamespace(
        curriculum_id=cid,
        course_id=course,
        submitter_id=submitter,
        owner_id=owner,
        ids=ids,
        co_po=MappingContext.for_course(course, cid),
        po_peo=MappingContext.for_curriculum(cid),
    )


@pytest.fixture
def identity():
    return StaticIdentityProvider(1)


@pytest.fixture
def notifier():
    return Notifier()


# --------------------------------------------------------------------------- #
# Term detail doubles                                                         #
# --------------------------------------------------------------------------- #
TODAY = date(2024, 7, 1)


def complete_row(si_no, term_name=None, credits=20, theory=5, practical=3, **overrides):
    values = dict(
        si_no=si_no,
        term_name=term_name or f"Semester {si_no}",
        duration_weeks=16,
        credits=credits,
        theory_course_count=theory,
        practical_other_count=practical,
        academic_start_year=2024,
        academic_end_year=2025,
    )
    values.update(overrides)
    return TermDetail(**values)


class FakeTermPersistence:
    """
    In-memory persistence with failure injection.
    Records every call so tests can assert what reached the service.
    """

    def __init__(self, rows=None, status=None):
        self.rows = list(rows or [])
        self.status = status
        self.calls = []
        self.fail_save = False
        self.fail_fetch = False
        self.missing = False

    def get_by_curriculum(self, curriculum_id):
        self.calls.append(("get", curriculum_id))
        if self.missing:
            raise NotFoundError(f"Curriculum {curriculum_id} not found")
        if self.fail_fetch:
            raise TransportError("Error fetching term details")
        info = CurriculumInfo(curriculum_id=curriculum_id, curriculum_batch="2024-2028", approval_status=self.status)
        return TermPlanSnapshot(rows=[TermDetail(**{**r.__dict__, "saved": True}) for r in self.rows], curriculum_info=info)

    def save_bulk(self, curriculum_id, rows, created_by=None):
        self.calls.append(("save", curriculum_id, len(rows)))
        if self.fail_save:
            raise TransportError("Error saving term details: connection reset")
        self.rows = list(rows)

    def submit_for_approval(self, curriculum_id, submitter_id, comments=""):
        self.calls.append(("submit", curriculum_id, submitter_id))
        if self.status in (ApprovalStatus.PENDING, ApprovalStatus.APPROVED):
            raise AlreadySubmitted(
                "Term details have already been submitted for approval on 2024-07-01",
                status=self.status.value,
            )
        self.status = ApprovalStatus.PENDING

    def count(self, kind):
        return sum(1 for c in self.calls if c[0] == kind)


@pytest.fixture
def persistence():
    return FakeTermPersistence()
