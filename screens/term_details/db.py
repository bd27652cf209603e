# screens/term_details/db.py
"""
Term detail persistence: rows, curriculum info and approval records.

save_bulk replaces every row of a curriculum inside one transaction, so a
failure part-way leaves the stored plan exactly as it was.
"""

from __future__ import annotations
import logging
from typing import List, Optional, Protocol

from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.db import parse_timestamp
from core.errors import AlreadySubmitted, ConflictError, NotFoundError, TransportError
from .models import (
    ApprovalRecord, ApprovalStatus, CurriculumInfo, ProgramOwner,
    TermDetail, TermPlanSnapshot, academic_year_label,
)

logger = logging.getLogger(__name__)


class TermDetailPersistence(Protocol):
    def get_by_curriculum(self, curriculum_id: int) -> TermPlanSnapshot: ...

    def save_bulk(self, curriculum_id: int, rows: List[TermDetail], created_by: Optional[int] = None) -> None: ...

    def submit_for_approval(self, curriculum_id: int, submitter_id: Optional[int], comments: str = "") -> None: ...


class SqlTermDetailService:
    def __init__(self, engine: Engine):
        self.engine = engine

    # ========================================================================
    # READ OPERATIONS
    # ========================================================================

    def get_by_curriculum(self, curriculum_id: int) -> TermPlanSnapshot:
        try:
            with self.engine.connect() as conn:
                info = self._curriculum_info(conn, curriculum_id)
                rows = conn.execute(sa_text("""
                    SELECT curriculum_id, si_no, term_name, duration_weeks, credits,
                           theory_course_count, practical_other_count,
                           academic_start_year, academic_end_year, academic_year
                    FROM curriculum_term_details
                    WHERE curriculum_id = :cid
                    ORDER BY si_no
                """), {"cid": curriculum_id}).fetchall()
        except SQLAlchemyError as e:
            raise TransportError(f"Error fetching term details: {e}") from e

        terms = [TermDetail(**dict(r._mapping), saved=True) for r in rows]
        return TermPlanSnapshot(rows=terms, curriculum_info=info)

    def _curriculum_info(self, conn, curriculum_id: int) -> CurriculumInfo:
        row = conn.execute(sa_text("""
            SELECT cr.id, cr.curriculum_batch, cr.program_name, cr.department_name,
                   u.id AS owner_id, u.first_name, u.last_name, u.email,
                   ta.status, ta.submitted_at, ta.approved_at
            FROM curriculum_regulations cr
            LEFT JOIN users u ON cr.program_owner_id = u.id
            LEFT JOIN term_details_approval ta
                   ON ta.curriculum_id = cr.id AND ta.is_active = 1
            WHERE cr.id = :cid
        """), {"cid": curriculum_id}).fetchone()
        if not row:
            raise NotFoundError(f"Curriculum {curriculum_id} not found")

        m = row._mapping
        owner = None
        if m["first_name"] and m["last_name"]:
            owner = ProgramOwner(
                name=f"{m['first_name']} {m['last_name']}",
                email=m["email"] or "",
                user_id=m["owner_id"],
            )
        return CurriculumInfo(
            curriculum_id=m["id"],
            curriculum_batch=m["curriculum_batch"],
            program_name=m["program_name"],
            department_name=m["department_name"],
            program_owner=owner,
            approval_status=ApprovalStatus(m["status"]) if m["status"] else None,
            submitted_at=parse_timestamp(m["submitted_at"]),
            approved_at=parse_timestamp(m["approved_at"]),
        )

    def approval_history(self, curriculum_id: int) -> List[ApprovalRecord]:
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(sa_text("""
                    SELECT id, curriculum_id, status, submitted_by, submitted_at,
                           approved_by, approved_at, comments, is_active
                    FROM term_details_approval
                    WHERE curriculum_id = :cid
                    ORDER BY submitted_at DESC, id DESC
                """), {"cid": curriculum_id}).fetchall()
        except SQLAlchemyError as e:
            raise TransportError(f"Error fetching approval history: {e}") from e

        return [
            ApprovalRecord(
                id=r.id,
                curriculum_id=r.curriculum_id,
                status=ApprovalStatus(r.status),
                submitted_by=r.submitted_by,
                submitted_at=parse_timestamp(r.submitted_at),
                approved_by=r.approved_by,
                approved_at=parse_timestamp(r.approved_at),
                comments=r.comments,
                is_active=bool(r.is_active),
            )
            for r in rows
        ]

    # ========================================================================
    # WRITE OPERATIONS
    # ========================================================================

    def save_bulk(self, curriculum_id: int, rows: List[TermDetail], created_by: Optional[int] = None) -> None:
        """Replace the curriculum's rows with `rows`, all or nothing."""
        try:
            with self.engine.begin() as conn:
                conn.execute(sa_text("""
                    DELETE FROM curriculum_term_details WHERE curriculum_id = :cid
                """), {"cid": curriculum_id})

                for term in rows:
                    conn.execute(sa_text("""
                        INSERT INTO curriculum_term_details
                        (curriculum_id, si_no, term_name, duration_weeks, credits,
                         theory_course_count, practical_other_count, academic_start_year,
                         academic_end_year, academic_year, created_by)
                        VALUES (:cid, :si_no, :term_name, :duration_weeks, :credits,
                                :theory, :practical, :start, :end, :ay, :by)
                    """), {
                        "cid": curriculum_id,
                        "si_no": term.si_no,
                        "term_name": term.term_name.strip(),
                        "duration_weeks": term.duration_weeks,
                        "credits": term.credits,
                        "theory": term.theory_course_count,
                        "practical": term.practical_other_count,
                        "start": term.academic_start_year,
                        "end": term.academic_end_year,
                        "ay": academic_year_label(term.academic_start_year, term.academic_end_year),
                        "by": created_by,
                    })
        except SQLAlchemyError as e:
            logger.error(f"Bulk save of term details failed for curriculum {curriculum_id}: {e}", exc_info=True)
            raise TransportError(f"Error saving term details: {e}") from e
        logger.info(f"Saved {len(rows)} term detail row(s) for curriculum {curriculum_id}")

    def submit_for_approval(self, curriculum_id: int, submitter_id: Optional[int], comments: str = "") -> None:
        """
        Open a Pending approval record.
        A live Pending or Approved record means the plan was already submitted;
        a Rejected one is retired so the plan can go round again.
        """
        try:
            with self.engine.begin() as conn:
                existing = conn.execute(sa_text("""
                    SELECT id, status, submitted_at
                    FROM term_details_approval
                    WHERE curriculum_id = :cid AND is_active = 1
                    ORDER BY submitted_at DESC
                    LIMIT 1
                """), {"cid": curriculum_id}).fetchone()

                if existing and existing.status != ApprovalStatus.REJECTED.value:
                    submitted_at = parse_timestamp(existing.submitted_at)
                    when = submitted_at.strftime("%Y-%m-%d") if submitted_at else "an earlier date"
                    raise AlreadySubmitted(
                        f"Term details have already been submitted for approval on {when}",
                        status=existing.status,
                        submitted_at=submitted_at,
                    )
                if existing:
                    conn.execute(sa_text("""
                        UPDATE term_details_approval SET is_active = 0 WHERE id = :id
                    """), {"id": existing.id})

                conn.execute(sa_text("""
                    INSERT INTO term_details_approval (curriculum_id, status, submitted_by, comments)
                    VALUES (:cid, 'Pending', :by, :comments)
                """), {
                    "cid": curriculum_id,
                    "by": submitter_id,
                    "comments": comments or "Term details submitted for approval",
                })
        except SQLAlchemyError as e:
            logger.error(f"Submit for approval failed for curriculum {curriculum_id}: {e}", exc_info=True)
            raise TransportError(f"Error submitting for approval: {e}") from e
        logger.info(f"Curriculum {curriculum_id} term plan submitted by user {submitter_id}")

    def record_decision(self, curriculum_id: int, approver_id: int, approved: bool, comments: str = "") -> None:
        """Program owner's verdict on the pending submission."""
        status = ApprovalStatus.APPROVED if approved else ApprovalStatus.REJECTED
        try:
            with self.engine.begin() as conn:
                result = conn.execute(sa_text("""
                    UPDATE term_details_approval
                    SET status = :status, approved_by = :by, approved_at = CURRENT_TIMESTAMP,
                        comments = :comments
                    WHERE curriculum_id = :cid AND is_active = 1 AND status = 'Pending'
                """), {"status": status.value, "by": approver_id, "comments": comments, "cid": curriculum_id})
                if result.rowcount == 0:
                    raise ConflictError(f"No pending approval for curriculum {curriculum_id}")
        except SQLAlchemyError as e:
            raise TransportError(f"Error recording approval decision: {e}") from e
        logger.info(f"Curriculum {curriculum_id} term plan {status.value.lower()} by user {approver_id}")
