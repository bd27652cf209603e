# screens/term_details/models.py
"""
Data models for curriculum term plans and their approval lifecycle.
"""

from __future__ import annotations
from typing import Optional, List, Any
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum


# ============================================================================
# ENUMS
# ============================================================================

class ApprovalState(str, Enum):
    """Lifecycle of a curriculum's term plan as seen by the editing user."""
    DRAFT_UNSAVED = "draft_unsaved"
    DRAFT_SAVED = "draft_saved"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalStatus(str, Enum):
    """Status values stored in term_details_approval."""
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class WorkflowEvent(str, Enum):
    EDIT = "edit"
    SAVED = "saved"
    SUBMITTED = "submitted"


NUMERIC_FIELDS = (
    "duration_weeks",
    "credits",
    "theory_course_count",
    "practical_other_count",
    "academic_start_year",
    "academic_end_year",
)

EDITABLE_FIELDS = ("term_name",) + NUMERIC_FIELDS

REQUIRED_FIELDS_LABEL = (
    "Term Name, Duration, Credits, Theory Courses, Practical/Others, Academic Years"
)

TERM_NAME_OPTIONS = [f"Semester {i}" for i in range(1, 9)] + [f"Trimester {i}" for i in range(1, 13)]


# ============================================================================
# DATA CLASSES
# ============================================================================

def academic_year_label(start: Any, end: Any) -> str:
    return f"{start}-{end}"


@dataclass
class TermDetail:
    """One term of a curriculum batch's plan."""
    si_no: int
    term_name: str = ""
    duration_weeks: int = 0
    credits: float = 0
    theory_course_count: int = 0
    practical_other_count: int = 0
    academic_start_year: int = 0
    academic_end_year: int = 0
    academic_year: str = ""
    curriculum_id: Optional[int] = None
    saved: bool = False

    def __post_init__(self):
        if not self.academic_year:
            self.academic_year = academic_year_label(self.academic_start_year, self.academic_end_year)

    def with_field(self, name: str, value: Any) -> "TermDetail":
        """Copy with one field changed; the copy is unsaved and its academic year re-derived."""
        if name not in EDITABLE_FIELDS:
            raise KeyError(f"{name} is not an editable term field")
        updated = replace(self, **{name: value}, saved=False)
        updated.academic_year = academic_year_label(updated.academic_start_year, updated.academic_end_year)
        return updated

    def is_complete(self) -> bool:
        """Term name present and every numeric field > 0."""
        if not (self.term_name or "").strip():
            return False
        for name in NUMERIC_FIELDS:
            try:
                if float(getattr(self, name) or 0) <= 0:
                    return False
            except (TypeError, ValueError):
                return False
        return True


def new_term_row(si_no: int = 1, today: Optional[date] = None) -> TermDetail:
    """Blank draft row defaulting to the current academic year."""
    year = (today or date.today()).year
    return TermDetail(si_no=si_no, academic_start_year=year, academic_end_year=year + 1)


@dataclass(frozen=True)
class ProgramOwner:
    name: str
    email: str = ""
    user_id: Optional[int] = None


@dataclass
class CurriculumInfo:
    curriculum_id: int
    curriculum_batch: str = ""
    program_name: str = ""
    department_name: str = ""
    program_owner: Optional[ProgramOwner] = None
    approval_status: Optional[ApprovalStatus] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None


@dataclass
class TermPlanSnapshot:
    """What the persistence service returns for a curriculum."""
    rows: List[TermDetail]
    curriculum_info: CurriculumInfo


@dataclass
class ApprovalRecord:
    id: int
    curriculum_id: int
    status: ApprovalStatus
    submitted_by: int
    submitted_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    comments: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class TermPlanTotals:
    credits: float = 0
    theory_course_count: int = 0
    practical_other_count: int = 0


# ============================================================================
# CONSTANTS
# ============================================================================

STATE_LABELS = {
    ApprovalState.DRAFT_UNSAVED: "Draft (unsaved changes)",
    ApprovalState.DRAFT_SAVED: "Draft (saved)",
    ApprovalState.SUBMITTED: "Submitted for approval",
    ApprovalState.APPROVED: "Approved",
    ApprovalState.REJECTED: "Rejected",
}
