# screens/term_details/workflow.py
"""
Approval Workflow Engine for a curriculum's term plan.

The lifecycle is an explicit ApprovalState with a single transition table:

    any state   --EDIT------> DRAFT_UNSAVED
    any state   --SAVED-----> DRAFT_SAVED
    DRAFT_SAVED --SUBMITTED-> SUBMITTED
    REJECTED    --SUBMITTED-> SUBMITTED
    SUBMITTED   --(program owner, observed on fetch)--> APPROVED / REJECTED

When approvals.lock_approved is on, APPROVED accepts neither EDIT nor SAVED.
Every guard is checked before the persistence service is called.
"""

from __future__ import annotations
import logging
from dataclasses import replace
from datetime import date
from typing import Dict, List, Optional, Tuple

from core.concurrency import RequestTracker, Ticket, WriteGuard
from core.errors import (
    AlreadySubmitted, IllegalTransition, NotFoundError, TransportError, WriteInProgress,
)
from core.identity import IdentityProvider
from core.notifications import Notifier
from core.settings import ApprovalsConfig
from .db import TermDetailPersistence
from .models import (
    ApprovalState, ApprovalStatus, CurriculumInfo, REQUIRED_FIELDS_LABEL,
    TermDetail, TermPlanSnapshot, TermPlanTotals, WorkflowEvent, new_term_row,
)
from .totals import compute_totals

logger = logging.getLogger(__name__)

S = ApprovalState
E = WorkflowEvent

_TRANSITIONS: Dict[Tuple[ApprovalState, WorkflowEvent], ApprovalState] = {
    **{(state, E.EDIT): S.DRAFT_UNSAVED for state in S},
    **{(state, E.SAVED): S.DRAFT_SAVED for state in S},
    (S.DRAFT_SAVED, E.SUBMITTED): S.SUBMITTED,
    (S.REJECTED, E.SUBMITTED): S.SUBMITTED,
}

_LOCKED_WHEN_APPROVED = {(S.APPROVED, E.EDIT), (S.APPROVED, E.SAVED)}

_STATUS_STATES = {
    ApprovalStatus.PENDING: S.SUBMITTED,
    ApprovalStatus.APPROVED: S.APPROVED,
    ApprovalStatus.REJECTED: S.REJECTED,
}


def transition(state: ApprovalState, event: WorkflowEvent, lock_approved: bool = False) -> ApprovalState:
    if lock_approved and (state, event) in _LOCKED_WHEN_APPROVED:
        raise IllegalTransition(f"{state.value} term plans are locked")
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise IllegalTransition(f"Cannot apply {event.value} to a {state.value} term plan") from None


def state_from_source(status: Optional[ApprovalStatus], has_saved_rows: bool) -> ApprovalState:
    """
    Local state implied by the stored approval status.
    Without persisted rows the plan is an unsaved draft, whatever the status.
    """
    if not has_saved_rows:
        return S.DRAFT_UNSAVED
    if status is not None:
        return _STATUS_STATES[status]
    return S.DRAFT_SAVED


class TermPlanWorkflow:
    """Editing session for one curriculum's term plan."""

    def __init__(
        self,
        persistence: TermDetailPersistence,
        identity: IdentityProvider,
        notifier: Notifier,
        settings: Optional[ApprovalsConfig] = None,
        guard: Optional[WriteGuard] = None,
        today: Optional[date] = None,
    ):
        self.persistence = persistence
        self.identity = identity
        self.notifier = notifier
        self.settings = settings or ApprovalsConfig()
        self.guard = guard or WriteGuard()
        self.today = today
        self.tracker = RequestTracker()

        self.curriculum_id: Optional[int] = None
        self.curriculum_info: Optional[CurriculumInfo] = None
        self.rows: List[TermDetail] = []
        self.state: ApprovalState = S.DRAFT_UNSAVED

    # ========================================================================
    # DERIVED VALUES
    # ========================================================================

    @property
    def totals(self) -> TermPlanTotals:
        return compute_totals(self.rows)

    @property
    def is_data_saved(self) -> bool:
        return self.state is not S.DRAFT_UNSAVED

    @property
    def is_locked(self) -> bool:
        return self.settings.lock_approved and self.state is S.APPROVED

    @property
    def is_busy(self) -> bool:
        return self.curriculum_id is not None and self.guard.is_busy(self.curriculum_id)

    @property
    def can_submit(self) -> bool:
        return self.curriculum_id is not None and bool(self.rows) and self.is_data_saved and not self.is_busy

    # ========================================================================
    # LOADING
    # ========================================================================

    def select_curriculum(self, curriculum_id: Optional[int]) -> None:
        self.curriculum_id = curriculum_id
        self.tracker.switch(curriculum_id)
        self.curriculum_info = None
        if curriculum_id is None:
            self.rows = []
            self.state = S.DRAFT_UNSAVED
            return
        self.load()

    def load(self) -> None:
        if self.curriculum_id is None:
            return
        ticket = self.tracker.issue()
        try:
            snapshot = self.persistence.get_by_curriculum(self.curriculum_id)
        except NotFoundError:
            snapshot = None
        except TransportError as e:
            logger.error(f"Fetching term details failed for curriculum {self.curriculum_id}: {e}", exc_info=True)
            if self.tracker.is_current(ticket):
                self.notifier.error(str(e) or "Unable to fetch term details")
                self._reset_rows()
            return
        self.apply_snapshot(ticket, snapshot)

    def apply_snapshot(self, ticket: Ticket, snapshot: Optional[TermPlanSnapshot]) -> bool:
        """Install fetched data unless the user has since picked another curriculum."""
        if not self.tracker.is_current(ticket):
            return False
        if snapshot is None:
            self._reset_rows()
            return True

        self.curriculum_info = snapshot.curriculum_info
        status = snapshot.curriculum_info.approval_status if snapshot.curriculum_info else None
        # The status stays on curriculum_info for display even when no rows are stored
        self.rows = list(snapshot.rows) or [new_term_row(1, self.today)]
        self.state = state_from_source(status, has_saved_rows=bool(snapshot.rows))
        return True

    def _reset_rows(self) -> None:
        self.curriculum_info = None
        self.rows = [new_term_row(1, self.today)]
        self.state = S.DRAFT_UNSAVED

    def refresh_status(self) -> None:
        """Re-read the approval status only; local rows are left alone."""
        if self.curriculum_id is None:
            return
        ticket = self.tracker.issue()
        try:
            snapshot = self.persistence.get_by_curriculum(self.curriculum_id)
        except (NotFoundError, TransportError) as e:
            logger.warning(f"Status refresh failed for curriculum {self.curriculum_id}: {e}")
            return
        if not self.tracker.is_current(ticket):
            return
        self.curriculum_info = snapshot.curriculum_info
        status = snapshot.curriculum_info.approval_status if snapshot.curriculum_info else None
        if status is not None:
            self.state = state_from_source(status, has_saved_rows=bool(snapshot.rows))

    # ========================================================================
    # EDITING
    # ========================================================================

    def _apply(self, event: WorkflowEvent) -> bool:
        try:
            self.state = transition(self.state, event, self.settings.lock_approved)
        except IllegalTransition as e:
            self.notifier.warning(str(e), title="Locked")
            return False
        return True

    def edit(self, index: int, field: str, value) -> bool:
        if self.is_locked:
            self.notifier.warning("Approved term plans cannot be edited", title="Locked")
            return False
        self.rows[index] = self.rows[index].with_field(field, value)
        return self._apply(E.EDIT)

    def add_row(self) -> Optional[TermDetail]:
        if self.is_locked:
            self.notifier.warning("Approved term plans cannot be edited", title="Locked")
            return None
        next_si = max((r.si_no for r in self.rows), default=0) + 1
        row = new_term_row(next_si, self.today)
        self.rows.append(row)
        self._apply(E.EDIT)
        return row

    def remove_row(self, index: int) -> bool:
        if self.is_locked or len(self.rows) <= 1:
            return False
        del self.rows[index]
        return self._apply(E.EDIT)

    # ========================================================================
    # SAVE
    # ========================================================================

    def save(self) -> bool:
        if self.curriculum_id is None:
            self.notifier.warning("Please select a curriculum batch", title="Validation Error")
            return False
        if self.is_locked:
            self.notifier.warning("Approved term plans cannot be edited", title="Locked")
            return False

        seen = set()
        dupes = sorted({r.si_no for r in self.rows if r.si_no in seen or seen.add(r.si_no)})
        if dupes:
            self.notifier.warning(
                f"SI numbers must be unique within a curriculum (duplicated: {', '.join(map(str, dupes))})",
                title="Validation Error",
            )
            return False

        valid = [r for r in self.rows if r.is_complete()]
        if not valid:
            self.notifier.warning(
                f"Please fill in at least one term with all required fields ({REQUIRED_FIELDS_LABEL})",
                title="Validation Error",
            )
            return False

        curriculum_id = self.curriculum_id
        ticket = self.tracker.issue()
        batch = [replace(r, curriculum_id=curriculum_id) for r in valid]
        try:
            with self.guard.hold(curriculum_id):
                self.persistence.save_bulk(curriculum_id, batch, created_by=self.identity.current_user_id())
        except WriteInProgress as e:
            self.notifier.warning(str(e), title="Please wait")
            return False
        except TransportError as e:
            self.notifier.error(str(e) or "Error saving term details. Please try again.")
            return False

        if not self.tracker.is_current(ticket):
            return True
        self.rows = [replace(r, saved=True) for r in batch]
        self._apply(E.SAVED)
        self.notifier.success("Term details saved successfully")
        return True

    # ========================================================================
    # SUBMIT
    # ========================================================================

    def submit(self) -> bool:
        if self.curriculum_id is None:
            self.notifier.warning("Please select a curriculum batch", title="Validation Error")
            return False
        if not self.rows:
            self.notifier.warning(
                "Please add term details first before sending for approval", title="Validation Error"
            )
            return False
        if not self.is_data_saved:
            self.notifier.warning(
                "Please save the term details first before sending for approval", title="Validation Error"
            )
            return False

        submitter = self.identity.current_user_id()
        if submitter is None:
            self.notifier.warning("Sign in before sending for approval", title="Validation Error")
            return False

        curriculum_id = self.curriculum_id
        try:
            with self.guard.hold(curriculum_id):
                self.persistence.submit_for_approval(curriculum_id, submitter, self.settings.submit_comment)
        except WriteInProgress as e:
            self.notifier.warning(str(e), title="Please wait")
            return False
        except AlreadySubmitted as e:
            self.notifier.warning(str(e), title="Already Submitted")
            self.refresh_status()
            return False
        except TransportError as e:
            self.notifier.error(str(e) or "Error sending for approval. Please try again.")
            return False

        if self.curriculum_id != curriculum_id:
            return True
        try:
            self.state = transition(self.state, E.SUBMITTED)
        except IllegalTransition as e:
            logger.warning(f"{e}; taking the state from the stored approval record")
        self.notifier.success("Term details sent for approval successfully")
        self.refresh_status()
        return True
