import pytest

from conftest import FakeTermPersistence, TODAY, complete_row
from core.concurrency import WriteGuard
from core.errors import IllegalTransition
from core.identity import StaticIdentityProvider
from core.notifications import NoticeKind
from core.settings import ApprovalsConfig
from screens.term_details.models import ApprovalState, ApprovalStatus, WorkflowEvent
from screens.term_details.workflow import TermPlanWorkflow, state_from_source, transition

S = ApprovalState
E = WorkflowEvent


def _workflow(persistence, notifier, user_id=7, lock_approved=False, guard=None):
    wf = TermPlanWorkflow(
        persistence=persistence,
        identity=StaticIdentityProvider(user_id),
        notifier=notifier,
        settings=ApprovalsConfig(lock_approved=lock_approved),
        guard=guard,
        today=TODAY,
    )
    return wf


# --------------------------------------------------------------------------- #
# Transition table                                                            #
# --------------------------------------------------------------------------- #
@pytest.mark.parametrize("state", list(S))
def test_edit_always_returns_to_unsaved_draft(state):
    assert transition(state, E.EDIT) is S.DRAFT_UNSAVED


@pytest.mark.parametrize("state", list(S))
def test_successful_save_always_gives_saved_draft(state):
    assert transition(state, E.SAVED) is S.DRAFT_SAVED


@pytest.mark.parametrize("state,ok", [
    (S.DRAFT_SAVED, True),
    (S.REJECTED, True),
    (S.DRAFT_UNSAVED, False),
    (S.SUBMITTED, False),
    (S.APPROVED, False),
])
def test_submit_transitions(state, ok):
    if ok:
        assert transition(state, E.SUBMITTED) is S.SUBMITTED
    else:
        with pytest.raises(IllegalTransition):
            transition(state, E.SUBMITTED)


@pytest.mark.parametrize("event", [E.EDIT, E.SAVED])
def test_locked_approved_plans_refuse_changes(event):
    with pytest.raises(IllegalTransition):
        transition(S.APPROVED, event, lock_approved=True)


def test_state_from_source():
    assert state_from_source(ApprovalStatus.PENDING, True) is S.SUBMITTED
    assert state_from_source(ApprovalStatus.APPROVED, True) is S.APPROVED
    assert state_from_source(ApprovalStatus.REJECTED, True) is S.REJECTED
    assert state_from_source(None, True) is S.DRAFT_SAVED
    assert state_from_source(None, False) is S.DRAFT_UNSAVED
    assert state_from_source(ApprovalStatus.PENDING, False) is S.DRAFT_UNSAVED
    assert state_from_source(ApprovalStatus.REJECTED, False) is S.DRAFT_UNSAVED


# --------------------------------------------------------------------------- #
# Loading                                                                     #
# --------------------------------------------------------------------------- #
def test_empty_curriculum_starts_with_one_blank_row(persistence, notifier):
    wf = _workflow(persistence, notifier)
    wf.select_curriculum(1)
    assert len(wf.rows) == 1
    assert wf.rows[0].academic_year == "2024-2025"
    assert wf.state is S.DRAFT_UNSAVED
    assert not wf.is_data_saved


def test_loaded_rows_are_saved(notifier):
    wf = _workflow(FakeTermPersistence(rows=[complete_row(1), complete_row(2)]), notifier)
    wf.select_curriculum(1)
    assert [r.si_no for r in wf.rows] == [1, 2]
    assert all(r.saved for r in wf.rows)
    assert wf.state is S.DRAFT_SAVED


def test_missing_curriculum_loads_blank_plan(persistence, notifier):
    persistence.missing = True
    wf = _workflow(persistence, notifier)
    wf.select_curriculum(99)
    assert len(wf.rows) == 1
    assert wf.state is S.DRAFT_UNSAVED


def test_fetch_failure_notifies(persistence, notifier):
    persistence.fail_fetch = True
    wf = _workflow(persistence, notifier)
    wf.select_curriculum(1)
    assert notifier.last.kind is NoticeKind.ERROR


def test_stale_snapshot_is_discarded(notifier):
    first = FakeTermPersistence(rows=[complete_row(1, term_name="Semester 1")])
    wf = _workflow(first, notifier)
    wf.select_curriculum(1)
    ticket = wf.tracker.issue()
    late = first.get_by_curriculum(1)

    wf.select_curriculum(2)
    assert wf.apply_snapshot(ticket, late) is False
    assert wf.curriculum_id == 2


# --------------------------------------------------------------------------- #
# Editing                                                                     #
# --------------------------------------------------------------------------- #
def test_edit_marks_plan_unsaved_and_updates_totals(notifier):
    wf = _workflow(FakeTermPersistence(rows=[complete_row(1, credits=4, theory=2, practical=1)]), notifier)
    wf.select_curriculum(1)
    wf.add_row()
    wf.edit(1, "credits", 3)
    wf.edit(1, "theory_course_count", 1)
    wf.edit(1, "practical_other_count", 2)

    assert wf.state is S.DRAFT_UNSAVED
    totals = wf.totals
    assert (totals.credits, totals.theory_course_count, totals.practical_other_count) == (7, 3, 3)


def test_add_row_uses_next_si_number(notifier):
    wf = _workflow(FakeTermPersistence(rows=[complete_row(1), complete_row(4)]), notifier)
    wf.select_curriculum(1)
    row = wf.add_row()
    assert row.si_no == 5
    assert wf.state is S.DRAFT_UNSAVED


def test_last_row_cannot_be_removed(persistence, notifier):
    wf = _workflow(persistence, notifier)
    wf.select_curriculum(1)
    assert wf.remove_row(0) is False
    assert len(wf.rows) == 1


def test_locked_approved_plan_is_read_only(notifier):
    persistence = FakeTermPersistence(rows=[complete_row(1)], status=ApprovalStatus.APPROVED)
    wf = _workflow(persistence, notifier, lock_approved=True)
    wf.select_curriculum(1)

    assert wf.edit(0, "credits", 99) is False
    assert wf.rows[0].credits == 20
    assert wf.save() is False
    assert persistence.count("save") == 0
    assert wf.state is S.APPROVED


def test_approved_plan_can_be_edited_when_not_locked(notifier):
    persistence = FakeTermPersistence(rows=[complete_row(1)], status=ApprovalStatus.APPROVED)
    wf = _workflow(persistence, notifier)
    wf.select_curriculum(1)
    assert wf.edit(0, "credits", 22) is True
    assert wf.state is S.DRAFT_UNSAVED


# --------------------------------------------------------------------------- #
# Saving                                                                      #
# --------------------------------------------------------------------------- #
def test_save_sends_only_complete_rows(persistence, notifier):
    wf = _workflow(persistence, notifier)
    wf.select_curriculum(1)
    wf.rows = [complete_row(1), complete_row(2, credits=0)]
    wf.state = S.DRAFT_UNSAVED

    assert wf.save() is True
    assert persistence.calls[-1] == ("save", 1, 1)
    assert [r.si_no for r in wf.rows] == [1]
    assert all(r.saved for r in wf.rows)
    assert wf.state is S.DRAFT_SAVED
    assert notifier.last.message == "Term details saved successfully"


def test_save_with_no_complete_row_is_refused(persistence, notifier):
    wf = _workflow(persistence, notifier)
    wf.select_curriculum(1)
    assert wf.save() is False
    assert persistence.count("save") == 0
    assert notifier.last.kind is NoticeKind.WARNING
    assert notifier.last.message.startswith("Please fill in at least one term")


def test_save_without_curriculum_is_refused(persistence, notifier):
    wf = _workflow(persistence, notifier)
    assert wf.save() is False
    assert notifier.last.message == "Please select a curriculum batch"
    assert persistence.calls == []


def test_duplicate_si_numbers_are_refused(persistence, notifier):
    wf = _workflow(persistence, notifier)
    wf.select_curriculum(1)
    wf.rows = [complete_row(1), complete_row(1, term_name="Semester 2")]
    assert wf.save() is False
    assert persistence.count("save") == 0


def test_failed_save_leaves_rows_untouched_and_unsaved(persistence, notifier):
    wf = _workflow(persistence, notifier)
    wf.select_curriculum(1)
    wf.rows = [complete_row(1), complete_row(2), complete_row(3)]
    wf.state = S.DRAFT_UNSAVED
    before = list(wf.rows)
    persistence.fail_save = True

    assert wf.save() is False
    assert wf.rows == before
    assert not any(r.saved for r in wf.rows)
    assert wf.state is S.DRAFT_UNSAVED
    assert notifier.last.kind is NoticeKind.ERROR
    assert not wf.is_busy


def test_save_refused_while_another_is_in_flight(persistence, notifier):
    guard = WriteGuard()
    wf = _workflow(persistence, notifier, guard=guard)
    wf.select_curriculum(1)
    wf.rows = [complete_row(1)]
    with guard.hold(1):
        assert wf.is_busy
        assert wf.save() is False
    assert persistence.count("save") == 0
    assert notifier.last.title == "Please wait"


# --------------------------------------------------------------------------- #
# Submitting                                                                  #
# --------------------------------------------------------------------------- #
def test_submit_refused_while_unsaved(persistence, notifier):
    wf = _workflow(persistence, notifier)
    wf.select_curriculum(1)
    wf.edit(0, "term_name", "Semester 1")

    assert wf.can_submit is False
    assert wf.submit() is False
    assert persistence.count("submit") == 0
    assert notifier.last.message == "Please save the term details first before sending for approval"


def test_submit_refused_without_rows(persistence, notifier):
    wf = _workflow(persistence, notifier)
    wf.curriculum_id = 1
    wf.rows = []
    wf.state = S.DRAFT_SAVED
    assert wf.submit() is False
    assert persistence.count("submit") == 0
    assert notifier.last.message == "Please add term details first before sending for approval"


def test_save_then_submit(persistence, notifier):
    wf = _workflow(persistence, notifier)
    wf.select_curriculum(1)
    wf.rows = [complete_row(1)]
    assert wf.save() is True
    assert wf.can_submit

    assert wf.submit() is True
    assert persistence.calls[-2] == ("submit", 1, 7)
    assert wf.state is S.SUBMITTED
    assert any(n.message == "Term details sent for approval successfully" for n in notifier.items)


def test_already_submitted_warns_and_keeps_rows(notifier):
    persistence = FakeTermPersistence(rows=[complete_row(1), complete_row(2)], status=ApprovalStatus.PENDING)
    wf = _workflow(persistence, notifier)
    wf.select_curriculum(1)
    rows_before = list(wf.rows)

    assert wf.submit() is False
    assert persistence.count("submit") == 1
    assert notifier.last.kind is NoticeKind.WARNING
    assert notifier.last.title == "Already Submitted"
    assert wf.rows == rows_before
    assert wf.state is S.SUBMITTED


def test_rejected_plan_can_be_resubmitted(notifier):
    persistence = FakeTermPersistence(rows=[complete_row(1)], status=ApprovalStatus.REJECTED)
    wf = _workflow(persistence, notifier)
    wf.select_curriculum(1)
    assert wf.state is S.REJECTED

    assert wf.submit() is True
    assert wf.state is S.SUBMITTED


def test_submit_needs_signed_in_user(notifier):
    persistence = FakeTermPersistence(rows=[complete_row(1)])
    wf = _workflow(persistence, notifier, user_id=None)
    wf.select_curriculum(1)
    assert wf.submit() is False
    assert persistence.count("submit") == 0


@pytest.mark.parametrize("status", [ApprovalStatus.REJECTED, ApprovalStatus.PENDING])
def test_status_without_stored_rows_is_an_unsaved_draft(notifier, status):
    persistence = FakeTermPersistence(rows=[], status=status)
    wf = _workflow(persistence, notifier)
    wf.select_curriculum(1)

    assert wf.state is S.DRAFT_UNSAVED
    assert wf.curriculum_info.approval_status is status
    assert not wf.is_data_saved
    assert wf.submit() is False
    assert persistence.count("submit") == 0


class DecidingPersistence(FakeTermPersistence):
    """Accepts every submission and stores the given status for it."""

    def __init__(self, rows, decided):
        super().__init__(rows=rows)
        self.decided = decided

    def submit_for_approval(self, curriculum_id, submitter_id, comments=""):
        self.calls.append(("submit", curriculum_id, submitter_id))
        self.status = self.decided


@pytest.mark.parametrize("decided,expected", [
    (ApprovalStatus.PENDING, S.SUBMITTED),
    (ApprovalStatus.REJECTED, S.REJECTED),
])
def test_accepted_submit_from_unexpected_state_follows_stored_status(notifier, decided, expected):
    persistence = DecidingPersistence(rows=[complete_row(1)], decided=decided)
    wf = _workflow(persistence, notifier)
    wf.select_curriculum(1)
    wf.state = S.APPROVED

    assert wf.submit() is True
    assert persistence.count("submit") == 1
    assert persistence.count("get") == 2
    assert wf.state is expected
