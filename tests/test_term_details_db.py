import pytest
from sqlalchemy import text as sa_text

from conftest import complete_row
from core.errors import AlreadySubmitted, ConflictError, NotFoundError, TransportError
from screens.term_details.db import SqlTermDetailService
from screens.term_details.models import ApprovalStatus


@pytest.fixture
def service(engine):
    return SqlTermDetailService(engine)


def test_get_unknown_curriculum_raises(service, seeded):
    with pytest.raises(NotFoundError):
        service.get_by_curriculum(seeded.curriculum_id + 1000)


def test_fresh_curriculum_has_info_and_no_rows(service, seeded):
    snapshot = service.get_by_curriculum(seeded.curriculum_id)
    assert snapshot.rows == []
    info = snapshot.curriculum_info
    assert info.program_name == "B.Tech CSE"
    assert info.program_owner.name == "Olu Owner"
    assert info.program_owner.user_id == seeded.owner_id
    assert info.approval_status is None


def test_save_bulk_replaces_all_rows(service, seeded):
    cid = seeded.curriculum_id
    service.save_bulk(cid, [complete_row(1), complete_row(2), complete_row(3)], created_by=seeded.submitter_id)
    service.save_bulk(cid, [complete_row(1, credits=18), complete_row(2)], created_by=seeded.submitter_id)

    rows = service.get_by_curriculum(cid).rows
    assert [r.si_no for r in rows] == [1, 2]
    assert rows[0].credits == 18
    assert rows[0].academic_year == "2024-2025"
    assert all(r.saved for r in rows)


def test_failing_save_bulk_keeps_previous_rows(service, seeded):
    cid = seeded.curriculum_id
    service.save_bulk(cid, [complete_row(1), complete_row(2)])

    # duration_weeks has a CHECK > 0, so the third insert fails after two succeeded
    bad = [complete_row(1, credits=10), complete_row(2, credits=10), complete_row(3, duration_weeks=0)]
    with pytest.raises(TransportError):
        service.save_bulk(cid, bad)

    rows = service.get_by_curriculum(cid).rows
    assert [r.si_no for r in rows] == [1, 2]
    assert all(r.credits == 20 for r in rows)


def test_submit_then_second_submit_is_refused(service, seeded):
    cid = seeded.curriculum_id
    service.save_bulk(cid, [complete_row(1)])
    service.submit_for_approval(cid, seeded.submitter_id)

    info = service.get_by_curriculum(cid).curriculum_info
    assert info.approval_status is ApprovalStatus.PENDING
    assert info.submitted_at is not None

    with pytest.raises(AlreadySubmitted) as exc:
        service.submit_for_approval(cid, seeded.submitter_id)
    assert "already been submitted for approval on" in str(exc.value)
    assert exc.value.status == "Pending"


def test_rejected_plan_is_resubmitted_with_a_new_record(service, seeded):
    cid = seeded.curriculum_id
    service.save_bulk(cid, [complete_row(1)])
    service.submit_for_approval(cid, seeded.submitter_id)
    service.record_decision(cid, seeded.owner_id, approved=False, comments="Credits too high")

    assert service.get_by_curriculum(cid).curriculum_info.approval_status is ApprovalStatus.REJECTED

    service.submit_for_approval(cid, seeded.submitter_id, "Reduced credits")
    history = service.approval_history(cid)
    assert len(history) == 2
    active = [h for h in history if h.is_active]
    assert len(active) == 1
    assert active[0].status is ApprovalStatus.PENDING
    assert service.get_by_curriculum(cid).curriculum_info.approval_status is ApprovalStatus.PENDING


def test_approved_plan_cannot_be_resubmitted(service, seeded):
    cid = seeded.curriculum_id
    service.save_bulk(cid, [complete_row(1)])
    service.submit_for_approval(cid, seeded.submitter_id)
    service.record_decision(cid, seeded.owner_id, approved=True)

    info = service.get_by_curriculum(cid).curriculum_info
    assert info.approval_status is ApprovalStatus.APPROVED
    assert info.approved_at is not None
    with pytest.raises(AlreadySubmitted):
        service.submit_for_approval(cid, seeded.submitter_id)


def test_decision_without_pending_submission_conflicts(service, seeded):
    with pytest.raises(ConflictError):
        service.record_decision(seeded.curriculum_id, seeded.owner_id, approved=True)


def test_submission_stamps_submitter(service, seeded, engine):
    cid = seeded.curriculum_id
    service.save_bulk(cid, [complete_row(1)])
    service.submit_for_approval(cid, seeded.submitter_id)
    with engine.connect() as conn:
        by = conn.execute(sa_text(
            "SELECT submitted_by FROM term_details_approval WHERE curriculum_id = :cid"
        ), {"cid": cid}).scalar()
    assert by == seeded.submitter_id
