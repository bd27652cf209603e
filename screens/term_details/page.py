# screens/term_details/page.py
"""
Curriculum Term Details Screen
Edit a curriculum batch's term plan, save it, and send it for approval.
"""

from __future__ import annotations

import pandas as pd
import streamlit as st

from core.errors import CurriculumError
from core.identity import SessionIdentityProvider
from core.notifications import Notifier, render_notifications
from core.ui import ensure_engine, handle_error, session_settings

from screens.outcome_mapping.helpers import fetch_curricula
from screens.term_details.models import (
    ApprovalState,
    EDITABLE_FIELDS,
    STATE_LABELS,
    TERM_NAME_OPTIONS,
)
from screens.term_details.db import SqlTermDetailService
from screens.term_details.workflow import TermPlanWorkflow


WORKFLOW_KEY = "term_details_workflow"
EDITOR_VERSION_KEY = "term_details_editor_version"

COLUMN_LABELS = {
    "si_no": "SI No",
    "term_name": "Term Name",
    "duration_weeks": "Duration (Weeks)",
    "credits": "Credits",
    "theory_course_count": "Theory Courses",
    "practical_other_count": "Practical/Others",
    "academic_start_year": "Start Year",
    "academic_end_year": "End Year",
    "academic_year": "Academic Year",
}

STATE_BADGES = {
    ApprovalState.DRAFT_UNSAVED: "📝",
    ApprovalState.DRAFT_SAVED: "💾",
    ApprovalState.SUBMITTED: "⏳",
    ApprovalState.APPROVED: "✅",
    ApprovalState.REJECTED: "❌",
}


def _get_workflow(engine) -> TermPlanWorkflow:
    workflow = st.session_state.get(WORKFLOW_KEY)
    if workflow is None:
        workflow = TermPlanWorkflow(
            persistence=SqlTermDetailService(engine),
            identity=SessionIdentityProvider(),
            notifier=Notifier(),
            settings=session_settings().approvals,
        )
        st.session_state[WORKFLOW_KEY] = workflow
    return workflow


def _bump_editor():
    st.session_state[EDITOR_VERSION_KEY] = st.session_state.get(EDITOR_VERSION_KEY, 0) + 1


# ============================================================================
# HEADER
# ============================================================================

def render_curriculum_selector(engine):
    with engine.connect() as conn:
        curricula = fetch_curricula(conn)
    if not curricula:
        st.warning("No curriculum batches found. Please create a curriculum first.")
        return None

    labels = {c[0]: f"{c[1]} - {c[2]} ({c[3]})" for c in curricula}
    return st.selectbox(
        "Curriculum Batch",
        options=[None] + list(labels.keys()),
        format_func=lambda x: "Select a curriculum batch" if x is None else labels[x],
        key="td_curriculum",
    )


def render_curriculum_info(workflow: TermPlanWorkflow):
    info = workflow.curriculum_info
    col1, col2 = st.columns([3, 2])
    with col1:
        if info:
            st.markdown(f"**Program:** {info.program_name} · **Department:** {info.department_name}")
            if info.program_owner:
                st.caption(f"Program owner: {info.program_owner.name} ({info.program_owner.email})")
    with col2:
        st.markdown(f"**Status:** {STATE_BADGES[workflow.state]} {STATE_LABELS[workflow.state]}")
        if info and info.submitted_at:
            st.caption(f"Submitted on {info.submitted_at:%Y-%m-%d}")
        if info and info.approved_at:
            st.caption(f"Decided on {info.approved_at:%Y-%m-%d}")


# ============================================================================
# TERM TABLE
# ============================================================================

def _rows_frame(workflow: TermPlanWorkflow) -> pd.DataFrame:
    return pd.DataFrame(
        [{name: getattr(r, name) for name in COLUMN_LABELS} for r in workflow.rows],
        columns=list(COLUMN_LABELS),
    )


def render_term_table(workflow: TermPlanWorkflow):
    read_only = workflow.is_locked or workflow.is_busy
    version = st.session_state.get(EDITOR_VERSION_KEY, 0)

    edited = st.data_editor(
        _rows_frame(workflow),
        key=f"td_editor_{workflow.curriculum_id}_{version}",
        hide_index=True,
        num_rows="fixed",
        use_container_width=True,
        disabled=True if read_only else ["si_no", "academic_year"],
        column_config={
            "si_no": st.column_config.NumberColumn(COLUMN_LABELS["si_no"]),
            "term_name": st.column_config.SelectboxColumn(COLUMN_LABELS["term_name"], options=TERM_NAME_OPTIONS),
            "duration_weeks": st.column_config.NumberColumn(COLUMN_LABELS["duration_weeks"], min_value=0, step=1),
            "credits": st.column_config.NumberColumn(COLUMN_LABELS["credits"], min_value=0, step=0.5),
            "theory_course_count": st.column_config.NumberColumn(COLUMN_LABELS["theory_course_count"], min_value=0, step=1),
            "practical_other_count": st.column_config.NumberColumn(COLUMN_LABELS["practical_other_count"], min_value=0, step=1),
            "academic_start_year": st.column_config.NumberColumn(COLUMN_LABELS["academic_start_year"], step=1, format="%d"),
            "academic_end_year": st.column_config.NumberColumn(COLUMN_LABELS["academic_end_year"], step=1, format="%d"),
            "academic_year": st.column_config.TextColumn(COLUMN_LABELS["academic_year"]),
        },
    )

    if read_only:
        return

    changed = False
    for i, row in enumerate(workflow.rows):
        for field in EDITABLE_FIELDS:
            value = edited.iloc[i][field]
            if pd.isna(value):
                value = "" if field == "term_name" else 0
            elif field != "term_name":
                value = float(value) if field == "credits" else int(value)
            if value != getattr(row, field):
                workflow.edit(i, field, value)
                changed = True
    if changed:
        st.rerun()

    c1, c2, _ = st.columns([1, 1, 4])
    if c1.button("➕ Add Term", key="td_add"):
        workflow.add_row()
        _bump_editor()
        st.rerun()
    if c2.button("➖ Remove Last", key="td_remove", disabled=len(workflow.rows) <= 1):
        workflow.remove_row(len(workflow.rows) - 1)
        _bump_editor()
        st.rerun()


def render_totals(workflow: TermPlanWorkflow):
    totals = workflow.totals
    cols = st.columns(3)
    cols[0].metric("Total Credits", totals.credits)
    cols[1].metric("Theory Courses", totals.theory_course_count)
    cols[2].metric("Practical/Others", totals.practical_other_count)


# ============================================================================
# ACTIONS
# ============================================================================

def render_actions(workflow: TermPlanWorkflow):
    c1, c2 = st.columns(2)
    busy = workflow.is_busy
    if c1.button("💾 Save Term Details", type="primary", disabled=busy or workflow.is_locked,
                 use_container_width=True, key="td_save"):
        if workflow.save():
            _bump_editor()
        st.rerun()
    if c2.button("📤 Send for Approval", disabled=not workflow.can_submit,
                 use_container_width=True, key="td_submit"):
        workflow.submit()
        st.rerun()
    if not workflow.is_data_saved:
        st.caption("Save the term details before sending them for approval.")


def render_decision_panel(workflow: TermPlanWorkflow, service: SqlTermDetailService):
    """Approve / reject controls for the curriculum's program owner."""
    info = workflow.curriculum_info
    if workflow.state is not ApprovalState.SUBMITTED or not info or not info.program_owner:
        return
    if workflow.identity.current_user_id() != info.program_owner.user_id:
        return

    with st.expander("🧾 Review submission", expanded=True):
        comments = st.text_area("Comments", key="td_decision_comments")
        c1, c2 = st.columns(2)
        approve = c1.button("✅ Approve", key="td_approve", use_container_width=True)
        reject = c2.button("❌ Reject", key="td_reject", use_container_width=True)
        if approve or reject:
            try:
                service.record_decision(workflow.curriculum_id, info.program_owner.user_id, approve, comments)
            except CurriculumError as e:
                handle_error(e, "Could not record the decision.")
                return
            workflow.load()
            st.rerun()


def render_history(service: SqlTermDetailService, curriculum_id: int):
    with st.expander("🕘 Approval history"):
        try:
            history = service.approval_history(curriculum_id)
        except CurriculumError as e:
            handle_error(e, "Could not load approval history.")
            return
        if not history:
            st.caption("Not submitted yet.")
            return
        st.dataframe(
            pd.DataFrame([
                {
                    "Status": h.status.value,
                    "Submitted": h.submitted_at,
                    "Decided": h.approved_at,
                    "Comments": h.comments,
                    "Current": h.is_active,
                }
                for h in history
            ]),
            hide_index=True,
            use_container_width=True,
        )


# ============================================================================
# MAIN
# ============================================================================

def main():
    """Main page function."""
    st.title("📅 Curriculum Term Details")

    try:
        engine = ensure_engine()
    except Exception as e:
        handle_error(e, "Database initialization failed.")
        return

    workflow = _get_workflow(engine)

    curriculum_id = render_curriculum_selector(engine)
    if curriculum_id != workflow.curriculum_id:
        workflow.select_curriculum(curriculum_id)
        _bump_editor()

    render_notifications(workflow.notifier, key_prefix="td_notice")

    if curriculum_id is None:
        st.info("Select a curriculum batch to view or edit its term details.")
        return

    render_curriculum_info(workflow)
    st.markdown("---")
    render_term_table(workflow)
    render_totals(workflow)
    render_actions(workflow)
    render_decision_panel(workflow, workflow.persistence)
    render_history(workflow.persistence, curriculum_id)


if __name__ == "__main__":
    main()
