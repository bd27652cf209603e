# screens/outcome_mapping/page.py
"""
Outcome Mapping Screen
Streamlit interface for CO -> PO (per course) and PO -> PEO (per curriculum batch) mappings.
"""

from __future__ import annotations

import pandas as pd
import streamlit as st

from core.errors import CurriculumError
from core.identity import SessionIdentityProvider
from core.notifications import Notifier, render_notifications
from core.ui import ensure_engine, handle_error, session_settings

from screens.outcome_mapping.models import (
    ContextKind,
    MappingContext,
    Strength,
    CONTEXT_LABELS,
    LEVEL_LABELS,
    STRENGTH_DESCRIPTIONS,
)
from screens.outcome_mapping.helpers import (
    SqlOutcomeProvider,
    fetch_curricula,
    fetch_courses,
    truncate_text,
)
from screens.outcome_mapping.store import MappingStore
from screens.outcome_mapping.matrix import MatrixBuilder, MappingMatrix
from screens.outcome_mapping.editor import MappingEditor


EDITOR_KEY = "outcome_mapping_editor"


def _get_editor(engine) -> MappingEditor:
    editor = st.session_state.get(EDITOR_KEY)
    if editor is None:
        store = MappingStore(engine, SessionIdentityProvider())
        editor = MappingEditor(
            builder=MatrixBuilder(SqlOutcomeProvider(engine), store),
            store=store,
            notifier=Notifier(),
            rules=session_settings().mapping,
        )
        st.session_state[EDITOR_KEY] = editor
    return editor


# ============================================================================
# CONTEXT SELECTION
# ============================================================================

def render_context_selector(engine):
    """Curriculum batch, mapping kind and (for CO -> PO) course."""
    with engine.connect() as conn:
        curricula = fetch_curricula(conn)
    if not curricula:
        st.warning("No curriculum batches found. Please create a curriculum first.")
        return None

    labels = {c[0]: f"{c[1]} - {c[2]} ({c[3]})" for c in curricula}
    curriculum_id = st.selectbox(
        "Curriculum Batch",
        options=list(labels.keys()),
        format_func=lambda x: labels[x],
        key="om_curriculum",
    )
    if not curriculum_id:
        return None

    kind = st.radio(
        "Mapping",
        options=list(ContextKind),
        format_func=lambda k: CONTEXT_LABELS[k],
        horizontal=True,
        key="om_kind",
    )
    if kind is ContextKind.PO_PEO:
        return MappingContext.for_curriculum(curriculum_id)

    with engine.connect() as conn:
        courses = fetch_courses(conn, curriculum_id)
    if not courses:
        st.info("This curriculum has no courses yet.")
        return None

    course_labels = {c[0]: f"{c[1]} - {c[2]}" for c in courses}
    course_id = st.selectbox(
        "Course",
        options=list(course_labels.keys()),
        format_func=lambda x: course_labels[x],
        key="om_course",
    )
    if not course_id:
        return None
    return MappingContext.for_course(course_id, curriculum_id)


# ============================================================================
# MATRIX & STATS
# ============================================================================

def render_stats(editor: MappingEditor):
    stats = editor.stats
    cols = st.columns(4)
    cols[0].metric("Total Mappings", stats.total)
    cols[1].metric("Strong (3)", stats.strong_count)
    cols[2].metric("Moderate (2)", stats.moderate_count)
    cols[3].metric("Weak (1)", stats.weak_count)


def render_matrix(editor: MappingEditor, matrix: MappingMatrix):
    kind = matrix.context.kind
    if not matrix.rows or not matrix.columns:
        missing = kind.source_level if not matrix.rows else kind.target_level
        st.info(f"No {LEVEL_LABELS[missing]} defined for this selection.")
        return

    st.subheader(f"📊 {CONTEXT_LABELS[kind]}")
    st.dataframe(matrix.to_dataframe(), use_container_width=True)
    st.download_button(
        "⬇️ Download CSV",
        data=matrix.to_csv(),
        file_name=f"{kind.value.lower()}_{matrix.context.context_id}.csv",
        mime="text/csv",
        key="om_download",
    )

    with st.expander("Outcome statements"):
        for title, items in (("Rows", matrix.rows), ("Columns", matrix.columns)):
            st.markdown(f"**{title}**")
            for o in items:
                st.markdown(f"- **{o.reference_code}**: {truncate_text(o.statement, 160)}")

    render_cell_picker(editor, matrix)


def render_cell_picker(editor: MappingEditor, matrix: MappingMatrix):
    col1, col2, col3 = st.columns([2, 2, 1])
    with col1:
        source = st.selectbox(
            "From",
            options=matrix.rows,
            format_func=lambda o: o.reference_code,
            key="om_pick_source",
        )
    with col2:
        target = st.selectbox(
            "To",
            options=matrix.columns,
            format_func=lambda o: o.reference_code,
            key="om_pick_target",
        )
    with col3:
        st.write("")
        if st.button("✏️ Edit", key="om_open", use_container_width=True):
            editor.open(source, target)
            st.rerun()


# ============================================================================
# EDIT FORM
# ============================================================================

def render_edit_form(editor: MappingEditor):
    buffer = editor.buffer
    if buffer is None:
        return

    st.subheader(f"{'➕ New' if buffer.is_new else '✏️ Edit'} mapping: "
                 f"{buffer.source.reference_code} → {buffer.target.reference_code}")
    st.caption(truncate_text(buffer.source.statement, 200))
    st.caption(truncate_text(buffer.target.statement, 200))

    contribution_required = buffer.context.kind is ContextKind.CO_PO
    with st.form("om_edit_form"):
        strength = st.radio(
            "Strength",
            options=list(Strength),
            index=list(Strength).index(Strength.parse(buffer.strength)),
            format_func=lambda s: STRENGTH_DESCRIPTIONS[s],
            horizontal=True,
        )
        justification = st.text_area(
            "Justification *",
            value=buffer.justification,
            max_chars=editor.rules.justification_max,
        )
        if "justification" in buffer.errors:
            st.error(buffer.errors["justification"])
        contribution = st.text_input(
            "Contribution & PI" + (" *" if contribution_required else ""),
            value=buffer.contribution_descriptor,
            max_chars=editor.rules.contribution_max,
        )
        if "contribution_descriptor" in buffer.errors:
            st.error(buffer.errors["contribution_descriptor"])

        c1, c2 = st.columns(2)
        save = c1.form_submit_button("💾 Save Mapping", type="primary", disabled=editor.is_busy)
        cancel = c2.form_submit_button("Cancel")

    if save:
        buffer.strength = strength
        buffer.justification = justification
        buffer.contribution_descriptor = contribution
        editor.commit()
        st.rerun()
    if cancel:
        editor.close()
        st.rerun()

    if not buffer.is_new and st.button("🗑️ Delete mapping", key="om_delete", disabled=editor.is_busy):
        editor.remove(buffer.source.id, buffer.target.id)
        st.rerun()


def render_history(editor: MappingEditor):
    with st.expander("🕘 Change history"):
        try:
            events = editor.store.audit_trail(editor.context)
        except CurriculumError as e:
            handle_error(e, "Could not load mapping history.")
            return
        if not events:
            st.caption("No changes recorded yet.")
            return
        st.dataframe(pd.DataFrame(events), use_container_width=True, hide_index=True)


# ============================================================================
# MAIN
# ============================================================================

def main():
    """Main page function."""
    st.title("🔗 Outcome Mapping")
    st.markdown("Map Course Outcomes to Program Outcomes, and Program Outcomes to Educational Objectives.")

    try:
        engine = ensure_engine()
    except Exception as e:
        handle_error(e, "Database initialization failed.")
        return

    editor = _get_editor(engine)

    context = render_context_selector(engine)
    if context != editor.context:
        editor.set_context(context)

    render_notifications(editor.notifier, key_prefix="om_notice")

    if context is None or editor.matrix is None:
        return

    render_stats(editor)
    render_matrix(editor, editor.matrix)
    render_edit_form(editor)
    render_history(editor)


if __name__ == "__main__":
    main()
