# app.py
from __future__ import annotations
import logging
import streamlit as st

from core.ui import ensure_engine, render_footer_global, session_settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

PAGES = [
    ("screens/outcome_mapping/page.py", "🔗 Outcome Mapping", "outcome_mapping"),
    ("screens/term_details/page.py", "📅 Term Details", "term_details"),
]


def _session_user():
    u = st.session_state.get("user") or {}
    return u, (u.get("email") or "").strip().lower()


def render_login():
    st.markdown("""
        <style>
            section[data-testid="stSidebar"] {
                display: none;
            }
        </style>
    """, unsafe_allow_html=True)

    st.title("Login")
    with st.form("login_form"):
        email = st.text_input("Email", value="admin@example.com")
        user_id = st.number_input("User ID", min_value=1, value=1, step=1)
        submitted = st.form_submit_button("Login")

    if submitted:
        # Simple mock login - this does not verify a password
        st.session_state["user"] = {"user_id": int(user_id), "email": email}
        st.success(f"Logged in as {email}! Redirecting...")
        st.rerun()


def main():
    settings = session_settings()
    try:
        st.set_page_config(page_title=settings.app.name, layout="wide")
    except Exception:
        logger.debug("Page config already set")

    try:
        ensure_engine()
    except Exception as e:
        st.error("Database schema initialization failed. See details below.")
        with st.expander("Diagnostics"):
            st.exception(e)
        st.stop()

    user, email = _session_user()
    if not email:
        render_login()
        return

    left, right = st.columns([0.75, 0.25])
    with left:
        st.caption(f"Signed in as **{email}**")
    with right:
        if st.button("Logout", key="logout_top"):
            keys_to_keep = ["engine", "settings", "db_initialized"]
            for key in list(st.session_state.keys()):
                if key not in keys_to_keep:
                    del st.session_state[key]
            st.rerun()

    pages = [st.Page(path, title=title, url_path=route) for path, title, route in PAGES]
    nav = st.navigation(pages, position="sidebar")
    nav.run()

    render_footer_global()


if __name__ == "__main__":
    main()
