# app/core/ui.py
from __future__ import annotations
import logging
import streamlit as st
from sqlalchemy.engine import Engine
from core.settings import Settings, load_settings
from core.db import get_engine, init_db

logger = logging.getLogger(__name__)


def session_settings() -> Settings:
    if "settings" not in st.session_state:
        st.session_state["settings"] = load_settings()
    return st.session_state["settings"]


def ensure_engine() -> Engine:
    """Engine cached in session_state; schema installers run once per session."""
    if "engine" not in st.session_state:
        st.session_state["engine"] = get_engine(session_settings().db.url)
    engine = st.session_state["engine"]
    if "db_initialized" not in st.session_state:
        init_db(engine)
        st.session_state["db_initialized"] = True
    return engine


def handle_error(e: Exception, user_message: str = "An error occurred."):
    """
    Log the full exception server-side and show a friendly or
    detailed error in Streamlit based on the debug setting.
    """
    logger.error(f"{user_message} ({e})", exc_info=True)

    if session_settings().debug:
        # In debug mode, show the full error
        st.error(f"{user_message}\n\n**Debug Info:**\n```\n{e}\n```")
    else:
        st.error(user_message)


def render_footer_global():
    settings = session_settings()
    st.markdown("---")
    st.caption(f"{settings.app.name} · {settings.app.environment}")
