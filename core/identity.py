# core/identity.py
from __future__ import annotations
from typing import Optional, Protocol


class IdentityProvider(Protocol):
    def current_user_id(self) -> Optional[int]: ...


class StaticIdentityProvider:
    """Fixed identity, for scripts and tests."""

    def __init__(self, user_id: Optional[int]):
        self._user_id = user_id

    def current_user_id(self) -> Optional[int]:
        return self._user_id


class SessionIdentityProvider:
    """Reads the signed-in user from Streamlit's session state."""

    def __init__(self, session_key: str = "user"):
        self.session_key = session_key

    def current_user_id(self) -> Optional[int]:
        import streamlit as st

        u = st.session_state.get(self.session_key) or {}
        raw = u.get("user_id")
        if raw is None or raw == "":
            return None
        return int(raw)
