# core/notifications.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from itertools import count
from typing import List, Optional

_ids = count(1)


class NoticeKind(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Notification:
    kind: NoticeKind
    title: str
    message: str
    id: int = field(default_factory=lambda: next(_ids))


class Notifier:
    """Collects typed notifications until the screen renders or dismisses them."""

    def __init__(self):
        self._items: List[Notification] = []

    def push(self, kind: NoticeKind, title: str, message: str) -> Notification:
        n = Notification(kind=kind, title=title, message=message)
        self._items.append(n)
        return n

    def success(self, message: str, title: str = "Success") -> Notification:
        return self.push(NoticeKind.SUCCESS, title, message)

    def info(self, message: str, title: str = "Info") -> Notification:
        return self.push(NoticeKind.INFO, title, message)

    def warning(self, message: str, title: str = "Warning") -> Notification:
        return self.push(NoticeKind.WARNING, title, message)

    def error(self, message: str, title: str = "Error") -> Notification:
        return self.push(NoticeKind.ERROR, title, message)

    @property
    def items(self) -> List[Notification]:
        return list(self._items)

    @property
    def last(self) -> Optional[Notification]:
        return self._items[-1] if self._items else None

    def dismiss(self, notification_id: int) -> None:
        self._items = [n for n in self._items if n.id != notification_id]

    def clear(self) -> None:
        self._items.clear()


def render_notifications(notifier: Notifier, key_prefix: str = "notice") -> None:
    """Show pending notifications in Streamlit, each with its own dismiss button."""
    import streamlit as st

    show = {
        NoticeKind.SUCCESS: st.success,
        NoticeKind.INFO: st.info,
        NoticeKind.WARNING: st.warning,
        NoticeKind.ERROR: st.error,
    }
    for n in notifier.items:
        msg_col, btn_col = st.columns([0.9, 0.1])
        with msg_col:
            show[n.kind](f"**{n.title}:** {n.message}")
        with btn_col:
            if st.button("✖", key=f"{key_prefix}_{n.id}"):
                notifier.dismiss(n.id)
                st.rerun()
