# core/concurrency.py
"""
Per-context write serialization and stale-response detection.

Only one write (edge upsert, bulk save, submit) may be outstanding for a
context. Reads and writes are tagged with the context they started in so a
result that comes back after the user moved elsewhere can be dropped.
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Hashable, Iterator, Optional, Set
import logging

from core.errors import WriteInProgress

logger = logging.getLogger(__name__)


class WriteGuard:
    def __init__(self):
        self._in_flight: Set[Hashable] = set()

    def is_busy(self, context: Hashable) -> bool:
        return context in self._in_flight

    @contextmanager
    def hold(self, context: Hashable) -> Iterator[None]:
        if context in self._in_flight:
            raise WriteInProgress(f"Another save is still in progress for {context}")
        self._in_flight.add(context)
        try:
            yield
        finally:
            self._in_flight.discard(context)


@dataclass(frozen=True)
class Ticket:
    context: Optional[Hashable]
    seq: int


class RequestTracker:
    """Issues context-tagged tickets; only tickets for the current context are live."""

    def __init__(self):
        self._context: Optional[Hashable] = None
        self._seq = 0

    @property
    def context(self) -> Optional[Hashable]:
        return self._context

    def switch(self, context: Optional[Hashable]) -> None:
        self._context = context

    def issue(self) -> Ticket:
        self._seq += 1
        return Ticket(self._context, self._seq)

    def is_current(self, ticket: Ticket) -> bool:
        if ticket.context != self._context:
            logger.info(f"Discarding stale response for {ticket.context!r} (now {self._context!r})")
            return False
        return True
