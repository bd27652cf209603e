# screens/outcome_mapping/editor.py
"""
Mapping Editor - validates and commits one mapping edge at a time.

Only one edit buffer exists at any time: opening another cell replaces the
current buffer and drops its unsaved changes.
"""

from __future__ import annotations
import logging
from typing import Dict, Optional

from core.concurrency import RequestTracker, Ticket, WriteGuard
from core.errors import InvalidLevelPair, TransportError, ValidationError, WriteInProgress
from core.notifications import Notifier
from core.settings import MappingRules
from .models import ContextKind, EditBuffer, MappingContext, MappingEdge, MappingStats, Outcome, Strength
from .matrix import MappingMatrix, MatrixBuilder
from .stats import compute_stats
from .store import MappingStore

logger = logging.getLogger(__name__)


def validate_buffer(buffer: EditBuffer, rules: MappingRules) -> Dict[str, str]:
    """
    Run every field rule and return {field: message}.
    Lengths are measured on trimmed text; both bounds are inclusive.
    """
    errors: Dict[str, str] = {}

    justification = (buffer.justification or "").strip()
    if not justification:
        errors["justification"] = "Justification is required"
    elif len(justification) < rules.justification_min:
        errors["justification"] = f"Justification must be at least {rules.justification_min} characters long"
    elif len(justification) > rules.justification_max:
        errors["justification"] = f"Justification must not exceed {rules.justification_max} characters"

    contribution = (buffer.contribution_descriptor or "").strip()
    contribution_required = buffer.context.kind is ContextKind.CO_PO
    if not contribution:
        if contribution_required:
            errors["contribution_descriptor"] = "Contribution & PI is required"
    elif contribution_required and len(contribution) < rules.contribution_min:
        errors["contribution_descriptor"] = f"Contribution & PI must be at least {rules.contribution_min} characters long"
    elif len(contribution) > rules.contribution_max:
        errors["contribution_descriptor"] = f"Contribution & PI must not exceed {rules.contribution_max} characters"

    try:
        Strength.parse(buffer.strength)
    except ValueError:
        errors["strength"] = "Mapping strength must be between 1 and 3"

    return errors


class MappingEditor:
    """Holds the current context, its matrix and the single open edit buffer."""

    def __init__(
        self,
        builder: MatrixBuilder,
        store: MappingStore,
        notifier: Notifier,
        rules: Optional[MappingRules] = None,
        guard: Optional[WriteGuard] = None,
    ):
        self.builder = builder
        self.store = store
        self.notifier = notifier
        self.rules = rules or MappingRules()
        self.guard = guard or WriteGuard()
        self.tracker = RequestTracker()
        self.context: Optional[MappingContext] = None
        self.matrix: Optional[MappingMatrix] = None
        self.buffer: Optional[EditBuffer] = None

    # ========================================================================
    # CONTEXT & MATRIX
    # ========================================================================

    def set_context(self, context: Optional[MappingContext]) -> Optional[MappingMatrix]:
        self.buffer = None
        self.matrix = None
        self.context = context
        self.tracker.switch(context.key if context else None)
        if context is None:
            return None
        return self.refresh()

    def refresh(self) -> Optional[MappingMatrix]:
        if self.context is None:
            return None
        ticket = self.tracker.issue()
        try:
            matrix = self.builder.build(self.context)
        except TransportError as e:
            logger.error(f"Matrix build failed for {self.context.key}: {e}", exc_info=True)
            self.notifier.error("Error fetching mapping data")
            return None
        self.apply_matrix(ticket, matrix)
        return self.matrix

    def apply_matrix(self, ticket: Ticket, matrix: MappingMatrix) -> bool:
        """Install a built matrix unless the user has moved to another context."""
        if not self.tracker.is_current(ticket):
            return False
        self.matrix = matrix
        return True

    @property
    def stats(self) -> MappingStats:
        return compute_stats(self.matrix.edges() if self.matrix else [])

    @property
    def is_busy(self) -> bool:
        return self.context is not None and self.guard.is_busy(self.context.key)

    # ========================================================================
    # EDIT BUFFER
    # ========================================================================

    def open(self, source: Outcome, target: Outcome) -> EditBuffer:
        if self.context is None:
            raise ValueError("Select a mapping context first")

        existing: Optional[MappingEdge] = None
        if self.matrix is not None:
            try:
                existing = self.matrix.cell(source.id, target.id).edge
            except KeyError:
                existing = None
        if existing is None:
            try:
                existing = self.store.get(self.context, source.id, target.id)
            except TransportError as e:
                logger.warning(f"Could not load mapping {source.id}->{target.id}: {e}")
                existing = None

        if existing is not None:
            self.buffer = EditBuffer(
                context=self.context,
                source=source,
                target=target,
                strength=existing.strength,
                justification=existing.justification,
                contribution_descriptor=existing.contribution_descriptor,
                existing_id=existing.id,
            )
        else:
            self.buffer = EditBuffer(context=self.context, source=source, target=target, strength=Strength.WEAK)
        return self.buffer

    def close(self) -> None:
        self.buffer = None

    def validate(self, buffer: Optional[EditBuffer] = None) -> Dict[str, str]:
        buffer = buffer or self.buffer
        if buffer is None:
            return {}
        errors = validate_buffer(buffer, self.rules)
        buffer.errors = errors
        return errors

    def commit(self) -> Optional[MappingEdge]:
        """Store the open buffer. Returns the stored edge, or None with the buffer left open."""
        buffer = self.buffer
        if buffer is None:
            self.notifier.warning("Open a mapping cell before saving")
            return None

        errors = self.validate(buffer)
        if errors:
            self.notifier.error(next(iter(errors.values())), title="Validation Error")
            return None

        context = buffer.context
        ticket = self.tracker.issue()
        edge = MappingEdge(
            context=context,
            source_outcome_id=buffer.source.id,
            target_outcome_id=buffer.target.id,
            strength=Strength.parse(buffer.strength),
            justification=buffer.justification.strip(),
            contribution_descriptor=(buffer.contribution_descriptor or "").strip(),
        )
        try:
            with self.guard.hold(context.key):
                stored = self.store.upsert(edge)
        except WriteInProgress as e:
            self.notifier.warning(str(e), title="Please wait")
            return None
        except InvalidLevelPair as e:
            # Not tied to an editable field; the buffer keeps its own errors
            self.notifier.error(e.message, title="Invalid Mapping")
            return None
        except ValidationError as e:
            buffer.errors = e.field_errors or {"strength": e.message}
            self.notifier.error(e.message, title="Validation Error")
            return None
        except TransportError as e:
            logger.error(f"Saving mapping failed: {e}", exc_info=True)
            self.notifier.error("Error saving mapping")
            return None

        if self.buffer is buffer:
            self.buffer = None
        self.notifier.success("Mapping saved successfully")
        if self.tracker.is_current(ticket):
            self.refresh()
        return stored

    def remove(self, source_id: int, target_id: int) -> bool:
        if self.context is None:
            return False
        context = self.context
        try:
            with self.guard.hold(context.key):
                self.store.delete(context, source_id, target_id)
        except WriteInProgress as e:
            self.notifier.warning(str(e), title="Please wait")
            return False
        except TransportError as e:
            logger.error(f"Deleting mapping failed: {e}", exc_info=True)
            self.notifier.error("Error deleting mapping")
            return False

        if self.buffer is not None and (self.buffer.source.id, self.buffer.target.id) == (source_id, target_id):
            self.buffer = None
        self.notifier.success("Mapping deleted successfully")
        self.refresh()
        return True
