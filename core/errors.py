# core/errors.py
"""
Error taxonomy shared by the mapping and term-plan modules.

ValidationError   - field-level problems, raised before any persistence call
NotFoundError     - lookup found nothing; screens render an empty state
ConflictError     - state conflict on the persistence side (e.g. already submitted)
TransportError    - any failure talking to a collaborator; retryable
"""

from __future__ import annotations
from typing import Dict, Optional


class CurriculumError(Exception):
    """Base class for every error raised by this application."""


class ValidationError(CurriculumError):
    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.field_errors: Dict[str, str] = dict(field_errors or {})


class InvalidLevelPair(ValidationError):
    """Source and target cannot be linked: wrong levels, unknown ids or outside the context."""


class NotFoundError(CurriculumError):
    pass


class ConflictError(CurriculumError):
    pass


class AlreadySubmitted(ConflictError):
    def __init__(self, message: str, status: Optional[str] = None, submitted_at=None):
        super().__init__(message)
        self.status = status
        self.submitted_at = submitted_at


class TransportError(CurriculumError):
    pass


class IllegalTransition(CurriculumError):
    pass


class WriteInProgress(CurriculumError):
    pass
