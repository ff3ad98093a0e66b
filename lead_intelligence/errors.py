"""
Error Taxonomy
Transport-independent failures surfaced by the intelligence engine.
"""
from enum import StrEnum


class ErrorKind(StrEnum):
    BAD_REQUEST = "bad_request"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL = "internal"


class IntelligenceError(Exception):
    """Base class. `kind` drives the status classification at the API edge."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidSubjectError(IntelligenceError):
    """Neither a lead id nor a contact id was supplied."""
    kind = ErrorKind.BAD_REQUEST


class SubjectNotFoundError(IntelligenceError):
    """No contact could be resolved for the subject reference."""
    kind = ErrorKind.NOT_FOUND


class IntelligenceNotFoundError(IntelligenceError):
    """A subject was named but has no stored profile."""
    kind = ErrorKind.NOT_FOUND


class SubjectBusyError(IntelligenceError):
    """Another recomputation for the same subject held the lock past the timeout."""
    kind = ErrorKind.CONFLICT


class AnalysisFailedError(IntelligenceError):
    """Unexpected failure while collecting signals or building the analysis."""
    kind = ErrorKind.INTERNAL


class InvalidRequestError(IntelligenceError):
    """A request payload is missing required fields or carries an unknown action."""
    kind = ErrorKind.BAD_REQUEST
