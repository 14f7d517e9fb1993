"""Domain failures raised by the outpass workflow."""

from __future__ import annotations

from campuspass.models.outpass import OutpassStatus


class OutpassError(Exception):
    """Base class. `kind` is the tag reported to API callers."""

    kind = "outpass_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(OutpassError):
    """Malformed or inconsistent input. The caller can fix and resend."""

    kind = "validation_error"


class ForbiddenError(OutpassError):
    """Authenticated, but not entitled to this action on this outpass."""

    kind = "forbidden"


class NotFoundError(OutpassError):
    """Referenced outpass or user does not exist."""

    kind = "not_found"


class ConflictError(OutpassError):
    """The transition is no longer legal from the current state. Re-fetch before retrying."""

    kind = "conflict"

    def __init__(self, message: str, status: OutpassStatus | None = None):
        self.status = status
        super().__init__(message)


class PersistenceError(OutpassError):
    """The store failed while applying a transition; nothing was committed."""

    kind = "internal_error"
