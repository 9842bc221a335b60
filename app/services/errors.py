from __future__ import annotations


class RecordValidationError(ValueError):
    """Rejected before any store call; the message is shown next to the form."""


class DuplicateFeeError(RecordValidationError):
    pass


class RecordNotFoundError(LookupError):
    pass


class NotAuthenticatedError(PermissionError):
    """Raised by scoped operations when no account identifier is available."""
