from __future__ import annotations


class StoreError(Exception):
    """Raised when the remote store rejects or fails a request."""

    def __init__(self, message: str, *, path: str = '', status_code: int | None = None) -> None:
        super().__init__(message)
        self.path = path
        self.status_code = status_code


class StoreOfflineError(StoreError):
    """The remote store could not be reached. Mutations are queued, reads use the cache."""


class StoreAccessError(StoreError, PermissionError):
    """The remote store refused access to the path. Never queued or retried."""
