"""Vibeflow exception types."""


class VibeflowError(Exception):
    """Base class for all Vibeflow errors."""


class StorageError(VibeflowError):
    """Raised when the local key/value storage cannot be read or written."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Storage failure for key {key!r}: {reason}")


class SchemaError(VibeflowError):
    """Raised when a persisted payload does not match any known format."""


class RemoteStoreError(VibeflowError):
    """Raised when a call against the remote relational store fails."""

    def __init__(self, operation: str, message: str, status_code: int | None = None):
        self.operation = operation
        self.message = message
        self.status_code = status_code
        super().__init__(f"Remote {operation} failed: {message}")


class CalendarAuthError(VibeflowError):
    """Raised when Google Calendar authorization fails.

    ``kind`` is the error type reported by the identity provider, e.g.
    ``popup_failed_to_open`` or ``redirect_uri_mismatch``.
    """

    def __init__(self, kind: str, message: str):
        self.kind = kind
        self.message = message
        super().__init__(message)
