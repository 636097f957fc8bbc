"""Custom exceptions for the restroom monitor.

Provides a hierarchy of domain-specific exceptions. Nothing raised from the
telemetry engine is fatal to the process: validation errors are returned to
the caller, everything else is logged where it happens.
"""

from typing import Any


class RestroomMonitorError(Exception):
    """Base exception for all application errors."""


class ValidationError(RestroomMonitorError):
    """Raised when an ingest payload or config update is rejected.

    Raised before any state is touched, so a rejected request leaves the
    engine exactly as it was.
    """

    def __init__(
        self, message: str, details: list[dict[str, Any]] | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> dict[str, Any]:
        """Render the error for an API response body."""
        return {"error": self.message, "details": self.details}


class MalformedSensorPayload(RestroomMonitorError):
    """Raised when a stored sensor payload cannot be decoded."""


class TransientPersistenceError(RestroomMonitorError):
    """Raised when a history or liveness write fails.

    Never retried explicitly: the routine cursor only advances on success,
    so the next qualifying ingest tries again.
    """


class NotificationError(RestroomMonitorError):
    """Base exception for notification-related errors."""


class NotificationDeliveryError(NotificationError):
    """Raised when a single message could not be delivered to a subscriber."""


class DatabaseError(RestroomMonitorError):
    """Base exception for database-related errors."""


class DatabaseNotConnectedError(DatabaseError):
    """Raised when attempting database operations without a connection."""

    def __init__(self, message: str = "Database not connected") -> None:
        super().__init__(message)
