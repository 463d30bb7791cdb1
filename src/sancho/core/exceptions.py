"""
Sancho exception hierarchy.

All sancho exceptions inherit from SanchoError, so UI layers can catch
library-level failures in one place while still telling a failed save
apart from a bad config value.
"""


class SanchoError(Exception):
    """Base exception class for all sancho errors."""


class ConfigurationError(SanchoError):
    """Raised for configuration errors (missing keys, invalid values)."""


class APIError(SanchoError):
    """Raised for API communication errors."""


class PersistenceError(APIError):
    """Raised when the persistence gateway cannot complete a request.

    ``status`` carries the HTTP status code when the failure came from a
    server response, ``None`` for transport-level failures.
    """

    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.status = status


class DocumentNotFoundError(PersistenceError, KeyError):
    """Raised when the backend has no document with the requested id."""

    def __str__(self) -> str:
        # KeyError quotes its message; keep the plain text for UI display.
        return str(self.args[0]) if self.args else ""


class MigrationError(PersistenceError):
    """Raised when legacy local entries cannot be moved to the server."""


class InvalidTransitionError(SanchoError):
    """Raised when the sync state machine receives an unknown (status, event) pair."""


class TagValidationError(SanchoError, ValueError):
    """Raised by strict tag validation for malformed tag names."""
