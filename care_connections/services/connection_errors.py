"""Error taxonomy for the connection engine.

Services raise these; the API layer maps each class to one HTTP status.
"""


class ConnectionServiceError(Exception):
    """Base exception for connection engine errors."""

    pass


class AuthenticationRequired(ConnectionServiceError):
    """No caller identity."""

    pass


class AuthorizationDenied(ConnectionServiceError):
    """Caller is not a participant, or is on the wrong side of an asymmetric rule."""

    pass


class NotFound(ConnectionServiceError):
    """Unknown connection or profile."""

    pass


class InvalidState(ConnectionServiceError):
    """Action is not valid for the connection's current state."""

    pass


class ValidationError(ConnectionServiceError):
    """Malformed input."""

    pass


class ConflictError(ConnectionServiceError):
    """Optimistic-lock version mismatch."""

    def __init__(self, expected: int | None, actual: int | None, message: str | None = None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            message or f"Version conflict: expected {expected}, got {actual}"
        )
