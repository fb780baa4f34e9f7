"""
Error taxonomy for the achievement lifecycle engine.

Every error carries a stable ``code`` for programmatic handling and the HTTP
status the API boundary maps it to. Transition errors carry the record's
actual current status so callers can reconcile optimistic state.
"""

from typing import Any, Dict, Optional


class AchievementError(Exception):
    """Base class for all lifecycle engine errors.

    Attributes:
        code: Stable error code for programmatic handling
        message: Human-readable error description
        context: Extra fields merged into the serialized error
    """

    code = "ACHIEVEMENT_ERROR"
    status_code = 500

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}
        super().__init__(f"{self.code}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {"error": self.code, "message": self.message, **self.context}


class ValidationError(AchievementError):
    """Malformed input, unknown enum value or empty required field."""

    code = "VALIDATION_ERROR"
    status_code = 400


class UnauthenticatedError(AchievementError):
    """The caller identity is missing."""

    code = "UNAUTHENTICATED"
    status_code = 401


class AccessDeniedError(AchievementError):
    """Role, ownership or mentorship check failed."""

    code = "ACCESS_DENIED"
    status_code = 403


class NotFoundError(AchievementError):
    """The record is genuinely absent."""

    code = "NOT_FOUND"
    status_code = 404


class InvalidTransitionError(AchievementError):
    """The status guard of an operation is not satisfied."""

    code = "INVALID_TRANSITION"
    status_code = 403

    def __init__(self, operation: str, current_status: str, required_status: str):
        self.operation = operation
        self.current_status = current_status
        super().__init__(
            f"Cannot {operation} an achievement in status '{current_status}'. "
            f"Required status: '{required_status}'",
            operation=operation,
            current_status=current_status,
            required_status=required_status,
        )


class ConflictError(AchievementError):
    """A conditional write lost a race, or a create collided on its id."""

    code = "CONFLICT"
    status_code = 409

    def __init__(self, message: str, current_status: Optional[str] = None, **context: Any):
        self.current_status = current_status
        super().__init__(message, current_status=current_status, **context)


class DataIntegrityError(AchievementError):
    """A reference points to content that does not exist."""

    code = "DATA_INTEGRITY_ERROR"
    status_code = 500


class StoreError(AchievementError):
    """I/O failure in one of the backing stores."""

    code = "STORE_ERROR"
    status_code = 500


class StoreTimeoutError(StoreError):
    """A store call was attempted after its deadline expired."""

    code = "STORE_TIMEOUT"
