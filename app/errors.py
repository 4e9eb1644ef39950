"""
Service-layer error taxonomy.

Services raise the most specific subclass at the point of detection and
never recover locally. ``create_app`` registers a single error handler
that renders any ``ServiceError`` as a JSON body with the matching HTTP
status, so route handlers do not need their own try/except blocks.

All classes subclass ``ValueError`` so older call sites that catch
``ValueError`` keep working.
"""

from typing import Any


class ServiceError(ValueError):
    """Base class for user-visible service errors."""

    status_code = 400
    code = "SERVICE_ERROR"

    def __init__(
        self,
        message: str,
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error into the API error envelope."""
        return {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            },
        }


class ValidationError(ServiceError):
    """Malformed or out-of-range input."""

    status_code = 400
    code = "VALIDATION_ERROR"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        """Build an error that points at a single input field."""
        return cls(message, details=[{"field": field, "message": message}])


class AuthenticationError(ServiceError):
    """The caller is not allowed to perform the action."""

    status_code = 403
    code = "AUTHENTICATION_ERROR"


class NotFoundError(ServiceError):
    """The referenced resource does not exist (or is hidden from the caller)."""

    status_code = 404
    code = "NOT_FOUND_ERROR"


class ConflictError(ServiceError):
    """The action clashes with current state: duplicates, quotas, transitions."""

    status_code = 409
    code = "CONFLICT_ERROR"
