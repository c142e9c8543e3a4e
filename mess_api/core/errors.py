"""
Error taxonomy shared by services and the HTTP boundary.

Every expected failure is raised as one of these at the point of detection
and travels unchanged to the caller. The HTTP layer maps ``http_status`` and
renders ``to_dict()``; nothing store specific is exposed.
"""

from typing import Any, Mapping, Optional


class AppError(Exception):
    """Base class for expected, caller-visible failures."""

    kind = "error"
    http_status = 500

    def __init__(self, message: str = "Application error", details: Optional[Mapping[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.details:
            payload["details"] = dict(self.details)
        return payload

    def __str__(self) -> str:
        return self.message


class NotFoundError(AppError):
    """Entry or user does not exist."""

    kind = "not_found"
    http_status = 404

    def __init__(self, message: str = "Not found", details: Optional[Mapping[str, Any]] = None):
        super().__init__(message, details)


class ConflictError(AppError):
    """Duplicate (user, date) entry or a repeated state transition."""

    kind = "conflict"
    http_status = 409

    def __init__(self, message: str = "Conflict", details: Optional[Mapping[str, Any]] = None):
        super().__init__(message, details)


class InvalidInputError(AppError):
    """Malformed id, bad amount, empty items, unknown enum value."""

    kind = "invalid_input"
    http_status = 400

    def __init__(self, message: str = "Invalid input", details: Optional[Mapping[str, Any]] = None):
        super().__init__(message, details)


class ForbiddenError(AppError):
    """Caller may not act on this resource."""

    kind = "forbidden"
    http_status = 403

    def __init__(self, message: str = "Forbidden", details: Optional[Mapping[str, Any]] = None):
        super().__init__(message, details)


class UnprocessableError(AppError):
    """Request is well formed but breaks a business rule."""

    kind = "unprocessable"
    http_status = 422

    def __init__(self, message: str = "Unprocessable", details: Optional[Mapping[str, Any]] = None):
        super().__init__(message, details)
