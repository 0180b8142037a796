"""Error taxonomy shared by services and the HTTP boundary."""

from typing import Any


class DispatchError(Exception):
    """Base class for errors that map to a structured API response."""

    category = "internal_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str, *, fields: dict[str, str] | None = None):
        super().__init__(message)
        self.message = message
        self.fields = fields or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": False,
            "error": self.category,
            "message": self.message,
        }
        if self.fields:
            body["fields"] = self.fields
        if self.retryable:
            body["retryable"] = True
        return body


class InputValidationError(DispatchError):
    """Malformed or missing input, with per-field messages."""

    category = "validation_error"
    status_code = 400


class AuthError(DispatchError):
    """Missing, invalid or expired credential."""

    category = "auth_error"
    status_code = 401


class ForbiddenError(DispatchError):
    category = "forbidden"
    status_code = 403


class NotFoundError(DispatchError):
    category = "not_found"
    status_code = 404


class ConflictError(DispatchError):
    """A state invariant would be violated."""

    category = "conflict"
    status_code = 409


class DuplicateError(ConflictError):
    pass


class InvalidTransitionError(ConflictError):
    pass


class InternalError(DispatchError):
    pass


class StorageUnavailableError(InternalError):
    """Storage timed out or dropped the connection; safe to retry."""

    category = "storage_unavailable"
    status_code = 503
    retryable = True
