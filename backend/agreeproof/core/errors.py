"""Domain error taxonomy rendered by the API exception handlers."""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base error carrying an HTTP status, a machine code and optional data."""

    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        *,
        data: dict[str, Any] | None = None,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.data = data
        self.errors = errors
        super().__init__(self.message)


class ValidationFailed(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"

    def __init__(self, message: str | None = None, *, field: str | None = None) -> None:
        self.field = field
        errors = [{"field": field, "message": message}] if field else None
        super().__init__(message, errors=errors)


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class Forbidden(AppError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "You do not have access to this resource"


class Conflict(AppError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Request conflicts with the current state"


class DuplicateIdentifier(Conflict):
    code = "DUPLICATE_IDENTIFIER"
    default_message = "Duplicate agreement identifier generated. Please try again."


class InvalidTransition(Conflict):
    """A lifecycle operation refused because of the record's current state."""

    status_code = 400
    code = "INVALID_TRANSITION"
    default_message = "Operation not allowed in the agreement's current state"


class AlreadyConfirmed(InvalidTransition):
    code = "ALREADY_CONFIRMED"
    default_message = "Agreement is already confirmed"


class AlreadyPaid(InvalidTransition):
    code = "ALREADY_PAID"
    default_message = "Agreement is already marked as paid"


class Immutable(InvalidTransition):
    code = "AGREEMENT_IMMUTABLE"
    default_message = "Agreement cannot be modified"


class NotConfirmable(InvalidTransition):
    code = "AGREEMENT_NOT_CONFIRMABLE"
    default_message = "Agreement cannot be confirmed"


class NotPayable(InvalidTransition):
    code = "AGREEMENT_NOT_PAYABLE"
    default_message = "Cancelled agreements cannot be marked as paid"


class NotUpdatable(InvalidTransition):
    code = "AGREEMENT_NOT_UPDATABLE"
    default_message = "Cannot update confirmed or paid agreements"


class NotDeletable(InvalidTransition):
    code = "AGREEMENT_NOT_DELETABLE"
    default_message = "Cannot delete confirmed or paid agreements"


class NotCancellable(InvalidTransition):
    code = "AGREEMENT_NOT_CANCELLABLE"
    default_message = "Agreement can no longer be cancelled"


class AuthInvalid(AppError):
    status_code = 401
    code = "AUTH_INVALID"
    default_message = "Could not validate credentials"


class AuthExpired(AuthInvalid):
    code = "AUTH_EXPIRED"
    default_message = "Token expired"


class RateLimited(AppError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
    default_message = "Too many requests, please try again later."


__all__ = [
    "AlreadyConfirmed",
    "AlreadyPaid",
    "AppError",
    "AuthExpired",
    "AuthInvalid",
    "Conflict",
    "DuplicateIdentifier",
    "Forbidden",
    "Immutable",
    "InvalidTransition",
    "NotCancellable",
    "NotConfirmable",
    "NotDeletable",
    "NotFound",
    "NotPayable",
    "NotUpdatable",
    "RateLimited",
    "ValidationFailed",
]
