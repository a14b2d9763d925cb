"""
core/errors.py -- Domain error taxonomy shared by every layer.

Stores and auth helpers raise these; api/main.py owns the single exception
handler that turns them into the standard {"error": {...}} envelope. Route
handlers therefore never build error responses by hand for domain failures.

Messages are user-facing. AuthError messages stay generic on purpose so a
response never reveals whether an email is registered. NotFoundError is used
for both "does not exist" and "exists but is not visible to you".

Layer rule: core/ is the kernel. No imports from api/, auth/, protocols/, or suggest/.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for every error with a defined HTTP mapping."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    default_message = "Request validation failed."


class PolicyError(ValidationError):
    """Password does not satisfy the strength policy."""

    code = "weak_password"


class AuthError(AppError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required."


class InvalidCredentialsError(AuthError):
    code = "bad_credentials"
    default_message = "Invalid email or password."


class ForbiddenError(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden."


class AccountLockedError(ForbiddenError):
    code = "account_locked"
    default_message = "Account locked. Too many failed attempts. Please try again in 15 minutes."


class PendingApprovalError(ForbiddenError):
    code = "pending_approval"
    default_message = "Account pending approval."


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Not found."


class ConflictError(AppError):
    status_code = 409
    code = "conflict"
    default_message = "The request conflicts with existing data."


class QuotaExceededError(AppError):
    status_code = 429
    code = "quota_exceeded"
    default_message = "Usage limit reached."


class InternalError(AppError):
    pass


class FederationError(InternalError):
    """The identity provider round-trip failed after state verification."""

    code = "federation_failed"
    default_message = "External login failed."


class SuggestionError(InternalError):
    code = "suggestion_failed"
    default_message = "Action suggestion failed."
