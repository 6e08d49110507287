"""
auth/errors.py -- Domain exceptions raised by the account store and token service.

Every error carries a machine-readable code, a human message, and the HTTP
status the API layer should answer with. Stores raise these instead of
HTTPException so they stay usable outside a request (scripts, tests); the
exception handler in api/main.py turns them into the JSON envelope.

Layer rule: no imports from api/, forum/, or mailer/.
"""

from __future__ import annotations


class PortalError(Exception):
    """Base class for all expected, client-facing failures."""

    code = "error"
    message = "Request failed."
    status_code = 400

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class DuplicateName(PortalError):
    code = "duplicate_name"
    message = "An account with that name already exists."


class DuplicateEmail(PortalError):
    code = "duplicate_email"
    message = "An account with that email already exists."


class DuplicateProfileName(PortalError):
    code = "duplicate_profile_name"
    message = "Profile name exists, please choose another."


class InvalidCredentials(PortalError):
    code = "invalid_credentials"
    message = "Invalid name or password."


class InvalidToken(PortalError):
    """Missing, expired, malformed, or signature-invalid JWT."""

    code = "invalid_token"
    message = "Invalid token."
    status_code = 401


class TokenMismatch(PortalError):
    """Presented password reset token does not match the stored one."""

    code = "token_mismatch"
    message = "Invalid password reset token."
    status_code = 401


class TokenExpired(PortalError):
    code = "token_expired"
    message = "Password reset token has expired. Request a new one."


class EmailNotFound(PortalError):
    code = "email_not_found"
    message = "No account is registered with that email."


class NotFound(PortalError):
    code = "not_found"
    message = "Resource not found."
    status_code = 404
