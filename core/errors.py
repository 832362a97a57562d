"""
core/errors.py -- Domain error kinds for the user directory.

Every failure a handler can report to a browser is one of these classes. Each
carries a stable machine-readable code (sent as the X-Error-Code header), the
user-facing message, and the HTTP status used by the generic exception handler
in api/main.py.

Layer rule: core/ is the kernel. No imports from api/, web/, auth/, or users/.
"""

from __future__ import annotations


class UserDirectoryError(Exception):
    """Base class for all domain failures."""

    code: str = "error"
    message: str = "Request failed."
    status_code: int = 400

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidCredentials(UserDirectoryError):
    code = "invalid_credentials"
    message = "Invalid credentials"
    status_code = 401


class AccountLocked(UserDirectoryError):
    code = "account_locked"
    message = "Your account is locked due to multiple failed login attempts. Please contact support."
    status_code = 423


class NotFound(UserDirectoryError):
    code = "not_found"
    message = "User not found"
    status_code = 404


class ValidationFailure(UserDirectoryError):
    """Input rejected before it reached the store (bad form data, duplicate email, bad upload)."""

    code = "validation_failure"
    message = "Invalid input."
    status_code = 400


class StoreUnavailable(UserDirectoryError):
    """The database could not be reached. Surfaces to the caller as a generic server error."""

    code = "store_unavailable"
    message = "Error processing request"
    status_code = 500
