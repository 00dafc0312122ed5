"""
Shlink Dashboard exception hierarchy.

All custom exceptions inherit from DashboardException so callers can
catch a single base type when they want a broad safety net.  The API
layer maps each subclass to an HTTP status via ``status_code``.
"""

from typing import Dict, Optional


class DashboardException(Exception):
    """Base exception for all dashboard errors."""

    status_code: int = 500
    code: str = "internal_error"


class NotFoundError(DashboardException, LookupError):
    """Raised when a referenced entity (user, server, ...) does not exist."""

    status_code = 404
    code = "not_found"


class ValidationError(DashboardException, ValueError):
    """Raised when provided data breaks a business or format rule.

    Attributes:
        invalid_fields: Field name to error message for each rejected field.
    """

    status_code = 400
    code = "invalid_data"

    def __init__(
        self,
        message: str = "Provided data is invalid",
        invalid_fields: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.invalid_fields: Dict[str, str] = invalid_fields or {}


class DuplicatedEntryError(DashboardException):
    """Raised when a unique field collides with an existing row."""

    status_code = 409
    code = "duplicated_entry"

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        super().__init__(message or f'Duplicated value for field "{field}"')
        self.field = field


class IncorrectPasswordError(DashboardException):
    """Raised when a password does not match the stored hash."""

    status_code = 401
    code = "incorrect_password"

    def __init__(self, username: Optional[str] = None) -> None:
        message = (
            f"Incorrect password for user {username}"
            if username
            else "Current password is invalid"
        )
        super().__init__(message)
        self.username = username


class PasswordMismatchError(DashboardException):
    """Raised when a new password and its confirmation differ."""

    status_code = 400
    code = "password_mismatch"

    def __init__(self) -> None:
        super().__init__("Passwords do not match")


class NoTempPasswordError(DashboardException):
    """Raised when changing a temporary password that is not temporary."""

    status_code = 400
    code = "no_temp_password"

    def __init__(self) -> None:
        super().__init__(
            "Current password is not temporary. Change your password from the profile"
        )


class ConfigurationError(DashboardException, ValueError):
    """Raised when configuration is invalid or incomplete."""


class OidcError(DashboardException):
    """Raised when the OIDC flow cannot be completed."""

    status_code = 401
    code = "oidc_error"


class ShlinkApiError(DashboardException):
    """Raised when a remote Shlink server answers with an error.

    Attributes:
        upstream_status: HTTP status returned by the Shlink server.
    """

    status_code = 502
    code = "shlink_api_error"

    def __init__(self, message: str, upstream_status: Optional[int] = None) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status
