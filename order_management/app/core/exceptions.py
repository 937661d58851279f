"""
Domain exceptions for the Order Management Service.

Each exception carries the HTTP status and error type it is rendered with by
the error handler, so services and middleware can raise them without
depending on HTTP classes.
"""

from typing import Any, Dict, Optional


class OrderManagementError(Exception):
    """Base exception for all service errors."""

    status_code: int = 500
    error_type: str = "internal_server_error"
    default_message: str = "An internal server error occurred"

    def __init__(
        self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None
    ):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class Unauthenticated(OrderManagementError):
    """Raised when a protected request carries no credential."""

    status_code = 401
    error_type = "authentication_error"
    default_message = "Authentication required"


class InvalidCredential(OrderManagementError):
    """Raised when a credential is malformed, expired or wrongly signed."""

    status_code = 401
    error_type = "authentication_error"
    default_message = "Invalid token"


class PrincipalNotFound(OrderManagementError):
    """Raised when a valid credential references an unknown user."""

    status_code = 401
    error_type = "authentication_error"
    default_message = "User not found"


class Forbidden(OrderManagementError):
    """Raised on role mismatch or access to another user's resource."""

    status_code = 403
    error_type = "authorization_error"
    default_message = "Access denied"


class ValidationFailed(OrderManagementError):
    """Raised when request input is malformed."""

    status_code = 400
    error_type = "validation_error"
    default_message = "Invalid request"


class Conflict(OrderManagementError):
    """Raised when a unique value is already taken."""

    status_code = 400
    error_type = "conflict_error"
    default_message = "Resource already exists"


class NotFound(OrderManagementError):
    """Raised when a referenced entity does not exist."""

    status_code = 404
    error_type = "not_found"
    default_message = "Resource not found"


class UpstreamFailure(OrderManagementError):
    """Raised when the database or object storage fails.

    The underlying error message is passed through in ``details["error"]``.
    """

    status_code = 500
    error_type = "upstream_error"
    default_message = "Upstream service failure"

    def __init__(self, message: Optional[str] = None, error: Optional[BaseException] = None):
        details = {"error": str(error)} if error is not None else {}
        super().__init__(message, details)


class InvalidLogin(OrderManagementError):
    """Raised when email/password do not match a stored user."""

    status_code = 401
    error_type = "authentication_error"
    default_message = "Invalid credentials"
