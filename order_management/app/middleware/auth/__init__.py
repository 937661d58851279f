"""
Authentication middleware package (the credential gate).
"""

from .auth_middleware import (
    AuthenticatedUser,
    CredentialGate,
    OrderAuthMiddleware,
    admin_user,
    authenticated_user,
    extract_credential,
    require_role,
    setup_order_auth_middleware,
)

__all__ = [
    "AuthenticatedUser",
    "CredentialGate",
    "OrderAuthMiddleware",
    "admin_user",
    "authenticated_user",
    "extract_credential",
    "require_role",
    "setup_order_auth_middleware",
]
