from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.middleware.base import BaseHTTPMiddleware

from ...core.exceptions import (
    Forbidden,
    InvalidCredential,
    OrderManagementError,
    PrincipalNotFound,
    Unauthenticated,
    UpstreamFailure,
)
from ...models.user import Role
from ...repository.user_repository import UserRepository
from ...schemas.user import Principal
from ...utils.jwt_handler import JWTHandler
from ...utils.logging import get_order_logger

logger = get_order_logger("order_management.auth")

TOKEN_COOKIE = "token"

DEFAULT_EXCLUDE_PATHS = [
    "/",
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/uploads",
    "/api/users/register",
    "/api/users/login",
    "/api/users/auth/sign-up",
    "/api/users/auth/sign-in",
]


def extract_credential(request: Request) -> Optional[str]:
    """Return the bearer token of a request, or None.

    The ``Authorization: Bearer`` header takes precedence over a ``token``
    pair in the ``Cookie`` header.
    """
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header[len("Bearer ") :].strip()
        if token:
            return token

    cookie_header = request.headers.get("cookie")
    if cookie_header:
        for pair in cookie_header.split(";"):
            name, sep, value = pair.strip().partition("=")
            if sep and name == TOKEN_COOKIE and value:
                return value

    return None


class CredentialGate:
    """Resolves the credential of a request to a Principal."""

    def __init__(
        self,
        jwt_handler: JWTHandler,
        session_maker: async_sessionmaker[AsyncSession],
        reject_blocked: bool = False,
    ):
        self.jwt_handler = jwt_handler
        self.session_maker = session_maker
        self.reject_blocked = reject_blocked

    async def authenticate(self, request: Request) -> Principal:
        """Authenticate the request and bind the principal to its state.

        Raises:
            Unauthenticated: no credential present
            InvalidCredential: malformed, expired or wrongly signed token
            PrincipalNotFound: the token's user no longer exists
            Forbidden: user is blocked (only with ``reject_blocked``)
        """
        token = extract_credential(request)
        if not token:
            raise Unauthenticated()

        try:
            token_data = self.jwt_handler.decode_token(token)
        except ValueError as e:
            raise InvalidCredential(details={"reason": str(e)})

        try:
            async with self.session_maker() as session:
                user = await UserRepository(session).query_id(token_data.user_id)
        except SQLAlchemyError as e:
            raise UpstreamFailure("Error loading user", error=e)

        if user is None:
            raise PrincipalNotFound()

        principal = Principal.model_validate(user)
        if self.reject_blocked and principal.blocked:
            raise Forbidden("User is blocked")

        request.state.principal = principal
        request.state.user_id = principal.id
        request.state.user_role = principal.role.value
        request.state.token = token
        return principal


def auth_error_response(request: Request, exc: OrderManagementError) -> JSONResponse:
    """Error envelope for requests rejected before routing."""
    error = {
        "type": exc.error_type,
        "message": exc.message,
        "correlation_id": getattr(request.state, "correlation_id", "unknown"),
        "user_id": getattr(request.state, "user_id", "anonymous"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
        "method": request.method,
    }
    if exc.details:
        error["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content={"error": error})


class OrderAuthMiddleware(BaseHTTPMiddleware):
    """Rejects unauthenticated requests to protected paths before routing."""

    def __init__(
        self,
        app: Any,
        gate: CredentialGate,
        exclude_paths: Optional[list[str]] = None,
    ):
        super().__init__(app)
        self.gate = gate
        self.exclude_paths = (
            exclude_paths if exclude_paths is not None else DEFAULT_EXCLUDE_PATHS
        )

    def _should_skip_auth(self, path: str) -> bool:
        for exclude_path in self.exclude_paths:
            if path == exclude_path:
                return True
            # "/" only ever matches exactly
            if exclude_path != "/" and path.startswith(exclude_path.rstrip("/") + "/"):
                return True
        return False

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.method == "OPTIONS" or self._should_skip_auth(request.url.path):
            return await call_next(request)

        correlation_id = getattr(request.state, "correlation_id", "unknown")

        try:
            principal = await self.gate.authenticate(request)
        except OrderManagementError as e:
            logger.warning(
                f"Authentication failed: {e.message}",
                extra={
                    "correlation_id": correlation_id,
                    "path": request.url.path,
                    "method": request.method,
                    "reason": e.details.get("reason", e.message),
                    "event_type": "auth_failed",
                },
            )
            return auth_error_response(request, e)
        except Exception as e:
            logger.error(
                f"Authentication error: {str(e)}",
                extra={
                    "correlation_id": correlation_id,
                    "path": request.url.path,
                    "method": request.method,
                    "event_type": "auth_error",
                },
                exc_info=True,
            )
            return auth_error_response(
                request, UpstreamFailure("Authentication system error", error=e)
            )

        logger.info(
            "Request authenticated",
            extra={
                "correlation_id": correlation_id,
                "user_id": principal.id,
                "user_role": principal.role.value,
                "path": request.url.path,
                "method": request.method,
                "event_type": "auth_success",
            },
        )
        return await call_next(request)


class AuthenticatedUser:
    """Dependency returning the bound principal, optionally role-gated."""

    def __init__(self, required_role: Optional[Role] = None):
        self.required_role = required_role

    async def __call__(self, request: Request) -> Principal:
        principal: Optional[Principal] = getattr(request.state, "principal", None)
        if principal is None:
            raise Unauthenticated()

        if self.required_role is not None and principal.role != self.required_role:
            raise Forbidden(
                f"{self.required_role.value.capitalize()} access required",
                details={"required_role": self.required_role.value},
            )

        return principal


def require_role(role: Role) -> AuthenticatedUser:
    return AuthenticatedUser(required_role=role)


def setup_order_auth_middleware(
    app: FastAPI,
    gate: CredentialGate,
    exclude_paths: Optional[list[str]] = None,
) -> None:
    """Install the credential gate on the application."""

    app.add_middleware(OrderAuthMiddleware, gate=gate, exclude_paths=exclude_paths)

    logger.info(
        "Authentication middleware configured",
        extra={
            "excluded_paths": exclude_paths or DEFAULT_EXCLUDE_PATHS,
            "reject_blocked": gate.reject_blocked,
            "event_type": "auth_middleware_setup",
        },
    )


authenticated_user = AuthenticatedUser()
admin_user = require_role(Role.ADMIN)
