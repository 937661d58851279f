from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Query, Request, status
from fastapi.responses import Response

from order_management.app.api.dependencies import (
    AdminUserDep,
    AuthServiceDep,
    CurrentUserDep,
    SettingsDep,
    UserIdDep,
    UserServiceDep,
)
from order_management.app.core.settings import OrderManagementSettings
from order_management.app.middleware.auth.auth_middleware import TOKEN_COOKIE
from order_management.app.schemas.user import (
    AuthTokenResponse,
    CurrentUserResponse,
    MessageResponse,
    Principal,
    SignInResponse,
    SuccessResponse,
    UserListResponse,
    UserLoginRequest,
    UserRegistrationRequest,
    UserResponse,
    UserSummary,
)
from order_management.app.services.auth_service import AuthService
from order_management.app.services.listing import parse_page
from order_management.app.services.user_service import UserService
from order_management.app.utils.logging import get_order_logger

logger = get_order_logger("order_management.users_api")
router = APIRouter(prefix="/api/users", tags=["users"])


def _set_token_cookie(
    response: Response, token: str, settings: OrderManagementSettings
) -> None:
    response.set_cookie(
        key=TOKEN_COOKIE,
        value=token,
        max_age=settings.token_max_age_seconds,
        httponly=True,
        secure=bool(settings.COOKIE_SECURE),
        samesite="none",
    )


# --------------------------------------------------------------
# Authentication
# --------------------------------------------------------------


@router.post(
    "/register", response_model=AuthTokenResponse, status_code=status.HTTP_201_CREATED
)
async def register(
    data: UserRegistrationRequest,
    service: AuthService = AuthServiceDep,
) -> AuthTokenResponse:
    user, token = await service.register_user(data)
    return AuthTokenResponse(
        message="User registered successfully",
        token=token,
        user=UserSummary.model_validate(user),
    )


@router.post("/login", response_model=AuthTokenResponse)
async def login(
    data: UserLoginRequest,
    service: AuthService = AuthServiceDep,
) -> AuthTokenResponse:
    user, token = await service.authenticate_user(data)
    return AuthTokenResponse(
        message="Login successful",
        token=token,
        user=UserSummary.model_validate(user),
    )


@router.post(
    "/auth/sign-up", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED
)
async def sign_up(
    data: UserRegistrationRequest,
    response: Response,
    service: AuthService = AuthServiceDep,
    settings: OrderManagementSettings = SettingsDep,
) -> SuccessResponse:
    _, token = await service.register_user(data)
    _set_token_cookie(response, token, settings)
    return SuccessResponse()


@router.post("/auth/sign-in", response_model=SignInResponse)
async def sign_in(
    data: UserLoginRequest,
    response: Response,
    service: AuthService = AuthServiceDep,
    settings: OrderManagementSettings = SettingsDep,
) -> SignInResponse:
    user, token = await service.authenticate_user(data)
    _set_token_cookie(response, token, settings)
    return SignInResponse(token=token, user=UserSummary.model_validate(user))


@router.post("/auth/sign-out", response_model=SuccessResponse)
async def sign_out(
    response: Response,
    principal: Principal = CurrentUserDep,
    settings: OrderManagementSettings = SettingsDep,
) -> SuccessResponse:
    response.delete_cookie(
        key=TOKEN_COOKIE,
        httponly=True,
        secure=bool(settings.COOKIE_SECURE),
        samesite="none",
    )
    logger.info("User signed out", extra={"user_id": principal.id})
    return SuccessResponse()


@router.get("/me", response_model=CurrentUserResponse)
async def me(
    request: Request,
    principal: Principal = CurrentUserDep,
) -> CurrentUserResponse:
    return CurrentUserResponse(
        user=principal, token=getattr(request.state, "token", None)
    )


# --------------------------------------------------------------
# User Management (admin)
# --------------------------------------------------------------


@router.get("/", response_model=UserListResponse)
async def list_users(
    admin: Principal = AdminUserDep,
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    service: UserService = UserServiceDep,
    settings: OrderManagementSettings = SettingsDep,
) -> UserListResponse:
    result = await service.list_users(
        {"search": search},
        parse_page(
            page,
            limit,
            default_limit=settings.DEFAULT_PAGE_SIZE,
            max_limit=settings.MAX_PAGE_SIZE,
        ),
    )
    return UserListResponse(**result)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    admin: Principal = AdminUserDep,
    user_id: int = UserIdDep,
    body: Dict[str, Any] = Body(...),
    service: UserService = UserServiceDep,
) -> UserResponse:
    user = await service.update_user(user_id, body)
    logger.info(
        "User updated by admin", extra={"user_id": user_id, "admin_id": admin.id}
    )
    return UserResponse(user=user)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    admin: Principal = AdminUserDep,
    user_id: int = UserIdDep,
    service: UserService = UserServiceDep,
) -> MessageResponse:
    await service.delete_user(user_id)
    logger.info(
        "User deleted by admin", extra={"user_id": user_id, "admin_id": admin.id}
    )
    return MessageResponse(message="User deleted successfully")
