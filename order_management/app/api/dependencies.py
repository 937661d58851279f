from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from order_management.app.core.database import DatabaseManager
from order_management.app.core.exceptions import ValidationFailed
from order_management.app.core.settings import OrderManagementSettings
from order_management.app.middleware.auth.auth_middleware import (
    admin_user,
    authenticated_user,
)
from order_management.app.services.auth_service import AuthService
from order_management.app.services.order_service import OrderService
from order_management.app.services.user_service import UserService
from order_management.app.storage.images import ImageStorage
from order_management.app.utils.jwt_handler import JWTHandler


# --------------------------------------------------------------
# Application Collaborators (wired by create_app)
# --------------------------------------------------------------
def get_settings_dep(request: Request) -> OrderManagementSettings:
    return request.app.state.settings


def get_jwt_handler(request: Request) -> JWTHandler:
    return request.app.state.jwt_handler


def get_image_storage(request: Request) -> ImageStorage:
    return request.app.state.storage


async def get_async_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Provide async database session"""

    database_manager: DatabaseManager = request.app.state.database_manager
    async with database_manager.async_session_maker() as session:
        yield session


# --------------------------------------------------------------
# Service Dependencies
# --------------------------------------------------------------
def get_auth_service(
    session: AsyncSession = Depends(get_async_session),
    jwt_handler: JWTHandler = Depends(get_jwt_handler),
) -> AuthService:
    return AuthService(session, jwt_handler)


def get_user_service(
    session: AsyncSession = Depends(get_async_session),
    storage: ImageStorage = Depends(get_image_storage),
) -> UserService:
    return UserService(session, storage)


def get_order_service(
    session: AsyncSession = Depends(get_async_session),
    storage: ImageStorage = Depends(get_image_storage),
    settings: OrderManagementSettings = Depends(get_settings_dep),
) -> OrderService:
    return OrderService(session, storage, max_images=settings.MAX_ORDER_IMAGES)


# --------------------------------------------------------------
# Path Parameters
# --------------------------------------------------------------
def validate_entity_id(raw: str, entity: str) -> int:
    """Path ids must be positive decimal integers, otherwise 400."""

    value = raw.strip()
    if not value.isascii() or not value.isdigit() or int(value) <= 0:
        raise ValidationFailed(f"Invalid {entity} ID format", details={"id": raw})
    return int(value)


def order_id_param(order_id: str) -> int:
    return validate_entity_id(order_id, "order")


def user_id_param(user_id: str) -> int:
    return validate_entity_id(user_id, "user")


SettingsDep = Depends(get_settings_dep)

CurrentUserDep = Depends(authenticated_user)
AdminUserDep = Depends(admin_user)

OrderIdDep = Depends(order_id_param)
UserIdDep = Depends(user_id_param)

AuthServiceDep = Depends(get_auth_service)
UserServiceDep = Depends(get_user_service)
OrderServiceDep = Depends(get_order_service)
