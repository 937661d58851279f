"""
Unit tests for AuthService registration and login.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from order_management.app.core.exceptions import Conflict, Forbidden, InvalidLogin
from order_management.app.core.password_security import SecurityUtils
from order_management.app.schemas.user import UserLoginRequest, UserRegistrationRequest
from order_management.app.services.auth_service import AuthService
from order_management.app.utils.jwt_handler import JWTHandler

SECRET = "unit-test-secret"


def stored_user(**overrides):
    values = {
        "id": 3,
        "name": "Alice",
        "email": "alice@example.com",
        "password_hash": SecurityUtils.hash_password("secret123"),
        "role": "user",
        "blocked": False,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def service():
    session = MagicMock()
    session.rollback = AsyncMock()
    auth_service = AuthService(session, JWTHandler(secret_key=SECRET))
    auth_service.user_repository = MagicMock()
    return auth_service


@pytest.mark.asyncio
async def test_register_creates_regular_user(service):
    service.user_repository.query_email = AsyncMock(return_value=None)
    service.user_repository.create = AsyncMock(
        side_effect=lambda user: SimpleNamespace(id=3, email=user.email, role=user.role)
    )

    user, token = await service.register_user(
        UserRegistrationRequest(name=" Alice ", email="Alice@Example.com", password="secret123")
    )

    created = service.user_repository.create.await_args.args[0]
    assert created.name == "Alice"
    assert created.email == "alice@example.com"
    assert created.role == "user"
    assert created.password_hash != "secret123"
    assert JWTHandler(secret_key=SECRET).decode_token(token).user_id == 3


@pytest.mark.asyncio
async def test_register_duplicate_email(service):
    service.user_repository.query_email = AsyncMock(return_value=stored_user())
    service.user_repository.create = AsyncMock()

    with pytest.raises(Conflict) as exc_info:
        await service.register_user(
            UserRegistrationRequest(name="Alice", email="alice@example.com", password="secret123")
        )

    assert exc_info.value.message == "Email already exists"
    service.user_repository.create.assert_not_called()


@pytest.mark.asyncio
async def test_login_success(service):
    service.user_repository.query_email = AsyncMock(return_value=stored_user())

    user, token = await service.authenticate_user(
        UserLoginRequest(email="alice@example.com", password="secret123")
    )

    assert user.id == 3
    token_data = JWTHandler(secret_key=SECRET).decode_token(token)
    assert token_data.email == "alice@example.com"


@pytest.mark.asyncio
@pytest.mark.parametrize("found", [True, False])
async def test_login_invalid_credentials(service, found):
    service.user_repository.query_email = AsyncMock(
        return_value=stored_user() if found else None
    )

    with pytest.raises(InvalidLogin) as exc_info:
        await service.authenticate_user(
            UserLoginRequest(email="alice@example.com", password="wrong-password")
        )

    assert exc_info.value.message == "Invalid credentials"


@pytest.mark.asyncio
async def test_login_blocked_user(service):
    service.user_repository.query_email = AsyncMock(return_value=stored_user(blocked=True))

    with pytest.raises(Forbidden) as exc_info:
        await service.authenticate_user(
            UserLoginRequest(email="alice@example.com", password="secret123")
        )

    assert exc_info.value.status_code == 403
    assert exc_info.value.message == "User is blocked"
