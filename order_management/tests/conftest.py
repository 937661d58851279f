"""
Pytest configuration and fixtures for order management tests.
"""

import asyncio
import os
import tempfile
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import pytest
from fastapi.testclient import TestClient

# Set up test environment variables before importing anything else
_TEST_DIR = tempfile.mkdtemp(prefix="order_management_test_")
os.environ.setdefault("APP_NAME", "Order Management API Test")
os.environ.setdefault("APP_VERSION", "1.0.0")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault(
    "DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'default.db')}"
)
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("UPLOAD_DIR", os.path.join(_TEST_DIR, "uploads"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

from order_management.app.core.database import DatabaseManager
from order_management.app.core.password_security import SecurityUtils
from order_management.app.core.settings import OrderManagementSettings
from order_management.app.main import create_app
from order_management.app.models.order import Order, OrderStatus
from order_management.app.models.user import Role, User
from order_management.app.storage.images import LocalImageStorage
from order_management.app.utils.jwt_handler import JWTHandler

TEST_SECRET = "test-secret-key-for-testing-only"
TEST_PASSWORD = "secret123"


@pytest.fixture
def test_settings(tmp_path) -> OrderManagementSettings:
    """Settings pointing at a throwaway SQLite file and upload directory."""
    return OrderManagementSettings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        SECRET_KEY=TEST_SECRET,
        ENVIRONMENT="test",
        UPLOAD_DIR=str(tmp_path / "uploads"),
        MAX_PAGE_SIZE=50,
    )


@pytest.fixture
def test_database_manager(test_settings: OrderManagementSettings):
    """Create test database manager with its tables."""
    manager = DatabaseManager(database_url=test_settings.DATABASE_URL, echo=False)
    asyncio.run(manager.create_tables())
    yield manager
    asyncio.run(manager.close())


@pytest.fixture
def jwt_handler() -> JWTHandler:
    return JWTHandler(secret_key=TEST_SECRET)


@pytest.fixture
def app(test_settings, test_database_manager):
    return create_app(
        settings=test_settings,
        database_manager=test_database_manager,
        storage=LocalImageStorage(test_settings.UPLOAD_DIR),
    )


@pytest.fixture
def client(app):
    """FastAPI test client fixture (runs the app lifespan)."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def create_user(test_database_manager) -> Callable[..., User]:
    """Insert a user directly into the test database."""

    def _create(
        email: str = "user@example.com",
        name: str = "Test User",
        role: Role = Role.USER,
        blocked: bool = False,
        phone: Optional[str] = None,
        password: str = TEST_PASSWORD,
    ) -> User:
        async def _insert() -> User:
            async with test_database_manager.async_session_maker() as session:
                user = User(
                    name=name,
                    email=email,
                    password_hash=SecurityUtils.hash_password(password),
                    phone=phone,
                    role=role.value,
                    blocked=blocked,
                )
                session.add(user)
                await session.commit()
                await session.refresh(user)
                return user

        return asyncio.run(_insert())

    return _create


@pytest.fixture
def create_order(test_database_manager) -> Callable[..., Order]:
    """Insert an order directly, optionally with a fixed creation time."""

    counter = {"invoice": 1000}

    def _create(
        owner: User,
        name: str = "Seeded order",
        status: OrderStatus = OrderStatus.PENDING,
        payment_method: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Order:
        counter["invoice"] += 1
        values: Dict[str, Any] = {
            "name": name,
            "images": ["seed.png"],
            "invoice_no": str(counter["invoice"]),
            "address": "1 Main St",
            "price": 10.5,
            "phone_number": "555-0100",
            "details": "seeded",
            "payment_method": payment_method,
            "user_id": owner.id,
            "status": status.value,
        }
        if created_at is not None:
            values["created_at"] = created_at

        async def _insert() -> Order:
            async with test_database_manager.async_session_maker() as session:
                order = Order(**values)
                session.add(order)
                await session.commit()
                await session.refresh(order)
                return order

        return asyncio.run(_insert())

    return _create


@pytest.fixture
def auth_headers(jwt_handler) -> Callable[[User], Dict[str, str]]:
    def _headers(user: User) -> Dict[str, str]:
        token = jwt_handler.encode_token({"user_id": user.id, "email": user.email})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def regular_user(create_user) -> User:
    return create_user(email="alice@example.com", name="Alice", phone="555-1111")


@pytest.fixture
def admin(create_user) -> User:
    return create_user(email="admin@example.com", name="Admin", role=Role.ADMIN)
