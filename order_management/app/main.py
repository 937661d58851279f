from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from order_management.app.api.v1.health import router as health_router
from order_management.app.api.v1.orders import router as order_router
from order_management.app.api.v1.users import router as user_router
from order_management.app.core.database import DatabaseManager
from order_management.app.core.settings import OrderManagementSettings, get_settings
from order_management.app.middleware.auth.auth_middleware import (
    DEFAULT_EXCLUDE_PATHS,
    CredentialGate,
    setup_order_auth_middleware,
)
from order_management.app.middleware.error.error_handler import (
    setup_order_error_handling,
)
from order_management.app.middleware.logging import setup_request_logging
from order_management.app.storage.images import (
    ImageStorage,
    LocalImageStorage,
    build_image_storage,
)
from order_management.app.utils.jwt_handler import JWTHandler
from order_management.app.utils.logging import setup_order_logging

BANNER = "Order Management API with Image Upload is running"


def _setup_application_logging(settings: OrderManagementSettings):
    environment = settings.ENVIRONMENT.lower()
    return setup_order_logging(
        "order_management",
        log_level=settings.LOG_LEVEL,
        enable_file_logging=environment in ["production", "staging"],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager for startup and shutdown."""

    logger = app.state.logger
    database_manager: DatabaseManager = app.state.database_manager

    logger.info(
        "Starting order management service",
        extra={
            "environment": app.state.settings.ENVIRONMENT,
            "debug_mode": app.state.settings.DEBUG,
            "service_version": app.state.settings.APP_VERSION,
        },
    )
    try:
        await database_manager.create_tables()
    except Exception as e:
        logger.error(
            "Failed to start order management service",
            exc_info=True,
            extra={"error_type": type(e).__name__},
        )
        raise

    logger.info("Order management service started successfully")
    yield

    await database_manager.close()
    logger.info("Order management service shutdown completed")


def create_app(
    settings: Optional[OrderManagementSettings] = None,
    database_manager: Optional[DatabaseManager] = None,
    storage: Optional[ImageStorage] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Every collaborator (settings, database, image storage, token signer) is
    built here or passed in, and shared with request handlers through
    ``app.state``.
    """

    settings = settings or get_settings()
    logger = _setup_application_logging(settings)

    database_manager = database_manager or DatabaseManager(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
    )
    storage = storage or build_image_storage(settings)
    jwt_handler = JWTHandler(
        secret_key=settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        default_expires=timedelta(days=settings.TOKEN_EXPIRE_DAYS),
    )

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )
    app.state.settings = settings
    app.state.logger = logger
    app.state.database_manager = database_manager
    app.state.storage = storage
    app.state.jwt_handler = jwt_handler

    gate = CredentialGate(
        jwt_handler,
        database_manager.async_session_maker,
        reject_blocked=settings.AUTH_REJECT_BLOCKED_USERS,
    )
    _setup_middleware(app, gate, settings)
    _setup_routers(app)
    _setup_uploads(app, storage)

    return app


def _setup_middleware(
    app: FastAPI, gate: CredentialGate, settings: OrderManagementSettings
) -> None:
    """Install middleware; the last one added runs first."""

    setup_order_auth_middleware(app, gate, exclude_paths=DEFAULT_EXCLUDE_PATHS)
    setup_request_logging(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_CREDENTIALS,
        allow_methods=settings.CORS_METHODS,
        allow_headers=settings.CORS_HEADERS,
    )
    app.state.logger.info(
        "CORS middleware configured",
        extra={
            "allowed_origins": len(settings.CORS_ORIGINS),
            "credentials_allowed": settings.CORS_CREDENTIALS,
        },
    )

    setup_order_error_handling(app)


def _setup_routers(app: FastAPI) -> None:
    """Configure all application routers"""

    routers_info: list[dict[str, Any]] = []

    @app.get("/", tags=["Health"])
    async def root() -> dict[str, str]:
        return {"message": BANNER}

    app.include_router(health_router, tags=["Health"])
    routers_info.append({"router": "health", "prefix": ""})

    app.include_router(user_router)
    routers_info.append({"router": "users", "prefix": user_router.prefix})

    app.include_router(order_router)
    routers_info.append({"router": "orders", "prefix": order_router.prefix})

    app.state.logger.info(
        "API routes configured",
        extra={"total_routers": len(routers_info), "routers": routers_info},
    )


def _setup_uploads(app: FastAPI, storage: ImageStorage) -> None:
    """Serve locally stored images under their URL prefix."""

    if not isinstance(storage, LocalImageStorage):
        return
    Path(storage.root).mkdir(parents=True, exist_ok=True)
    app.mount(
        storage.url_prefix,
        StaticFiles(directory=str(storage.root)),
        name="uploads",
    )


app = create_app()
