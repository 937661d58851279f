from typing import Any, Dict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from ..models.base import OrderManagementBase
from ..models.order import INVOICE_COUNTER, Counter
from ..utils.logging import get_order_logger

logger = get_order_logger("order_management.database")


def _mask_url(database_url: str) -> str:
    if "@" not in database_url:
        return database_url
    scheme, _, rest = database_url.partition("://")
    return f"{scheme}://***@{rest.split('@', 1)[1]}"


class DatabaseManager:
    """Owns the async engine and session factory for the service."""

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        pool_size: int = 20,
        max_overflow: int = 40,
    ) -> None:
        logger.info(
            "Initializing database manager",
            extra={
                "operation": "database_manager_init",
                "database_url": _mask_url(database_url),
                "echo": echo,
                "event_type": "database_manager_initialization",
            },
        )

        engine_kwargs: Dict[str, Any] = {"echo": echo, "future": True}

        if "sqlite" in database_url:
            # File-backed SQLite; a fresh connection per session keeps the
            # engine usable from any event loop
            engine_kwargs["poolclass"] = NullPool
            engine_kwargs["connect_args"] = {
                "timeout": 60,
                "check_same_thread": False,
            }
        else:
            engine_kwargs.update(
                {
                    "pool_size": pool_size,
                    "max_overflow": max_overflow,
                    "pool_timeout": 45,
                    "pool_recycle": 3600,
                    "pool_pre_ping": True,
                    "connect_args": {"command_timeout": 30},
                }
            )
            logger.info(
                "Configured PostgreSQL database settings",
                extra={
                    "database_type": "postgresql",
                    "pool_size": pool_size,
                    "max_overflow": max_overflow,
                },
            )

        self.async_engine = create_async_engine(database_url, **engine_kwargs)
        self.async_session_maker = async_sessionmaker(
            bind=self.async_engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def create_tables(self) -> None:
        """Create all tables that do not exist yet."""

        async with self.async_engine.begin() as conn:
            await conn.run_sync(OrderManagementBase.metadata.create_all, checkfirst=True)
        await self._seed_counters()
        logger.info(
            "Database tables created successfully",
            extra={"operation": "create_tables", "event_type": "database_tables_created"},
        )

    async def _seed_counters(self) -> None:
        """Insert the invoice counter row so concurrent orders only ever update it."""

        async with self.async_session_maker() as session:
            if await session.get(Counter, INVOICE_COUNTER) is not None:
                return
            session.add(Counter(name=INVOICE_COUNTER, seq=0))
            try:
                await session.commit()
            except IntegrityError:
                # Seeded by another instance starting at the same time
                await session.rollback()

    async def close(self) -> None:
        """Dispose the engine and its connections."""

        await self.async_engine.dispose()
        logger.info(
            "Database connections closed",
            extra={"operation": "database_close", "event_type": "database_shutdown"},
        )
