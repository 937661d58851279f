"""
Health API endpoints
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from order_management.app.utils.logging import get_order_logger

logger = get_order_logger("order_management.health")

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    timestamp: str
    database: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Report service status and whether the database answers."""

    settings = request.app.state.settings
    database: Dict[str, Any] = {"status": "healthy"}
    try:
        async with request.app.state.database_manager.async_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        database = {"status": "unhealthy", "error": str(e)}

    return HealthResponse(
        status=database["status"],
        service=settings.APP_NAME,
        version=settings.APP_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
        database=database,
    )
