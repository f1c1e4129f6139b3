"""Health check endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text

from app.core.database import Database, get_database
from app.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: Literal["ok", "degraded", "unhealthy"]
    database: Literal["connected", "disconnected"] | None = None
    backend: str | None = None


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check endpoint.

    Returns:
        Health status response.
    """
    logger.debug("health.check_started")
    return HealthResponse(status="ok")


@router.get("/health/ready", response_model=HealthResponse)
async def readiness_check(
    database: Database = Depends(get_database),
) -> HealthResponse:
    """Readiness check including database connectivity.

    Args:
        database: Store handle dependency.

    Returns:
        Health status with database state and SQL backend name.
    """
    logger.debug("health.readiness_check_started")
    backend = database.engine.dialect.name

    try:
        async with database.session() as db:
            await db.execute(text("SELECT 1"))
        logger.info("health.database_connected", backend=backend)
        return HealthResponse(status="ok", database="connected", backend=backend)
    except Exception as e:
        logger.error(
            "health.database_disconnected",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return HealthResponse(status="unhealthy", database="disconnected", backend=backend)
