"""Health check endpoint.

Reports database and Redis connectivity plus the configured collaborator
backends. Redis being down degrades the service (payment idempotency falls
back to the database constraint) rather than failing it.
"""

from __future__ import annotations

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auction_settlement import __version__
from auction_settlement.api.deps import get_app_settings, get_db_session, get_redis_client
from auction_settlement.config import Settings
from auction_settlement.logging_config import get_logger
from auction_settlement.schemas.invoice import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the application and its dependencies.",
)
async def health_check(
    session: AsyncSession = Depends(get_db_session),
    redis: aioredis.Redis | None = Depends(get_redis_client),
    settings: Settings = Depends(get_app_settings),
) -> HealthResponse:
    try:
        await session.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as exc:
        db_status = f"unhealthy: {exc}"
        logger.error("health.db_check_failed", error=str(exc))

    if redis is None:
        redis_status = "unavailable"
    else:
        try:
            await redis.ping()
            redis_status = "healthy"
        except (RedisError, OSError) as exc:
            redis_status = f"unhealthy: {exc}"
            logger.error("health.redis_check_failed", error=str(exc))

    overall = "ok" if db_status == "healthy" and redis_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        redis=redis_status,
        storage_backend=settings.storage_backend,
        notification_backend=settings.notification_backend,
    )
