"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject database sessions,
services, collaborators, the Redis client, and configuration. Tests swap any
of them through app.dependency_overrides.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from functools import lru_cache

import redis.asyncio as aioredis
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auction_settlement.config import Settings, get_settings
from auction_settlement.domain.collaborators import NotificationDispatcher, ObjectStorage
from auction_settlement.infrastructure.database.engine import get_async_session
from auction_settlement.infrastructure.notifications import NotificationDispatcherFactory
from auction_settlement.infrastructure.redis_client import get_redis
from auction_settlement.infrastructure.storage import ObjectStorageFactory
from auction_settlement.services.invoice_service import InvoiceService
from auction_settlement.services.projection_service import ProjectionService


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a request."""
    async for session in get_async_session():
        yield session


def get_app_settings() -> Settings:
    """Provide the application settings."""
    return get_settings()


@lru_cache(maxsize=1)
def get_object_storage() -> ObjectStorage:
    """Provide the configured object storage adapter (one per process)."""
    return ObjectStorageFactory.create(get_settings())


@lru_cache(maxsize=1)
def get_notification_dispatcher() -> NotificationDispatcher:
    """Provide the configured notification dispatcher (one per process)."""
    return NotificationDispatcherFactory.create(get_settings())


def get_redis_client() -> aioredis.Redis | None:
    """Provide the Redis client, or None when Redis was unavailable at startup."""
    try:
        return get_redis()
    except RuntimeError:
        return None


async def get_invoice_service(
    session: AsyncSession = Depends(get_db_session),
    storage: ObjectStorage = Depends(get_object_storage),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    settings: Settings = Depends(get_app_settings),
) -> InvoiceService:
    return InvoiceService(session, storage, dispatcher, settings)


async def get_projection_service(
    session: AsyncSession = Depends(get_db_session),
) -> ProjectionService:
    return ProjectionService(session)
