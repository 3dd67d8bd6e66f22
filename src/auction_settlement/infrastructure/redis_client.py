"""Redis client for payment webhook idempotency.

The gateway may deliver the same "payment confirmed" event more than once.
Each event id is claimed with SET NX before the orchestrator sees it; a
second delivery finds the key and is rejected as a duplicate.

Usage:
    from auction_settlement.infrastructure.redis_client import claim_idempotency

    if not await claim_idempotency(f"payment:{event_id}"):
        raise DuplicateOperationError(event_id)
"""

from __future__ import annotations

import redis.asyncio as aioredis

from auction_settlement.config import get_settings
from auction_settlement.logging_config import get_logger

logger = get_logger(__name__)

_redis_client: aioredis.Redis | None = None

_KEY_PREFIX = "idempotency:"


async def init_redis() -> aioredis.Redis:
    """Initialize and return the Redis client. Called during app startup."""
    global _redis_client
    settings = get_settings()
    _redis_client = aioredis.from_url(
        settings.redis_url,
        decode_responses=True,
    )
    # Verify connectivity
    await _redis_client.ping()
    logger.info("redis.connected", url=settings.redis_url)
    return _redis_client


def get_redis() -> aioredis.Redis:
    """Return the Redis client singleton. Must call init_redis() first."""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


async def close_redis() -> None:
    """Close the Redis connection. Called during app shutdown."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        logger.info("redis.disconnected")
        _redis_client = None


# --- Idempotency Helpers ---


async def claim_idempotency(
    key: str, value: str = "1", redis: aioredis.Redis | None = None
) -> bool:
    """Atomically claim an idempotency key.

    Returns True if the key was new (caller may proceed), False if it was
    already claimed (duplicate).
    """
    settings = get_settings()
    client = redis or get_redis()
    claimed = await client.set(
        f"{_KEY_PREFIX}{key}",
        value,
        ex=settings.redis_idempotency_ttl_seconds,
        nx=True,
    )
    return bool(claimed)


async def release_idempotency(key: str, redis: aioredis.Redis | None = None) -> None:
    """Give a key back so a delivery that was refused can be retried."""
    client = redis or get_redis()
    await client.delete(f"{_KEY_PREFIX}{key}")
