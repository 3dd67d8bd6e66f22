"""Tests for the Redis idempotency helpers."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from auction_settlement.infrastructure import redis_client
from auction_settlement.infrastructure.redis_client import (
    claim_idempotency,
    get_redis,
    release_idempotency,
)


class TestIdempotency:
    @pytest.mark.asyncio
    async def test_first_claim_succeeds(self) -> None:
        redis = AsyncMock()
        redis.set.return_value = True

        assert await claim_idempotency("payment:evt-1", redis=redis) is True

        args, kwargs = redis.set.call_args
        assert args == ("idempotency:payment:evt-1", "1")
        assert kwargs["nx"] is True
        assert kwargs["ex"] > 0

    @pytest.mark.asyncio
    async def test_second_claim_is_a_duplicate(self) -> None:
        redis = AsyncMock()
        redis.set.return_value = None
        assert await claim_idempotency("payment:evt-1", redis=redis) is False

    @pytest.mark.asyncio
    async def test_release(self) -> None:
        redis = AsyncMock()
        await release_idempotency("payment:evt-1", redis=redis)
        redis.delete.assert_awaited_once_with("idempotency:payment:evt-1")

    @pytest.mark.asyncio
    async def test_uses_module_client_when_none_given(self) -> None:
        redis = AsyncMock()
        redis.set.return_value = True
        with patch.object(redis_client, "_redis_client", redis):
            assert await claim_idempotency("payment:evt-2") is True
        redis.set.assert_awaited_once()


class TestClientLifecycle:
    def test_get_redis_before_init(self) -> None:
        with patch.object(redis_client, "_redis_client", None):
            with pytest.raises(RuntimeError, match="not initialized"):
                get_redis()

    @pytest.mark.asyncio
    async def test_close_resets_singleton(self) -> None:
        redis = AsyncMock()
        with patch.object(redis_client, "_redis_client", redis):
            await redis_client.close_redis()
            assert redis_client._redis_client is None
        redis.aclose.assert_awaited_once()
