"""
Unit tests for the quote API call quota
"""

import pytest
from unittest.mock import AsyncMock

import redis.asyncio as redis

from app.services.quote_quota import MemoryQuoteQuota, RedisQuoteQuota


class FakeTime:
    def __init__(self, value=1_000_000.0):
        self.value = value

    def __call__(self):
        return self.value


class TestMemoryQuoteQuota:

    async def test_blocks_after_limit(self):
        quota = MemoryQuoteQuota(max_calls=2, time_fn=FakeTime())
        assert await quota.can_make_call()
        await quota.record_call()
        await quota.record_call()
        assert not await quota.can_make_call()
        assert await quota.remaining() == 0

    async def test_window_rolls(self):
        clock = FakeTime()
        quota = MemoryQuoteQuota(max_calls=1, time_fn=clock)
        await quota.record_call()
        clock.value += 24 * 60 * 60 - 1
        assert not await quota.can_make_call()
        clock.value += 1
        assert await quota.can_make_call()
        assert await quota.remaining() == 1


class TestRedisQuoteQuota:

    @pytest.mark.asyncio
    async def test_counts_from_sorted_set(self):
        client = AsyncMock()
        client.zcard.return_value = 3
        quota = RedisQuoteQuota(client, max_calls=5, time_fn=FakeTime(100000.0))

        assert await quota.can_make_call() is True
        assert await quota.remaining() == 2
        client.zremrangebyscore.assert_awaited_with("quote_api:calls", 0, 100000.0 - 86400)

    @pytest.mark.asyncio
    async def test_record_call_adds_member_and_expiry(self):
        client = AsyncMock()
        quota = RedisQuoteQuota(client, time_fn=FakeTime(42.0))
        await quota.record_call()
        args = client.zadd.await_args.args
        assert args[0] == "quote_api:calls"
        assert list(args[1].values()) == [42.0]
        client.expire.assert_awaited_once_with("quote_api:calls", 86400)

    @pytest.mark.asyncio
    async def test_redis_failure_treated_as_exhausted(self):
        client = AsyncMock()
        client.zremrangebyscore.side_effect = redis.ConnectionError("down")
        quota = RedisQuoteQuota(client)
        assert await quota.can_make_call() is False
        assert await quota.remaining() == 0
