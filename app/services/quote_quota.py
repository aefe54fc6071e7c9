"""
Rolling 24-hour call quota for the upstream quote provider
"""

import logging
import time
import uuid
from collections import deque
from typing import Callable, Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 24 * 60 * 60


class QuoteQuota:
    """Interface for the provider call budget."""

    async def can_make_call(self) -> bool:
        raise NotImplementedError

    async def record_call(self) -> None:
        raise NotImplementedError

    async def remaining(self) -> int:
        raise NotImplementedError


class MemoryQuoteQuota(QuoteQuota):
    """In-process rolling window of call timestamps."""

    def __init__(self, max_calls: int = 500, window_seconds: int = WINDOW_SECONDS,
                 time_fn: Callable[[], float] = time.time):
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._time = time_fn
        self._calls = deque()

    def _prune(self) -> None:
        cutoff = self._time() - self.window_seconds
        while self._calls and self._calls[0] <= cutoff:
            self._calls.popleft()

    async def can_make_call(self) -> bool:
        self._prune()
        return len(self._calls) < self.max_calls

    async def record_call(self) -> None:
        self._calls.append(self._time())

    async def remaining(self) -> int:
        self._prune()
        return max(0, self.max_calls - len(self._calls))


class RedisQuoteQuota(QuoteQuota):
    """
    Rolling window stored in a Redis sorted set so that every API and
    worker process shares one budget.
    """

    def __init__(self, redis_client: redis.Redis, max_calls: int = 500,
                 window_seconds: int = WINDOW_SECONDS, key: str = "quote_api:calls",
                 time_fn: Callable[[], float] = time.time):
        self.redis = redis_client
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self.key = key
        self._time = time_fn

    async def _count(self) -> int:
        now = self._time()
        await self.redis.zremrangebyscore(self.key, 0, now - self.window_seconds)
        return await self.redis.zcard(self.key)

    async def can_make_call(self) -> bool:
        try:
            return await self._count() < self.max_calls
        except redis.RedisError as e:
            # Without the shared counter we cannot prove budget is left
            logger.warning(f"Quote quota check failed, treating as exhausted: {e}")
            return False

    async def record_call(self) -> None:
        now = self._time()
        try:
            await self.redis.zadd(self.key, {f"{now}:{uuid.uuid4().hex[:8]}": now})
            await self.redis.expire(self.key, self.window_seconds)
        except redis.RedisError as e:
            logger.warning(f"Failed to record quote API call: {e}")

    async def remaining(self) -> int:
        try:
            return max(0, self.max_calls - await self._count())
        except redis.RedisError as e:
            logger.warning(f"Quote quota lookup failed: {e}")
            return 0


def build_quote_quota(backend: str, max_calls: int, redis_client: Optional[redis.Redis] = None) -> QuoteQuota:
    if backend == "redis":
        if redis_client is None:
            from app.core.redis_client import redis_client as default_client
            redis_client = default_client
        return RedisQuoteQuota(redis_client, max_calls=max_calls)
    return MemoryQuoteQuota(max_calls=max_calls)
