"""
Shared async Redis client
"""

import logging
import os
import redis.asyncio as redis
from app.core.config import settings

logger = logging.getLogger(__name__)

REDIS_URL = os.environ.get("REDIS_URL", settings.redis_url)
redis_client = redis.from_url(REDIS_URL, decode_responses=True)


async def ping_redis() -> bool:
    """Return True when Redis answers a PING."""
    try:
        return bool(await redis_client.ping())
    except redis.RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        return False
