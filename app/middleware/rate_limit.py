"""
Rate limiting middleware using a Redis fixed window per client
"""

import logging
import re
from typing import Dict, Optional, Tuple

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings

# Configure logging
logger = logging.getLogger(__name__)


class RateLimitConfig:
    """Rate limits per endpoint type"""

    # Joining debits balance; keep it slow
    CONTEST_JOIN_LIMITS = {
        "requests": 5,
        "window": 300,
    }

    PORTFOLIO_CREATE_LIMITS = {
        "requests": 10,
        "window": 300,
    }

    # Every quote request may spend upstream API quota
    QUOTE_LIMITS = {
        "requests": 30,
        "window": 60,
    }

    @classmethod
    def get_limits_for_endpoint(cls, endpoint_type: str) -> Dict[str, int]:
        """Get rate limits for specific endpoint type"""
        limits_map = {
            "contest_join": cls.CONTEST_JOIN_LIMITS,
            "portfolio_create": cls.PORTFOLIO_CREATE_LIMITS,
            "quotes": cls.QUOTE_LIMITS,
        }
        return limits_map.get(
            endpoint_type,
            {"requests": settings.rate_limit_requests, "window": settings.rate_limit_window_seconds},
        )


JOIN_PATH = re.compile(r"^/api/v1/contests/[^/]+/join$")


def endpoint_type_for(method: str, path: str) -> Optional[str]:
    """Classify a request; None means it is not rate limited."""
    if method == "POST" and JOIN_PATH.match(path):
        return "contest_join"
    if method == "POST" and path == "/api/v1/portfolios":
        return "portfolio_create"
    if method == "GET" and path == "/api/v1/stocks/quotes":
        return "quotes"
    return None


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware keyed by endpoint type and client IP"""

    def __init__(self, app, redis_client=None):
        super().__init__(app)
        self.redis_client = redis_client

    async def dispatch(self, request: Request, call_next):
        """Process request with rate limiting"""

        # Skip rate limiting if Redis is not available
        if not self.redis_client:
            return await call_next(request)

        endpoint_type = endpoint_type_for(request.method, request.url.path)
        if not endpoint_type:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        key = f"rate_limit:{endpoint_type}:{client_ip}"
        limits = RateLimitConfig.get_limits_for_endpoint(endpoint_type)

        is_allowed, retry_after = await self._check_rate_limit(key, limits)
        if not is_allowed:
            logger.warning(f"Rate limit exceeded for key: {key}")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "detail": "Rate limit exceeded",
                    "retry_after": retry_after
                },
                headers={"Retry-After": str(retry_after)}
            )

        response = await call_next(request)
        await self._record_request(key, limits["window"])
        return response

    async def _check_rate_limit(self, key: str, limits: Dict[str, int]) -> Tuple[bool, int]:
        """Check if request is within rate limit"""
        try:
            request_count = await self.redis_client.get(key)
            request_count = int(request_count) if request_count else 0

            if request_count >= limits["requests"]:
                ttl = await self.redis_client.ttl(key)
                retry_after = max(1, ttl) if ttl > 0 else limits["window"]
                return False, retry_after

            return True, 0

        except Exception as e:
            logger.error(f"Error checking rate limit for key {key}: {e}")
            # Allow request if rate limiting fails
            return True, 0

    async def _record_request(self, key: str, window: int):
        """Record a request for rate limiting"""
        try:
            pipe = self.redis_client.pipeline()
            pipe.incr(key)
            pipe.expire(key, window)
            await pipe.execute()

        except Exception as e:
            logger.error(f"Error recording request for key {key}: {e}")
