"""
Unit tests for the rate limiting middleware
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.middleware.rate_limit import RateLimitMiddleware, endpoint_type_for


def make_redis(count=None, ttl=42):
    client = MagicMock()
    client.get = AsyncMock(return_value=count)
    client.ttl = AsyncMock(return_value=ttl)
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[1, True])
    client.pipeline.return_value = pipe
    return client


def make_client(redis_client):
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, redis_client=redis_client)

    @app.post("/api/v1/contests/{contest_id}/join")
    async def join(contest_id: str):
        return {"joined": contest_id}

    @app.get("/api/v1/contests")
    async def contests():
        return []

    return TestClient(app)


class TestEndpointClassification:

    @pytest.mark.parametrize("method,path,expected", [
        ("POST", "/api/v1/contests/abc/join", "contest_join"),
        ("GET", "/api/v1/contests/abc/join", None),
        ("POST", "/api/v1/portfolios", "portfolio_create"),
        ("GET", "/api/v1/stocks/quotes", "quotes"),
        ("GET", "/api/v1/contests", None),
    ])
    def test_classification(self, method, path, expected):
        assert endpoint_type_for(method, path) == expected


class TestRateLimitMiddleware:

    def test_allows_under_limit_and_records(self):
        redis_client = make_redis(count="2")
        response = make_client(redis_client).post("/api/v1/contests/c1/join")

        assert response.status_code == 200
        redis_client.pipeline.return_value.incr.assert_called_once_with("rate_limit:contest_join:testclient")
        redis_client.pipeline.return_value.expire.assert_called_once_with("rate_limit:contest_join:testclient", 300)

    def test_blocks_over_limit(self):
        response = make_client(make_redis(count="5", ttl=42)).post("/api/v1/contests/c1/join")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "42"
        assert response.json()["retry_after"] == 42

    def test_unlimited_paths_skip_redis(self):
        redis_client = make_redis()
        assert make_client(redis_client).get("/api/v1/contests").status_code == 200
        redis_client.get.assert_not_awaited()

    def test_redis_errors_fail_open(self):
        redis_client = make_redis()
        redis_client.get.side_effect = ConnectionError("redis down")
        assert make_client(redis_client).post("/api/v1/contests/c1/join").status_code == 200

    def test_without_redis_passes_through(self):
        assert make_client(None).post("/api/v1/contests/c1/join").status_code == 200
