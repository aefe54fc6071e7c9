"""
StockLeague FastAPI Application
Main entry point for the application
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from app.core.config import settings
from app.core.metrics import REQUEST_COUNT, REQUEST_DURATION, ACTIVE_CONNECTIONS
from app.middleware.rate_limit import RateLimitMiddleware

# Sentry integration
if os.getenv("SENTRY_DSN"):
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
    from sentry_sdk.integrations.redis import RedisIntegration

    sentry_sdk.init(
        dsn=os.getenv("SENTRY_DSN"),
        integrations=[
            FastApiIntegration(),
            SqlalchemyIntegration(),
            RedisIntegration(),
        ],
        traces_sample_rate=0.1,
        environment=os.getenv("APP_ENV", settings.app_env),
    )

from app.api.health import router as health_router
from app.api.websocket import router as websocket_router
from app.api.v1.contest import router as contest_router
from app.api.v1.leaderboard import router as leaderboard_router
from app.api.v1.market import router as market_router
from app.api.v1.portfolio import router as portfolio_router
from app.api.v1.referral import router as referral_router
from app.api.v1.users import router as users_router
from app.services.container import Services, build_services
from app.storage.factory import build_storage

logging.basicConfig(
    level=logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build services on startup, start the scheduler, tear everything down on shutdown."""
    services: Optional[Services] = getattr(app.state, "services", None)
    if services is None:
        logger.info(f"Starting {settings.app_name} ({settings.app_env})")
        storage = await build_storage(settings)
        services = build_services(settings, storage)
        app.state.services = services
        await services.generator.initialize()
        if settings.enable_background_jobs:
            await services.scheduler.start()
    yield
    logger.info("Shutting down")
    await services.shutdown()


def create_app(services: Optional[Services] = None, rate_limit_redis=None) -> FastAPI:
    """
    Create the application.

    Passing ``services`` skips building them from settings and does not
    start background jobs; tests use this to run against in-memory state.
    ``rate_limit_redis`` overrides the Redis client used for rate limiting.
    """
    app = FastAPI(
        title="StockLeague API",
        description="Virtual stock market contests for students",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add rate limiting middleware
    if rate_limit_redis is None and settings.rate_limit_enabled:
        from app.core.redis_client import redis_client as rate_limit_redis
    app.add_middleware(RateLimitMiddleware, redis_client=rate_limit_redis)

    # Add metrics middleware
    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start_time = time.time()
        ACTIVE_CONNECTIONS.inc()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration = time.time() - start_time
            ACTIVE_CONNECTIONS.dec()
            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=request.url.path,
                status=status_code
            ).inc()
            REQUEST_DURATION.labels(
                method=request.method,
                endpoint=request.url.path
            ).observe(duration)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    # Add metrics endpoint
    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint"""
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Include routers
    app.include_router(health_router, prefix=settings.api_v1_prefix, tags=["health"])
    app.include_router(market_router, prefix=settings.api_v1_prefix, tags=["market"])
    app.include_router(contest_router, prefix=settings.api_v1_prefix, tags=["contest"])
    app.include_router(leaderboard_router, prefix=settings.api_v1_prefix, tags=["leaderboard"])
    app.include_router(portfolio_router, prefix=settings.api_v1_prefix, tags=["portfolio"])
    app.include_router(users_router, prefix=settings.api_v1_prefix, tags=["users"])
    app.include_router(referral_router, prefix=settings.api_v1_prefix, tags=["referral"])
    app.include_router(websocket_router, tags=["websocket"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
