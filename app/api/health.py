"""
Health check endpoints
"""

from fastapi import APIRouter, Request

from app.core.redis_client import ping_redis

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint
    Returns HTTP 200 with status ok
    """
    return {"status": "ok"}


@router.get("/health/details")
async def health_details(request: Request):
    """Scheduler state, connected realtime clients and Redis when it is in use."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        return {"status": "starting"}
    settings = services.settings
    details = {
        "status": "ok",
        "storage": settings.storage_backend,
        "scheduler": services.scheduler.state.value,
        "websocketClients": services.websockets.client_count(),
    }
    if settings.quota_backend == "redis" or settings.rate_limit_enabled:
        details["redis"] = "ok" if await ping_redis() else "unavailable"
    return details
