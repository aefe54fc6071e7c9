"""
Market status and quote endpoints
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends, Query

from app.api.deps import get_services
from app.services.container import Services
from app.services.price_source import POPULAR_INDIAN_STOCKS

router = APIRouter()


@router.get("/market/status")
async def market_status(services: Services = Depends(get_services)):
    """Whether the exchange is open and when it opens next."""
    now = services.now()
    return {
        "exchange": services.settings.market_exchange,
        "isOpen": services.clock.is_open(now),
        "nextOpen": services.clock.next_open(now).isoformat(),
        "schedulerState": services.scheduler.state.value,
    }


@router.get("/stocks/quotes")
async def stock_quotes(
    symbols: Optional[str] = Query(None, description="Comma separated symbols; defaults to popular stocks"),
    services: Services = Depends(get_services),
):
    """Current quotes, falling back to simulated data when the provider is unavailable."""
    requested = [s.strip() for s in symbols.split(",") if s.strip()] if symbols else POPULAR_INDIAN_STOCKS
    if len(requested) > 100:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At most 100 symbols per request")
    quotes = await services.price_source.get_quotes(requested, services.settings.market_exchange)
    return [q.to_dict() for q in quotes]
