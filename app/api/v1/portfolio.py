"""
Portfolio API endpoints
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, status, Depends
from pydantic import BaseModel, ConfigDict, Field

from app.api.deps import get_services
from app.core.exceptions import NotFoundError, PriceSourceUnavailableError
from app.services.container import Services
from app.services.portfolios import create_portfolio_with_holdings

router = APIRouter()


class HoldingRequest(BaseModel):
    symbol: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)


class PortfolioCreate(BaseModel):
    """Portfolio creation request model"""
    model_config = ConfigDict(populate_by_name=True)

    user_id: UUID = Field(..., alias="userId")
    contest_id: Optional[UUID] = Field(None, alias="contestId")
    holdings: List[HoldingRequest] = Field(..., min_length=1)


async def _portfolio_detail(services: Services, portfolio_id: UUID) -> dict:
    portfolio = await services.storage.get_portfolio(portfolio_id)
    if portfolio is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Portfolio not found")
    payload = portfolio.to_dict()
    payload["holdings"] = [h.to_dict() for h in await services.storage.get_holdings(portfolio_id)]
    return payload


@router.post("/portfolios", status_code=status.HTTP_201_CREATED)
async def create_portfolio_endpoint(
    portfolio_data: PortfolioCreate,
    services: Services = Depends(get_services),
):
    """
    Create a portfolio, buying each holding at the current quote.
    """
    try:
        portfolio = await create_portfolio_with_holdings(
            services.storage,
            services.price_source,
            portfolio_data.user_id,
            [(h.symbol, h.quantity) for h in portfolio_data.holdings],
            contest_id=portfolio_data.contest_id,
            market=services.settings.market_exchange,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return await _portfolio_detail(services, portfolio.id)


@router.get("/portfolios/{portfolio_id}")
async def get_portfolio(portfolio_id: UUID, services: Services = Depends(get_services)):
    """Get a portfolio with its holdings."""
    return await _portfolio_detail(services, portfolio_id)


@router.post("/portfolios/{portfolio_id}/valuate")
async def valuate_portfolio(portfolio_id: UUID, services: Services = Depends(get_services)):
    """
    Value a portfolio at current quotes on demand.
    """
    try:
        metrics = await services.engine.valuate(portfolio_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PriceSourceUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return {"portfolioId": str(portfolio_id), **metrics.to_dict()}
