"""
Contest API endpoints
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, status, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from app.api.deps import get_services
from app.core.exceptions import ContestJoinError, NotFoundError
from app.services.container import Services
from app.services.contest_status import contest_payload, derive_contest_view
from app.services.market_clock import ensure_utc

router = APIRouter()


class ContestCreate(BaseModel):
    """Contest creation request model"""
    name: str = Field(..., min_length=1, description="Contest name")
    description: Optional[str] = Field(None, description="Contest description")
    entry_fee: Decimal = Field(Decimal("0"), ge=0, description="Entry fee in coins")
    starting_capital: Decimal = Field(Decimal("1000000"), gt=0)
    duration: int = Field(1, ge=1, description="Duration in days")
    start_date: datetime
    end_date: datetime
    fest_mode: bool = False


class ContestJoinRequest(BaseModel):
    """Contest join request model"""
    model_config = ConfigDict(populate_by_name=True)

    user_id: UUID = Field(..., alias="userId")
    portfolio_id: UUID = Field(..., alias="portfolioId")


async def _contest_view(services: Services, contest) -> dict:
    participants = await services.storage.count_participants(contest.id)
    view = derive_contest_view(
        contest,
        services.now(),
        services.clock,
        participants,
        closing_soon_threshold=timedelta(minutes=services.settings.closing_soon_threshold_minutes),
    )
    return contest_payload(contest, view)


@router.get("/contests")
async def list_contests(
    fest: Optional[bool] = Query(None, description="Only fest (true) or regular (false) contests"),
    services: Services = Depends(get_services),
):
    """
    List contests with their derived status, countdown and prize pool.
    """
    contests = await services.storage.list_contests(fest_mode=fest)
    return [await _contest_view(services, contest) for contest in contests]


@router.post("/contests", status_code=status.HTTP_201_CREATED)
async def create_contest_endpoint(
    contest_data: ContestCreate,
    services: Services = Depends(get_services),
):
    """
    Create a contest.
    """
    start_date = ensure_utc(contest_data.start_date)
    end_date = ensure_utc(contest_data.end_date)
    if start_date >= end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Contest start must be before its end"
        )

    contest = await services.storage.add_contest(
        name=contest_data.name,
        description=contest_data.description,
        entry_fee=contest_data.entry_fee,
        starting_capital=contest_data.starting_capital,
        duration=contest_data.duration,
        start_date=start_date,
        end_date=end_date,
        fest_mode=contest_data.fest_mode,
    )
    return await _contest_view(services, contest)


@router.get("/contests/{contest_id}")
async def get_contest(contest_id: UUID, services: Services = Depends(get_services)):
    """
    Get contest details by ID.
    """
    contest = await services.storage.get_contest(contest_id)
    if not contest:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Contest not found"
        )
    return await _contest_view(services, contest)


@router.get("/contests/{contest_id}/leaderboard")
async def get_contest_leaderboard(
    contest_id: UUID,
    limit: Optional[int] = Query(None, ge=1, le=500),
    services: Services = Depends(get_services),
):
    """
    Ranked participants of a contest.
    """
    if not await services.storage.get_contest(contest_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contest not found")
    entries = await services.leaderboards.contest_leaderboard(contest_id, limit)
    return [entry.to_dict() for entry in entries]


@router.post("/contests/{contest_id}/join", status_code=status.HTTP_201_CREATED)
async def join_contest_endpoint(
    contest_id: UUID,
    join_data: ContestJoinRequest,
    services: Services = Depends(get_services),
):
    """
    Join a contest with one of the user's portfolios.

    The entry fee is debited from the user's balance.
    """
    try:
        record = await services.joins.join(contest_id, join_data.user_id, join_data.portfolio_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ContestJoinError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return record.to_dict()
