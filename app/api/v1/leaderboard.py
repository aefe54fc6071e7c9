"""
Leaderboard API endpoints
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, status, Depends, Query

from app.api.deps import get_services
from app.services.container import Services

router = APIRouter()


@router.get("/leaderboard/college/{college_id}")
async def college_leaderboard(
    college_id: UUID,
    contest_id: Optional[UUID] = Query(None, alias="contestId"),
    services: Services = Depends(get_services),
):
    """
    Leaderboard restricted to one college, optionally within a single contest.
    """
    if not await services.storage.get_college(college_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="College not found")
    entries = await services.leaderboards.college_leaderboard(college_id, contest_id)
    return [entry.to_dict() for entry in entries]
