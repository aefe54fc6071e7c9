"""
Referral API endpoints
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from app.api.deps import get_services
from app.services.container import Services

router = APIRouter()


class ReferralCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    referrer_id: UUID = Field(..., alias="referrerId")
    referred_id: UUID = Field(..., alias="referredId")


@router.post("/referrals", status_code=status.HTTP_201_CREATED)
async def add_referral(referral_data: ReferralCreate, services: Services = Depends(get_services)):
    """Record a referral and bump the referrer's count."""
    if referral_data.referrer_id == referral_data.referred_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Users cannot refer themselves")
    for user_id in (referral_data.referrer_id, referral_data.referred_id):
        if not await services.storage.get_user(user_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {user_id} not found")
    try:
        referral = await services.storage.add_referral(referral_data.referrer_id, referral_data.referred_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {
        "id": str(referral.id),
        "referrerId": str(referral.referrer_id),
        "referredId": str(referral.referred_id),
    }


@router.get("/referrals/top")
async def top_referrers(limit: int = Query(10, ge=1, le=100), services: Services = Depends(get_services)):
    users = await services.storage.top_referrers(limit)
    return [{"userId": str(u.id), "username": u.username, "referralCount": u.referral_count} for u in users]


@router.get("/referrals/{user_id}/count")
async def referral_count(user_id: UUID, services: Services = Depends(get_services)):
    return {"userId": str(user_id), "count": await services.storage.count_referrals(user_id)}
