"""
User and college API endpoints
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, status, Depends
from pydantic import BaseModel, ConfigDict, Field

from app.api.deps import get_services
from app.services.container import Services

router = APIRouter()


class UserCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(..., min_length=1, max_length=48)
    email: Optional[str] = None
    college_id: Optional[UUID] = Field(None, alias="collegeId")
    referral_code: Optional[str] = Field(None, alias="referralCode")
    fest_mode: bool = Field(False, alias="festMode")
    is_guest: bool = Field(False, alias="isGuest")


class CollegeCreate(BaseModel):
    name: str = Field(..., min_length=1)
    city: Optional[str] = None


class BalanceUpdate(BaseModel):
    balance: Decimal = Field(..., ge=0)


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(user_data: UserCreate, services: Services = Depends(get_services)):
    """Register a user with the default starting balance."""
    try:
        user = await services.storage.add_user(
            username=user_data.username,
            email=user_data.email,
            college_id=user_data.college_id,
            referral_code=user_data.referral_code,
            fest_mode=user_data.fest_mode,
            is_guest=user_data.is_guest,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return user.to_dict()


@router.get("/users/{user_id}")
async def get_user(user_id: UUID, services: Services = Depends(get_services)):
    user = await services.storage.get_user(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user.to_dict()


@router.patch("/users/{user_id}/balance")
async def update_balance(user_id: UUID, update: BalanceUpdate, services: Services = Depends(get_services)):
    """Set a user's virtual balance (admin tooling)."""
    user = await services.storage.set_balance(user_id, update.balance)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user.to_dict()


@router.get("/users/{user_id}/contests")
async def get_user_contests(user_id: UUID, services: Services = Depends(get_services)):
    """Contests the user has joined."""
    if not await services.storage.get_user(user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    records = await services.storage.list_user_participations(user_id)
    return [record.to_dict() for record in records]


@router.post("/users/{user_id}/portfolios/valuate")
async def valuate_user_portfolios(user_id: UUID, services: Services = Depends(get_services)):
    """Revalue every portfolio the user owns; failures are counted, not raised."""
    if not await services.storage.get_user(user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return await services.engine.valuate_user_portfolios(user_id)


@router.post("/colleges", status_code=status.HTTP_201_CREATED)
async def create_college(college_data: CollegeCreate, services: Services = Depends(get_services)):
    college = await services.storage.add_college(college_data.name, college_data.city)
    return college.to_dict()


@router.get("/colleges/{college_id}/users")
async def get_college_users(college_id: UUID, services: Services = Depends(get_services)):
    if not await services.storage.get_college(college_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="College not found")
    return [user.to_dict() for user in await services.storage.list_users_by_college(college_id)]
