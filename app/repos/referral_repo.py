"""
Referral repository
"""

from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func

from app.models.referral import Referral
from app.models.user import User


async def create_referral(session: AsyncSession, referrer_id: UUID, referred_id: UUID) -> Referral:
    """
    Record a referral and increment the referrer's counter in one transaction.

    Args:
        session: Database session
        referrer_id: User who referred
        referred_id: User who was referred

    Returns:
        Created Referral instance
    """
    referral = Referral(referrer_id=referrer_id, referred_id=referred_id)
    session.add(referral)
    await session.execute(
        update(User)
        .where(User.id == referrer_id)
        .values(referral_count=User.referral_count + 1)
    )
    await session.commit()
    await session.refresh(referral)
    return referral


async def count_referrals(session: AsyncSession, user_id: UUID) -> int:
    result = await session.execute(
        select(func.count(Referral.id)).where(Referral.referrer_id == user_id)
    )
    return result.scalar_one()
