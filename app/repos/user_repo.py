"""
User and college repository with async CRUD operations
"""

from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from app.models.user import User
from app.models.college import College


async def create_user(
    session: AsyncSession,
    username: str,
    email: Optional[str] = None,
    college_id: Optional[UUID] = None,
    virtual_balance: Decimal = Decimal("100"),
    referral_code: Optional[str] = None,
    fest_mode: bool = False,
    is_guest: bool = False,
) -> User:
    """
    Create a new user.

    Args:
        session: Database session
        username: Username (must be unique)
        email: Optional email address
        college_id: Optional college the user belongs to
        virtual_balance: Starting coin balance
        referral_code: Optional unique referral code
        fest_mode: Whether the user signed up through a fest
        is_guest: Whether this is a guest account

    Returns:
        Created User instance
    """
    user = User(
        username=username,
        email=email,
        college_id=college_id,
        virtual_balance=virtual_balance,
        referral_code=referral_code,
        referral_count=0,
        fest_mode=fest_mode,
        is_guest=is_guest,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def get_user_by_id(session: AsyncSession, user_id: UUID) -> Optional[User]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: User UUID

    Returns:
        User instance or None if not found
    """
    result = await session.execute(
        select(User).where(User.id == user_id)
    )
    return result.scalar_one_or_none()


async def get_users_by_college(session: AsyncSession, college_id: UUID) -> List[User]:
    """Get all users of a college."""
    result = await session.execute(
        select(User).where(User.college_id == college_id).order_by(User.created_at)
    )
    return list(result.scalars().all())


async def adjust_balance(session: AsyncSession, user_id: UUID, delta: Decimal) -> Optional[User]:
    """
    Add ``delta`` to a user's virtual balance in a single UPDATE.

    Args:
        session: Database session
        user_id: User UUID
        delta: Amount to add (negative to debit)

    Returns:
        Updated User instance or None if not found
    """
    await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(virtual_balance=User.virtual_balance + delta)
    )
    await session.commit()
    session.expire_all()
    return await get_user_by_id(session, user_id)


async def set_balance(session: AsyncSession, user_id: UUID, balance: Decimal) -> Optional[User]:
    await session.execute(
        update(User).where(User.id == user_id).values(virtual_balance=balance)
    )
    await session.commit()
    session.expire_all()
    return await get_user_by_id(session, user_id)


async def get_top_referrers(session: AsyncSession, limit: int = 10) -> List[User]:
    """Users ordered by referral count, highest first."""
    result = await session.execute(
        select(User)
        .where(User.referral_count > 0)
        .order_by(User.referral_count.desc(), User.created_at)
        .limit(limit)
    )
    return list(result.scalars().all())


async def create_college(session: AsyncSession, name: str, city: Optional[str] = None) -> College:
    college = College(name=name, city=city)
    session.add(college)
    await session.commit()
    await session.refresh(college)
    return college


async def get_college_by_id(session: AsyncSession, college_id: UUID) -> Optional[College]:
    result = await session.execute(select(College).where(College.id == college_id))
    return result.scalar_one_or_none()


async def get_colleges(session: AsyncSession) -> List[College]:
    result = await session.execute(select(College).order_by(College.name))
    return list(result.scalars().all())
