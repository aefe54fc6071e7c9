"""
Contest repository for contest management
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from app.models.contest import Contest
from app.models.enums import ContestStatus


async def create_contest(
    session: AsyncSession,
    name: str,
    start_date: datetime,
    end_date: datetime,
    entry_fee: Decimal = Decimal("0"),
    starting_capital: Decimal = Decimal("1000000"),
    duration: int = 1,
    description: Optional[str] = None,
    fest_mode: bool = False,
    status: str = ContestStatus.UPCOMING.value,
) -> Contest:
    """
    Create a new contest.

    Args:
        session: Database session
        name: Contest name
        start_date: Start of the trading window (UTC)
        end_date: End of the trading window (UTC)
        entry_fee: Entry fee in coins (may be zero)
        starting_capital: Notional capital per portfolio
        duration: Length in days
        description: Optional description
        fest_mode: Whether the contest belongs to a college fest
        status: Initial stored status

    Returns:
        Created Contest instance
    """
    if start_date >= end_date:
        raise ValueError("Contest start must be before its end")

    contest = Contest(
        name=name,
        description=description,
        entry_fee=entry_fee,
        starting_capital=starting_capital,
        duration=duration,
        start_date=start_date,
        end_date=end_date,
        fest_mode=fest_mode,
        status=status,
    )
    session.add(contest)
    await session.commit()
    await session.refresh(contest)
    return contest


async def get_contest_by_id(session: AsyncSession, contest_id: UUID) -> Optional[Contest]:
    """
    Get contest by ID.

    Args:
        session: Database session
        contest_id: Contest UUID

    Returns:
        Contest instance or None if not found
    """
    result = await session.execute(
        select(Contest).where(Contest.id == contest_id)
    )
    return result.scalar_one_or_none()


async def get_contests(
    session: AsyncSession,
    fest_mode: Optional[bool] = None,
    status: Optional[str] = None,
) -> List[Contest]:
    """
    Get contests ordered by start date.

    Args:
        session: Database session
        fest_mode: Filter by fest flag when given
        status: Filter by stored status when given

    Returns:
        List of Contest instances
    """
    query = select(Contest).order_by(Contest.start_date, Contest.created_at)
    if fest_mode is not None:
        query = query.where(Contest.fest_mode == fest_mode)
    if status:
        query = query.where(Contest.status == status)
    result = await session.execute(query)
    return list(result.scalars().all())


async def get_contests_starting_between(session: AsyncSession, start: datetime, end: datetime) -> List[Contest]:
    result = await session.execute(
        select(Contest)
        .where(Contest.start_date >= start, Contest.start_date < end)
        .order_by(Contest.start_date, Contest.created_at)
    )
    return list(result.scalars().all())


async def update_contest_status(session: AsyncSession, contest_id: UUID, status: str) -> None:
    """Persist a new stored status for a contest."""
    await session.execute(
        update(Contest).where(Contest.id == contest_id).values(status=status)
    )
    await session.commit()
