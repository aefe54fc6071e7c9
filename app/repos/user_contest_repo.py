"""
Contest participation repository
"""

from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func

from app.models.user_contest import UserContest


async def create_participation(
    session: AsyncSession,
    user_id: UUID,
    contest_id: UUID,
    portfolio_id: Optional[UUID],
) -> UserContest:
    """
    Record that a user joined a contest.

    Args:
        session: Database session
        user_id: User UUID
        contest_id: Contest UUID
        portfolio_id: Portfolio backing the entry

    Returns:
        Created UserContest instance

    Raises:
        IntegrityError: if the user already joined the contest
    """
    record = UserContest(
        user_id=user_id,
        contest_id=contest_id,
        portfolio_id=portfolio_id,
    )
    session.add(record)
    await session.commit()
    await session.refresh(record)
    return record


async def get_participation(session: AsyncSession, user_id: UUID, contest_id: UUID) -> Optional[UserContest]:
    result = await session.execute(
        select(UserContest).where(
            UserContest.user_id == user_id,
            UserContest.contest_id == contest_id,
        )
    )
    return result.scalar_one_or_none()


async def get_contest_participations(session: AsyncSession, contest_id: UUID) -> List[UserContest]:
    """
    Get participation records of a contest in join order.

    Args:
        session: Database session
        contest_id: Contest UUID

    Returns:
        List of UserContest instances
    """
    result = await session.execute(
        select(UserContest)
        .where(UserContest.contest_id == contest_id)
        .order_by(UserContest.joined_at, UserContest.id)
    )
    return list(result.scalars().all())


async def get_user_participations(session: AsyncSession, user_id: UUID) -> List[UserContest]:
    result = await session.execute(
        select(UserContest)
        .where(UserContest.user_id == user_id)
        .order_by(UserContest.joined_at)
    )
    return list(result.scalars().all())


async def count_participants(session: AsyncSession, contest_id: UUID) -> int:
    result = await session.execute(
        select(func.count(UserContest.id)).where(UserContest.contest_id == contest_id)
    )
    return result.scalar_one()


async def record_final_result(
    session: AsyncSession,
    participation_id: UUID,
    final_roi: Decimal,
    rank: int,
) -> None:
    """
    Store the settlement rank and freeze the final ROI.

    The ROI is only written while it is still NULL so a rerun never
    overwrites an earlier snapshot.
    """
    await session.execute(
        update(UserContest)
        .where(UserContest.id == participation_id)
        .values(rank=rank)
    )
    await session.execute(
        update(UserContest)
        .where(UserContest.id == participation_id, UserContest.final_roi.is_(None))
        .values(final_roi=final_roi)
    )
    await session.commit()
