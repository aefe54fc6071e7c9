"""
Contest and college leaderboards
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from app.models.portfolio import Portfolio
from app.models.user_contest import UserContest
from app.storage.base import StorageBackend

logger = logging.getLogger(__name__)


@dataclass
class LeaderboardEntry:
    participation: UserContest
    roi: Decimal
    rank: int
    username: Optional[str] = None

    def to_dict(self) -> dict:
        record = self.participation
        return {
            "rank": self.rank,
            "userId": str(record.user_id),
            "username": self.username,
            "contestId": str(record.contest_id),
            "portfolioId": str(record.portfolio_id) if record.portfolio_id else None,
            "roi": float(self.roi),
            "finalRoi": float(record.final_roi) if record.final_roi is not None else None,
            "joinedAt": record.joined_at.isoformat() if record.joined_at else None,
        }


def effective_roi(record: UserContest, portfolio: Optional[Portfolio]) -> Decimal:
    """Frozen final ROI if settled, else the portfolio's live ROI, else 0."""
    if record.final_roi is not None:
        return Decimal(record.final_roi)
    if portfolio is not None and portfolio.roi is not None:
        return Decimal(portfolio.roi)
    return Decimal("0")


def rank_leaderboard(records: Iterable[UserContest],
                     portfolios: Dict[UUID, Portfolio]) -> List[LeaderboardEntry]:
    """
    Rank participation records by effective ROI, highest first.

    The sort is stable, so ties keep their input (join) order. Ranks are
    1-based and contiguous.
    """
    scored = [(record, effective_roi(record, portfolios.get(record.portfolio_id))) for record in records]
    scored.sort(key=lambda item: item[1], reverse=True)
    return [LeaderboardEntry(participation=record, roi=roi, rank=i + 1)
            for i, (record, roi) in enumerate(scored)]


class LeaderboardService:
    """Builds ranked views from storage."""

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    async def _portfolios_for(self, records: List[UserContest]) -> Dict[UUID, Portfolio]:
        portfolios = {}
        for record in records:
            if record.portfolio_id is None or record.portfolio_id in portfolios:
                continue
            portfolio = await self.storage.get_portfolio(record.portfolio_id)
            if portfolio is not None:
                portfolios[record.portfolio_id] = portfolio
        return portfolios

    async def _attach_usernames(self, entries: List[LeaderboardEntry]) -> None:
        names: Dict[UUID, Optional[str]] = {}
        for entry in entries:
            user_id = entry.participation.user_id
            if user_id not in names:
                user = await self.storage.get_user(user_id)
                names[user_id] = user.username if user else None
            entry.username = names[user_id]

    async def rank_records(self, records: List[UserContest]) -> List[LeaderboardEntry]:
        entries = rank_leaderboard(records, await self._portfolios_for(records))
        await self._attach_usernames(entries)
        return entries

    async def contest_leaderboard(self, contest_id: UUID, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        """
        Ranked participants of a contest.

        Args:
            contest_id: Contest UUID
            limit: Return only the top ``limit`` entries when given

        Returns:
            List of LeaderboardEntry, rank 1 first
        """
        entries = await self.rank_records(await self.storage.list_participations(contest_id))
        return entries[:limit] if limit else entries

    async def college_leaderboard(self, college_id: UUID, contest_id: Optional[UUID] = None) -> List[LeaderboardEntry]:
        """Same ranking restricted to members of one college, optionally within one contest."""
        records: List[UserContest] = []
        for user in await self.storage.list_users_by_college(college_id):
            if contest_id is not None:
                record = await self.storage.get_participation(user.id, contest_id)
                if record is not None:
                    records.append(record)
            else:
                records.extend(await self.storage.list_user_participations(user.id))
        records.sort(key=lambda r: r.joined_at)
        logger.debug(f"College {college_id} leaderboard over {len(records)} records")
        return await self.rank_records(records)
