"""
Contest join flow
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

from app.core.exceptions import (
    ContestJoinError,
    ContestNotFoundError,
    PortfolioNotFoundError,
    UserNotFoundError,
)
from app.core.metrics import CONTEST_JOIN_COUNT
from app.models.enums import ContestStatus
from app.models.user_contest import UserContest
from app.services.market_clock import ensure_utc, utcnow
from app.services.valuation import PortfolioValuationEngine
from app.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class ContestJoinService:
    """Validates and records a user's entry into a contest."""

    def __init__(self, storage: StorageBackend, engine: Optional[PortfolioValuationEngine] = None,
                 now_fn: Callable[[], datetime] = utcnow):
        self.storage = storage
        self.engine = engine
        self._now = now_fn

    async def join(self, contest_id: UUID, user_id: UUID, portfolio_id: UUID) -> UserContest:
        """
        Join a contest with a portfolio, debiting the entry fee.

        Args:
            contest_id: Contest to join
            user_id: Joining user
            portfolio_id: Portfolio owned by the user; it must be unused or
                already dedicated to this contest

        Returns:
            The new participation record

        Raises:
            ContestNotFoundError, UserNotFoundError, PortfolioNotFoundError:
                for unknown ids
            ContestJoinError: when a business rule rejects the join
        """
        contest = await self.storage.get_contest(contest_id)
        if contest is None:
            raise ContestNotFoundError(contest_id)
        if contest.status == ContestStatus.ENDED.value or ensure_utc(contest.end_date) < self._now():
            CONTEST_JOIN_COUNT.labels(status="closed").inc()
            raise ContestJoinError("Contest has already ended")

        user = await self.storage.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        portfolio = await self.storage.get_portfolio(portfolio_id)
        if portfolio is None:
            raise PortfolioNotFoundError(portfolio_id)
        if portfolio.user_id != user_id:
            CONTEST_JOIN_COUNT.labels(status="rejected").inc()
            raise ContestJoinError("Portfolio does not belong to this user")
        if portfolio.contest_id is not None and portfolio.contest_id != contest_id:
            CONTEST_JOIN_COUNT.labels(status="rejected").inc()
            raise ContestJoinError("Portfolio is already entered in another contest")

        if await self.storage.get_participation(user_id, contest_id) is not None:
            CONTEST_JOIN_COUNT.labels(status="duplicate").inc()
            raise ContestJoinError("User already joined this contest")

        entry_fee = Decimal(contest.entry_fee or 0)
        if Decimal(user.virtual_balance) < entry_fee:
            CONTEST_JOIN_COUNT.labels(status="insufficient_balance").inc()
            raise ContestJoinError(f"Insufficient balance: entry fee is {entry_fee}")

        if entry_fee > 0:
            await self.storage.adjust_balance(user_id, -entry_fee)
        try:
            record = await self.storage.add_participation(user_id, contest_id, portfolio_id)
        except Exception as e:
            # No participation was recorded; give the fee back
            if entry_fee > 0:
                await self.storage.adjust_balance(user_id, entry_fee)
            if isinstance(e, ContestJoinError):
                CONTEST_JOIN_COUNT.labels(status="duplicate").inc()
            else:
                CONTEST_JOIN_COUNT.labels(status="error").inc()
                logger.error(f"Recording participation of user {user_id} in contest {contest_id} failed: {e}")
            raise

        if portfolio.contest_id is None:
            await self.storage.assign_portfolio_contest(portfolio_id, contest_id)

        CONTEST_JOIN_COUNT.labels(status="success").inc()
        logger.info(f"User {user_id} joined contest {contest_id} with portfolio {portfolio_id}")

        if self.engine is not None:
            await self.engine.valuate_safely(portfolio_id)
        return record
