"""
Storage interface used by the core services.

Services only talk to ``StorageBackend`` so that the valuation engine,
distributor and generator run unchanged against the in-memory store (tests,
demos) and the SQL store (production).
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from app.models.college import College
from app.models.contest import Contest
from app.models.portfolio import Holding, Portfolio
from app.models.referral import Referral
from app.models.user import User
from app.models.user_contest import UserContest


class StorageBackend:
    """Abstract persistence operations."""

    # Colleges
    async def add_college(self, name: str, city: Optional[str] = None) -> College:
        raise NotImplementedError

    async def get_college(self, college_id: UUID) -> Optional[College]:
        raise NotImplementedError

    async def list_colleges(self) -> List[College]:
        raise NotImplementedError

    # Users
    async def add_user(
        self,
        username: str,
        email: Optional[str] = None,
        college_id: Optional[UUID] = None,
        virtual_balance: Optional[Decimal] = None,
        referral_code: Optional[str] = None,
        fest_mode: bool = False,
        is_guest: bool = False,
    ) -> User:
        raise NotImplementedError

    async def get_user(self, user_id: UUID) -> Optional[User]:
        raise NotImplementedError

    async def list_users_by_college(self, college_id: UUID) -> List[User]:
        raise NotImplementedError

    async def adjust_balance(self, user_id: UUID, delta: Decimal) -> Optional[User]:
        """Add ``delta`` (may be negative) to the user's virtual balance."""
        raise NotImplementedError

    async def set_balance(self, user_id: UUID, balance: Decimal) -> Optional[User]:
        raise NotImplementedError

    # Contests
    async def add_contest(
        self,
        name: str,
        start_date: datetime,
        end_date: datetime,
        entry_fee: Decimal = Decimal("0"),
        starting_capital: Decimal = Decimal("1000000"),
        duration: int = 1,
        description: Optional[str] = None,
        fest_mode: bool = False,
        status: str = "upcoming",
    ) -> Contest:
        raise NotImplementedError

    async def get_contest(self, contest_id: UUID) -> Optional[Contest]:
        raise NotImplementedError

    async def list_contests(self, fest_mode: Optional[bool] = None) -> List[Contest]:
        """All contests ordered by start date, then creation order."""
        raise NotImplementedError

    async def list_contests_starting_between(self, start: datetime, end: datetime) -> List[Contest]:
        """Contests with ``start <= start_date < end``."""
        raise NotImplementedError

    async def update_contest_status(self, contest_id: UUID, status: str) -> None:
        raise NotImplementedError

    # Portfolios and holdings
    async def add_portfolio(
        self,
        user_id: UUID,
        contest_id: Optional[UUID] = None,
        total_value: Decimal = Decimal("1000000"),
    ) -> Portfolio:
        raise NotImplementedError

    async def get_portfolio(self, portfolio_id: UUID) -> Optional[Portfolio]:
        raise NotImplementedError

    async def list_user_portfolios(self, user_id: UUID) -> List[Portfolio]:
        raise NotImplementedError

    async def update_portfolio_valuation(self, portfolio_id: UUID, total_value: Decimal, roi: Decimal) -> None:
        raise NotImplementedError

    async def assign_portfolio_contest(self, portfolio_id: UUID, contest_id: UUID) -> None:
        raise NotImplementedError

    async def add_holding(
        self,
        portfolio_id: UUID,
        stock_symbol: str,
        quantity: int,
        buy_price: Decimal,
        current_price: Optional[Decimal] = None,
    ) -> Holding:
        raise NotImplementedError

    async def get_holdings(self, portfolio_id: UUID) -> List[Holding]:
        raise NotImplementedError

    async def update_holding_price(self, holding_id: UUID, current_price: Decimal) -> None:
        raise NotImplementedError

    # Participations
    async def add_participation(self, user_id: UUID, contest_id: UUID, portfolio_id: Optional[UUID]) -> UserContest:
        """Raises ``ContestJoinError`` if the user already joined the contest."""
        raise NotImplementedError

    async def get_participation(self, user_id: UUID, contest_id: UUID) -> Optional[UserContest]:
        raise NotImplementedError

    async def list_participations(self, contest_id: UUID) -> List[UserContest]:
        """Participation records of a contest in join order."""
        raise NotImplementedError

    async def list_user_participations(self, user_id: UUID) -> List[UserContest]:
        raise NotImplementedError

    async def count_participants(self, contest_id: UUID) -> int:
        raise NotImplementedError

    async def record_final_result(self, participation_id: UUID, final_roi: Decimal, rank: int) -> None:
        """Store rank and, if not yet set, the final ROI snapshot."""
        raise NotImplementedError

    # Referrals
    async def add_referral(self, referrer_id: UUID, referred_id: UUID) -> Referral:
        """Record a referral and bump the referrer's count."""
        raise NotImplementedError

    async def count_referrals(self, user_id: UUID) -> int:
        raise NotImplementedError

    async def top_referrers(self, limit: int = 10) -> List[User]:
        raise NotImplementedError

    async def close(self) -> None:
        return None
