"""
In-memory storage backend
"""

import uuid
from decimal import Decimal
from typing import Dict
from uuid import UUID

from app.core.exceptions import ContestJoinError
from app.models.college import College
from app.models.contest import Contest
from app.models.enums import ContestStatus
from app.models.portfolio import Holding, Portfolio
from app.models.referral import Referral
from app.models.user import User
from app.models.user_contest import UserContest
from app.services.market_clock import ensure_utc, utcnow
from app.storage.base import StorageBackend


class MemoryStorage(StorageBackend):
    """
    Dictionary-backed store holding model instances.

    Insertion order of the dicts doubles as creation order, which keeps
    listings deterministic without relying on timestamps.
    """

    def __init__(self, new_user_balance: Decimal = Decimal("100")):
        self.new_user_balance = Decimal(new_user_balance)
        self.colleges: Dict[UUID, College] = {}
        self.users: Dict[UUID, User] = {}
        self.contests: Dict[UUID, Contest] = {}
        self.portfolios: Dict[UUID, Portfolio] = {}
        self.holdings: Dict[UUID, Holding] = {}
        self.participations: Dict[UUID, UserContest] = {}
        self.referrals: Dict[UUID, Referral] = {}

    # Colleges
    async def add_college(self, name, city=None):
        college = College(id=uuid.uuid4(), name=name, city=city, created_at=utcnow())
        self.colleges[college.id] = college
        return college

    async def get_college(self, college_id):
        return self.colleges.get(college_id)

    async def list_colleges(self):
        return sorted(self.colleges.values(), key=lambda c: c.name)

    # Users
    async def add_user(self, username, email=None, college_id=None, virtual_balance=None,
                       referral_code=None, fest_mode=False, is_guest=False):
        if any(u.username == username for u in self.users.values()):
            raise ValueError(f"Username {username} already taken")
        user = User(
            id=uuid.uuid4(),
            username=username,
            email=email,
            college_id=college_id,
            virtual_balance=Decimal(virtual_balance) if virtual_balance is not None else self.new_user_balance,
            referral_code=referral_code,
            referral_count=0,
            fest_mode=fest_mode,
            is_guest=is_guest,
            created_at=utcnow(),
        )
        self.users[user.id] = user
        return user

    async def get_user(self, user_id):
        return self.users.get(user_id)

    async def list_users_by_college(self, college_id):
        return [u for u in self.users.values() if u.college_id == college_id]

    async def adjust_balance(self, user_id, delta):
        user = self.users.get(user_id)
        if user is None:
            return None
        user.virtual_balance = Decimal(user.virtual_balance) + Decimal(delta)
        return user

    async def set_balance(self, user_id, balance):
        user = self.users.get(user_id)
        if user is None:
            return None
        user.virtual_balance = Decimal(balance)
        return user

    # Contests
    async def add_contest(self, name, start_date, end_date, entry_fee=Decimal("0"),
                          starting_capital=Decimal("1000000"), duration=1, description=None,
                          fest_mode=False, status=ContestStatus.UPCOMING.value):
        contest = Contest(
            id=uuid.uuid4(),
            name=name,
            description=description,
            entry_fee=Decimal(entry_fee),
            starting_capital=Decimal(starting_capital),
            duration=duration,
            start_date=start_date,
            end_date=end_date,
            fest_mode=fest_mode,
            status=status,
            created_at=utcnow(),
        )
        self.contests[contest.id] = contest
        return contest

    async def get_contest(self, contest_id):
        return self.contests.get(contest_id)

    async def list_contests(self, fest_mode=None):
        contests = [c for c in self.contests.values() if fest_mode is None or c.fest_mode == fest_mode]
        return sorted(contests, key=lambda c: ensure_utc(c.start_date))

    async def list_contests_starting_between(self, start, end):
        start, end = ensure_utc(start), ensure_utc(end)
        return [c for c in await self.list_contests() if start <= ensure_utc(c.start_date) < end]

    async def update_contest_status(self, contest_id, status):
        contest = self.contests.get(contest_id)
        if contest is not None:
            contest.status = status

    # Portfolios and holdings
    async def add_portfolio(self, user_id, contest_id=None, total_value=Decimal("1000000")):
        portfolio = Portfolio(
            id=uuid.uuid4(),
            user_id=user_id,
            contest_id=contest_id,
            total_value=Decimal(total_value),
            roi=Decimal("0"),
            is_locked=False,
            created_at=utcnow(),
        )
        self.portfolios[portfolio.id] = portfolio
        return portfolio

    async def get_portfolio(self, portfolio_id):
        return self.portfolios.get(portfolio_id)

    async def list_user_portfolios(self, user_id):
        return [p for p in self.portfolios.values() if p.user_id == user_id]

    async def update_portfolio_valuation(self, portfolio_id, total_value, roi):
        portfolio = self.portfolios.get(portfolio_id)
        if portfolio is not None:
            portfolio.total_value = total_value
            portfolio.roi = roi

    async def assign_portfolio_contest(self, portfolio_id, contest_id):
        portfolio = self.portfolios.get(portfolio_id)
        if portfolio is not None:
            portfolio.contest_id = contest_id

    async def add_holding(self, portfolio_id, stock_symbol, quantity, buy_price, current_price=None):
        holding = Holding(
            id=uuid.uuid4(),
            portfolio_id=portfolio_id,
            stock_symbol=stock_symbol,
            quantity=quantity,
            buy_price=Decimal(buy_price),
            current_price=Decimal(current_price) if current_price is not None else None,
        )
        self.holdings[holding.id] = holding
        return holding

    async def get_holdings(self, portfolio_id):
        return [h for h in self.holdings.values() if h.portfolio_id == portfolio_id]

    async def update_holding_price(self, holding_id, current_price):
        holding = self.holdings.get(holding_id)
        if holding is not None:
            holding.current_price = current_price

    # Participations
    async def add_participation(self, user_id, contest_id, portfolio_id):
        if await self.get_participation(user_id, contest_id) is not None:
            raise ContestJoinError("User already joined this contest")
        record = UserContest(
            id=uuid.uuid4(),
            user_id=user_id,
            contest_id=contest_id,
            portfolio_id=portfolio_id,
            joined_at=utcnow(),
            rank=None,
            final_roi=None,
        )
        self.participations[record.id] = record
        return record

    async def get_participation(self, user_id, contest_id):
        for record in self.participations.values():
            if record.user_id == user_id and record.contest_id == contest_id:
                return record
        return None

    async def list_participations(self, contest_id):
        return [r for r in self.participations.values() if r.contest_id == contest_id]

    async def list_user_participations(self, user_id):
        return [r for r in self.participations.values() if r.user_id == user_id]

    async def count_participants(self, contest_id):
        return len(await self.list_participations(contest_id))

    async def record_final_result(self, participation_id, final_roi, rank):
        record = self.participations.get(participation_id)
        if record is None:
            return
        if record.final_roi is None:
            record.final_roi = final_roi
        record.rank = rank

    # Referrals
    async def add_referral(self, referrer_id, referred_id):
        if any(r.referred_id == referred_id for r in self.referrals.values()):
            raise ValueError("User was already referred")
        referral = Referral(id=uuid.uuid4(), referrer_id=referrer_id, referred_id=referred_id,
                            created_at=utcnow())
        self.referrals[referral.id] = referral
        referrer = self.users.get(referrer_id)
        if referrer is not None:
            referrer.referral_count = (referrer.referral_count or 0) + 1
        return referral

    async def count_referrals(self, user_id):
        return sum(1 for r in self.referrals.values() if r.referrer_id == user_id)

    async def top_referrers(self, limit=10):
        users = sorted(self.users.values(), key=lambda u: u.referral_count or 0, reverse=True)
        return [u for u in users if u.referral_count][:limit]
