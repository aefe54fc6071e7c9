"""
SQL storage backend over the async repositories.

Each operation opens its own short-lived session so that a failed write
never poisons the session of a later one; sessions are created with
``expire_on_commit=False`` so returned instances stay readable.
"""

import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.exceptions import ContestJoinError
from app.repos import (
    contest_repo,
    portfolio_repo,
    referral_repo,
    user_contest_repo,
    user_repo,
)
from app.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class SqlStorage(StorageBackend):
    """Storage backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker, new_user_balance: Decimal = Decimal("100")):
        self._session_factory = session_factory
        self.new_user_balance = Decimal(new_user_balance)

    # Colleges
    async def add_college(self, name, city=None):
        async with self._session_factory() as session:
            return await user_repo.create_college(session, name, city)

    async def get_college(self, college_id):
        async with self._session_factory() as session:
            return await user_repo.get_college_by_id(session, college_id)

    async def list_colleges(self):
        async with self._session_factory() as session:
            return await user_repo.get_colleges(session)

    # Users
    async def add_user(self, username, email=None, college_id=None, virtual_balance=None,
                       referral_code=None, fest_mode=False, is_guest=False):
        async with self._session_factory() as session:
            try:
                return await user_repo.create_user(
                    session,
                    username=username,
                    email=email,
                    college_id=college_id,
                    virtual_balance=Decimal(virtual_balance) if virtual_balance is not None else self.new_user_balance,
                    referral_code=referral_code,
                    fest_mode=fest_mode,
                    is_guest=is_guest,
                )
            except IntegrityError as e:
                await session.rollback()
                raise ValueError(f"Username {username} already taken") from e

    async def get_user(self, user_id):
        async with self._session_factory() as session:
            return await user_repo.get_user_by_id(session, user_id)

    async def list_users_by_college(self, college_id):
        async with self._session_factory() as session:
            return await user_repo.get_users_by_college(session, college_id)

    async def adjust_balance(self, user_id, delta):
        async with self._session_factory() as session:
            return await user_repo.adjust_balance(session, user_id, Decimal(delta))

    async def set_balance(self, user_id, balance):
        async with self._session_factory() as session:
            return await user_repo.set_balance(session, user_id, Decimal(balance))

    # Contests
    async def add_contest(self, name, start_date, end_date, entry_fee=Decimal("0"),
                          starting_capital=Decimal("1000000"), duration=1, description=None,
                          fest_mode=False, status="upcoming"):
        async with self._session_factory() as session:
            return await contest_repo.create_contest(
                session,
                name=name,
                start_date=start_date,
                end_date=end_date,
                entry_fee=Decimal(entry_fee),
                starting_capital=Decimal(starting_capital),
                duration=duration,
                description=description,
                fest_mode=fest_mode,
                status=status,
            )

    async def get_contest(self, contest_id):
        async with self._session_factory() as session:
            return await contest_repo.get_contest_by_id(session, contest_id)

    async def list_contests(self, fest_mode=None):
        async with self._session_factory() as session:
            return await contest_repo.get_contests(session, fest_mode=fest_mode)

    async def list_contests_starting_between(self, start, end):
        async with self._session_factory() as session:
            return await contest_repo.get_contests_starting_between(session, start, end)

    async def update_contest_status(self, contest_id, status):
        async with self._session_factory() as session:
            await contest_repo.update_contest_status(session, contest_id, status)

    # Portfolios and holdings
    async def add_portfolio(self, user_id, contest_id=None, total_value=Decimal("1000000")):
        async with self._session_factory() as session:
            return await portfolio_repo.create_portfolio(session, user_id, contest_id, Decimal(total_value))

    async def get_portfolio(self, portfolio_id):
        async with self._session_factory() as session:
            return await portfolio_repo.get_portfolio_by_id(session, portfolio_id)

    async def list_user_portfolios(self, user_id):
        async with self._session_factory() as session:
            return await portfolio_repo.get_user_portfolios(session, user_id)

    async def update_portfolio_valuation(self, portfolio_id, total_value, roi):
        async with self._session_factory() as session:
            await portfolio_repo.update_portfolio_valuation(session, portfolio_id, total_value, roi)

    async def assign_portfolio_contest(self, portfolio_id, contest_id):
        async with self._session_factory() as session:
            await portfolio_repo.set_portfolio_contest(session, portfolio_id, contest_id)

    async def add_holding(self, portfolio_id, stock_symbol, quantity, buy_price, current_price=None):
        async with self._session_factory() as session:
            return await portfolio_repo.create_holding(
                session, portfolio_id, stock_symbol, quantity, Decimal(buy_price),
                Decimal(current_price) if current_price is not None else None,
            )

    async def get_holdings(self, portfolio_id):
        async with self._session_factory() as session:
            return await portfolio_repo.get_holdings(session, portfolio_id)

    async def update_holding_price(self, holding_id, current_price):
        async with self._session_factory() as session:
            await portfolio_repo.update_holding_price(session, holding_id, current_price)

    # Participations
    async def add_participation(self, user_id, contest_id, portfolio_id):
        async with self._session_factory() as session:
            try:
                return await user_contest_repo.create_participation(session, user_id, contest_id, portfolio_id)
            except IntegrityError as e:
                await session.rollback()
                logger.info(f"Duplicate join rejected for user {user_id} in contest {contest_id}")
                raise ContestJoinError("User already joined this contest") from e

    async def get_participation(self, user_id, contest_id):
        async with self._session_factory() as session:
            return await user_contest_repo.get_participation(session, user_id, contest_id)

    async def list_participations(self, contest_id):
        async with self._session_factory() as session:
            return await user_contest_repo.get_contest_participations(session, contest_id)

    async def list_user_participations(self, user_id):
        async with self._session_factory() as session:
            return await user_contest_repo.get_user_participations(session, user_id)

    async def count_participants(self, contest_id):
        async with self._session_factory() as session:
            return await user_contest_repo.count_participants(session, contest_id)

    async def record_final_result(self, participation_id, final_roi, rank):
        async with self._session_factory() as session:
            await user_contest_repo.record_final_result(session, participation_id, final_roi, rank)

    # Referrals
    async def add_referral(self, referrer_id, referred_id):
        async with self._session_factory() as session:
            try:
                return await referral_repo.create_referral(session, referrer_id, referred_id)
            except IntegrityError as e:
                await session.rollback()
                raise ValueError("User was already referred") from e

    async def count_referrals(self, user_id):
        async with self._session_factory() as session:
            return await referral_repo.count_referrals(session, user_id)

    async def top_referrers(self, limit=10):
        async with self._session_factory() as session:
            return await user_repo.get_top_referrers(session, limit)
