"""
Unit tests for joining contests and creating portfolios
"""

import pytest
import uuid
from decimal import Decimal
from unittest.mock import AsyncMock

from app.core.exceptions import (
    ContestJoinError,
    ContestNotFoundError,
    PortfolioNotFoundError,
    UserNotFoundError,
)
from app.models.enums import ContestStatus
from app.services.contest_join import ContestJoinService
from app.services.portfolios import create_portfolio_with_holdings
from app.services.valuation import PortfolioValuationEngine
from tests.fixtures.market import make_portfolio, ist


@pytest.fixture
async def contest(storage):
    return await storage.add_contest(
        "Daily", ist(2024, 1, 10, 9, 15), ist(2024, 1, 10, 15, 30), entry_fee=Decimal("50")
    )


@pytest.fixture
async def user(storage):
    return await storage.add_user("joiner")


@pytest.fixture
async def portfolio(storage, user):
    return await make_portfolio(storage, user.id, [("TCS", 1, 3000)])


@pytest.fixture
def joins(storage, price_source, broadcaster, now):
    engine = PortfolioValuationEngine(storage, price_source, broadcaster=broadcaster)
    return ContestJoinService(storage, engine, now_fn=now)


class TestJoin:

    async def test_join_debits_fee_and_assigns_portfolio(self, joins, storage, contest, user, portfolio, broadcaster):
        record = await joins.join(contest.id, user.id, portfolio.id)

        assert record.contest_id == contest.id
        assert user.virtual_balance == Decimal("50")
        assert portfolio.contest_id == contest.id
        assert await storage.count_participants(contest.id) == 1
        assert [pid for pid, _ in broadcaster.portfolio_updates] == [portfolio.id]

    async def test_duplicate_join_rejected(self, joins, contest, user, portfolio):
        await joins.join(contest.id, user.id, portfolio.id)
        with pytest.raises(ContestJoinError):
            await joins.join(contest.id, user.id, portfolio.id)
        assert user.virtual_balance == Decimal("50")

    async def test_insufficient_balance(self, joins, storage, contest, user, portfolio):
        await storage.set_balance(user.id, Decimal("10"))
        with pytest.raises(ContestJoinError):
            await joins.join(contest.id, user.id, portfolio.id)
        assert await storage.count_participants(contest.id) == 0

    async def test_ended_contest(self, joins, storage, contest, user, portfolio):
        await storage.update_contest_status(contest.id, ContestStatus.ENDED.value)
        with pytest.raises(ContestJoinError):
            await joins.join(contest.id, user.id, portfolio.id)

    async def test_contest_past_end(self, joins, contest, user, portfolio, now):
        now.now = ist(2024, 1, 10, 16, 0)
        with pytest.raises(ContestJoinError):
            await joins.join(contest.id, user.id, portfolio.id)

    async def test_portfolio_of_someone_else(self, joins, storage, contest, portfolio):
        stranger = await storage.add_user("stranger")
        with pytest.raises(ContestJoinError):
            await joins.join(contest.id, stranger.id, portfolio.id)

    async def test_portfolio_in_other_contest(self, joins, storage, contest, user):
        other = await storage.add_contest("Other", ist(2024, 1, 10, 9, 15), ist(2024, 1, 10, 15, 30))
        portfolio = await storage.add_portfolio(user.id, contest_id=other.id)
        with pytest.raises(ContestJoinError):
            await joins.join(contest.id, user.id, portfolio.id)

    @pytest.mark.parametrize("missing,error", [
        ("contest", ContestNotFoundError),
        ("user", UserNotFoundError),
        ("portfolio", PortfolioNotFoundError),
    ])
    async def test_unknown_ids(self, joins, contest, user, portfolio, missing, error):
        ids = {"contest": contest.id, "user": user.id, "portfolio": portfolio.id}
        ids[missing] = uuid.uuid4()
        with pytest.raises(error):
            await joins.join(ids["contest"], ids["user"], ids["portfolio"])

    async def test_lost_race_refunds_fee(self, joins, storage, contest, user, portfolio, monkeypatch):
        monkeypatch.setattr(storage, "add_participation", AsyncMock(side_effect=ContestJoinError("duplicate")))
        with pytest.raises(ContestJoinError):
            await joins.join(contest.id, user.id, portfolio.id)
        assert user.virtual_balance == Decimal("100")

    async def test_storage_failure_refunds_fee(self, joins, storage, contest, user, portfolio, monkeypatch):
        monkeypatch.setattr(storage, "add_participation", AsyncMock(side_effect=RuntimeError("db down")))
        with pytest.raises(RuntimeError):
            await joins.join(contest.id, user.id, portfolio.id)
        assert user.virtual_balance == Decimal("100")
        assert await storage.get_participation(user.id, contest.id) is None

    async def test_valuation_failure_does_not_block_join(self, joins, price_source, contest, user, portfolio):
        price_source.fail = True
        record = await joins.join(contest.id, user.id, portfolio.id)
        assert record is not None


class TestCreatePortfolio:

    async def test_buys_at_quote_prices(self, storage, price_source, user):
        portfolio = await create_portfolio_with_holdings(
            storage, price_source, user.id, [("TCS", 2), ("NSE:INFY", 3)]
        )

        assert portfolio.total_value == Decimal("11500.0")
        holdings = await storage.get_holdings(portfolio.id)
        assert [(h.stock_symbol, h.quantity, h.buy_price) for h in holdings] == [
            ("TCS", 2, Decimal("3500.0")),
            ("INFY", 3, Decimal("1500.0")),
        ]

    async def test_rejects_non_positive_quantity(self, storage, price_source, user):
        with pytest.raises(ValueError):
            await create_portfolio_with_holdings(storage, price_source, user.id, [("TCS", 0)])

    async def test_unknown_user(self, storage, price_source):
        with pytest.raises(UserNotFoundError):
            await create_portfolio_with_holdings(storage, price_source, uuid.uuid4(), [("TCS", 1)])
