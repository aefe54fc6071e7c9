"""
Unit tests for prize distribution
"""

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock

from app.models.enums import ContestStatus
from app.services.settlement import PrizeDistributor, compute_payouts
from tests.fixtures.market import make_participant, ist

END = ist(2024, 1, 10, 15, 30)
AFTER_CLOSE = ist(2024, 1, 10, 16, 0)


async def ended_contest(storage, entry_fee="10", name="Daily"):
    return await storage.add_contest(name, ist(2024, 1, 10, 9, 15), END, entry_fee=Decimal(entry_fee))


class TestComputePayouts:

    def test_three_players(self):
        payouts = compute_payouts(Decimal("30"), 3)
        assert [(p["position"], p["amount"]) for p in payouts] == [(1, 15), (2, 9), (3, 6)]

    def test_floors_each_share(self):
        payouts = compute_payouts(Decimal("101"), 5)
        assert [p["amount"] for p in payouts] == [Decimal("50"), Decimal("30"), Decimal("20")]
        assert sum(p["amount"] for p in payouts) <= Decimal("101")

    def test_two_players_only_two_positions(self):
        payouts = compute_payouts(Decimal("200"), 2)
        assert [p["position"] for p in payouts] == [1, 2]

    def test_zero_pool(self):
        assert compute_payouts(Decimal("0"), 3) == []

    def test_small_pool_drops_zero_amounts(self):
        payouts = compute_payouts(Decimal("3"), 3)
        assert [(p["position"], p["amount"]) for p in payouts] == [(1, 1)]

    def test_custom_structure(self):
        payouts = compute_payouts(Decimal("100"), 2, [{"pos": 1, "pct": 100}])
        assert payouts == [{"position": 1, "percentage": 100, "amount": Decimal("100")}]


class TestPrizeDistributor:

    async def test_pays_top_three(self, storage):
        contest = await ended_contest(storage)
        users = []
        for name, roi in (("a", 5), ("b", 15), ("c", -1), ("d", 10)):
            user, _, _ = await make_participant(storage, contest, name, roi=roi)
            users.append(user)

        results = await PrizeDistributor(storage).distribute_prizes(AFTER_CLOSE)

        assert results[0]["num_players"] == 4
        assert results[0]["total_prize_pool"] == "40"
        balances = {u.username: u.virtual_balance for u in users}
        assert balances == {"b": Decimal("120"), "d": Decimal("112"), "a": Decimal("108"), "c": Decimal("100")}
        assert (await storage.get_contest(contest.id)).status == ContestStatus.ENDED.value

    async def test_records_final_roi_and_rank(self, storage):
        contest = await ended_contest(storage)
        _, _, low = await make_participant(storage, contest, "low", roi=1)
        _, _, high = await make_participant(storage, contest, "high", roi=2)

        await PrizeDistributor(storage).distribute_prizes(AFTER_CLOSE)

        assert (high.rank, high.final_roi) == (1, Decimal("2"))
        assert (low.rank, low.final_roi) == (2, Decimal("1"))

    async def test_rerun_pays_nothing(self, storage):
        contest = await ended_contest(storage)
        user, _, _ = await make_participant(storage, contest, "solo", roi=1)
        distributor = PrizeDistributor(storage)

        await distributor.distribute_prizes(AFTER_CLOSE)
        assert await distributor.distribute_prizes(AFTER_CLOSE) == []
        assert user.virtual_balance == Decimal("105")

    async def test_empty_contest_marked_ended(self, storage):
        contest = await ended_contest(storage)
        results = await PrizeDistributor(storage).distribute_prizes(AFTER_CLOSE)
        assert results[0]["num_players"] == 0
        assert (await storage.get_contest(contest.id)).status == ContestStatus.ENDED.value

    async def test_free_contest_still_settles(self, storage):
        contest = await ended_contest(storage, entry_fee="0")
        user, _, record = await make_participant(storage, contest, "free", roi=3)

        results = await PrizeDistributor(storage).distribute_prizes(AFTER_CLOSE)

        assert results[0]["payouts"] == []
        assert record.final_roi == Decimal("3")
        assert user.virtual_balance == Decimal("100")

    async def test_running_contest_untouched(self, storage):
        contest = await ended_contest(storage)
        await make_participant(storage, contest, "early", roi=1)
        assert await PrizeDistributor(storage).distribute_prizes(ist(2024, 1, 10, 15, 0)) == []
        assert (await storage.get_contest(contest.id)).status == ContestStatus.UPCOMING.value

    async def test_failure_isolated_per_contest(self, storage, monkeypatch):
        broken = await ended_contest(storage, name="Broken")
        fine = await ended_contest(storage, name="Fine")
        distributor = PrizeDistributor(storage)
        original = distributor.settle_contest

        async def settle(contest):
            if contest.id == broken.id:
                raise RuntimeError("boom")
            return await original(contest)

        monkeypatch.setattr(distributor, "settle_contest", settle)
        results = await distributor.distribute_prizes(AFTER_CLOSE)

        assert sorted(r["success"] for r in results) == [False, True]
        assert (await storage.get_contest(fine.id)).status == ContestStatus.ENDED.value
        assert (await storage.get_contest(broken.id)).status == ContestStatus.UPCOMING.value

    async def test_uses_now_fn_by_default(self, storage):
        await ended_contest(storage)
        now_fn = lambda: AFTER_CLOSE  # noqa: E731
        results = await PrizeDistributor(storage, now_fn=now_fn).distribute_prizes()
        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_payout_write_failure_leaves_contest_open(self, storage, monkeypatch):
        contest = await ended_contest(storage)
        await make_participant(storage, contest, "winner", roi=1)
        monkeypatch.setattr(storage, "adjust_balance", AsyncMock(side_effect=RuntimeError("db down")))

        results = await PrizeDistributor(storage).distribute_prizes(AFTER_CLOSE)

        assert results[0]["success"] is False
        assert (await storage.get_contest(contest.id)).status == ContestStatus.UPCOMING.value
