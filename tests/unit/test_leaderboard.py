"""
Unit tests for leaderboard ranking
"""

import pytest
from decimal import Decimal

from app.services.leaderboard import LeaderboardService, effective_roi
from tests.fixtures.market import make_participant, ist


@pytest.fixture
async def contest(storage):
    return await storage.add_contest("Daily", ist(2024, 1, 10, 9, 15), ist(2024, 1, 10, 15, 30))


@pytest.fixture
def leaderboards(storage):
    return LeaderboardService(storage)


class TestContestLeaderboard:

    async def test_ranked_by_roi_descending(self, storage, contest, leaderboards):
        await make_participant(storage, contest, "low", roi=-2)
        await make_participant(storage, contest, "high", roi=12.5)
        await make_participant(storage, contest, "mid", roi=3)

        entries = await leaderboards.contest_leaderboard(contest.id)

        assert [e.username for e in entries] == ["high", "mid", "low"]
        assert [e.rank for e in entries] == [1, 2, 3]

    async def test_ties_keep_join_order(self, storage, contest, leaderboards):
        await make_participant(storage, contest, "first", roi=5)
        await make_participant(storage, contest, "second", roi=5)

        entries = await leaderboards.contest_leaderboard(contest.id)

        assert [e.username for e in entries] == ["first", "second"]

    async def test_final_roi_overrides_live_roi(self, storage, contest, leaderboards):
        await make_participant(storage, contest, "settled", roi=50, final_roi=1)
        await make_participant(storage, contest, "live", roi=2)

        entries = await leaderboards.contest_leaderboard(contest.id)

        assert [e.username for e in entries] == ["live", "settled"]
        assert entries[1].roi == Decimal("1")

    async def test_limit(self, storage, contest, leaderboards):
        for i in range(5):
            await make_participant(storage, contest, f"user{i}", roi=i)
        entries = await leaderboards.contest_leaderboard(contest.id, limit=2)
        assert [e.username for e in entries] == ["user4", "user3"]

    async def test_empty(self, contest, leaderboards):
        assert await leaderboards.contest_leaderboard(contest.id) == []

    async def test_to_dict(self, storage, contest, leaderboards):
        user, portfolio, _ = await make_participant(storage, contest, "alice", roi=1.5)
        entry = (await leaderboards.contest_leaderboard(contest.id))[0].to_dict()
        assert entry["userId"] == str(user.id)
        assert entry["portfolioId"] == str(portfolio.id)
        assert entry["roi"] == 1.5
        assert entry["finalRoi"] is None


class TestCollegeLeaderboard:

    async def test_only_college_members(self, storage, contest, leaderboards):
        college = await storage.add_college("IIT Bombay", "Mumbai")
        member, _, _ = await make_participant(storage, contest, "member", roi=1)
        member.college_id = college.id
        await make_participant(storage, contest, "outsider", roi=9)

        entries = await leaderboards.college_leaderboard(college.id, contest.id)

        assert [e.username for e in entries] == ["member"]
        assert entries[0].rank == 1

    async def test_across_contests(self, storage, contest, leaderboards):
        other = await storage.add_contest("Other", ist(2024, 1, 11, 9, 15), ist(2024, 1, 11, 15, 30))
        college = await storage.add_college("BITS Pilani")
        user = await storage.add_user("multi", college_id=college.id)
        for c, roi in ((contest, "1"), (other, "4")):
            portfolio = await storage.add_portfolio(user.id, contest_id=c.id)
            await storage.update_portfolio_valuation(portfolio.id, Decimal("0"), Decimal(roi))
            await storage.add_participation(user.id, c.id, portfolio.id)

        entries = await leaderboards.college_leaderboard(college.id)

        assert [e.participation.contest_id for e in entries] == [other.id, contest.id]


def test_effective_roi_defaults_to_zero():
    class Record:
        final_roi = None
    assert effective_roi(Record(), None) == Decimal("0")
