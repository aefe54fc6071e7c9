"""
Unit tests for the celery housekeeping tasks and the demo seed script
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, patch

from app.models.enums import ContestStatus
from app.scripts.seed_contests import seed
from app.services.price_source import SimulatedPriceSource
from app.storage.memory import MemoryStorage
from app.tasks import contest_tasks
from tests.fixtures.market import ist


def run_with(storage):
    async def _with_storage(work):
        return await work(storage)
    return patch.object(contest_tasks, "_with_storage", _with_storage)


class TestCeleryTasks:

    def test_distribute_prizes_task(self):
        storage = MemoryStorage()
        with run_with(storage):
            contest = asyncio.run(storage.add_contest("Old", ist(2020, 1, 1, 9, 15), ist(2020, 1, 1, 15, 30)))
            result = contest_tasks.distribute_prizes_task.apply().get()

        assert result[0]["contest_id"] == str(contest.id)
        assert contest.status == ContestStatus.ENDED.value

    def test_ensure_daily_contests_task(self):
        storage = MemoryStorage()
        with run_with(storage):
            created = contest_tasks.ensure_daily_contests_task.apply().get()
        assert len(created) >= 2
        assert len(created) == len(storage.contests)

    def test_ensure_daily_contests_task_retries_on_storage_failure(self):
        storage = MemoryStorage()
        failing = AsyncMock(side_effect=RuntimeError("db down"))
        with run_with(storage), patch.object(storage, "list_contests_starting_between", failing), \
                patch.object(storage, "list_contests", failing):
            with pytest.raises(RuntimeError):
                contest_tasks.ensure_daily_contests_task.apply().get()

        assert failing.await_count > 1
        assert storage.contests == {}


class TestSeed:

    async def test_seeds_first_contest(self, storage, clock):
        summary = await seed(storage, SimulatedPriceSource(), clock, now=ist(2024, 1, 10, 8, 0))

        assert summary == {"contests": 2, "users": 6, "portfolios": 6}
        contest = (await storage.list_contests())[0]
        assert await storage.count_participants(contest.id) == 6
        assert len(await storage.list_colleges()) == 2

    async def test_second_run_is_noop(self, storage, clock):
        await seed(storage, SimulatedPriceSource(), clock, now=ist(2024, 1, 10, 8, 0))
        summary = await seed(storage, SimulatedPriceSource(), clock, now=ist(2024, 1, 10, 8, 0))
        assert summary["users"] == 0
        assert len(storage.users) == 6

    async def test_weekend_seeds_monday(self, storage, clock):
        await seed(storage, SimulatedPriceSource(), clock, now=ist(2024, 1, 13, 12, 0))
        contest = (await storage.list_contests())[0]
        assert contest.start_date == ist(2024, 1, 15, 9, 15)
