"""
Price-update scheduler.

A small state machine driven by the market clock:

* every minute the market is checked; on open the scheduler goes from
  ``idle`` to ``running``, does one valuation pass immediately and arms a
  5-minute tick;
* each tick re-checks the clock and, once the market has closed, drops
  back to ``idle`` and closes out the day (prizes, then next contests);
* independently, an hourly housekeeping job settles finished contests and
  tops up the daily contests.

All timers are asyncio tasks owned by the scheduler and cancelled by
``stop()``.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from app.core.metrics import VALUATION_PASS_DURATION
from app.models.enums import ContestStatus, SchedulerState
from app.services.contest_generator import DailyContestGenerator
from app.services.leaderboard import LeaderboardService
from app.services.market_clock import MarketClock, ensure_utc, utcnow
from app.services.settlement import PrizeDistributor
from app.services.valuation import PortfolioValuationEngine
from app.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class PriceUpdateScheduler:
    """Runs valuation passes while the market is open."""

    def __init__(
        self,
        storage: StorageBackend,
        engine: PortfolioValuationEngine,
        clock: MarketClock,
        broadcaster=None,
        distributor: Optional[PrizeDistributor] = None,
        generator: Optional[DailyContestGenerator] = None,
        now_fn: Callable[[], datetime] = utcnow,
        price_update_interval: float = 300,
        market_check_interval: float = 60,
        housekeeping_interval: float = 3600,
        leaderboard_size: int = 10,
        enable_housekeeping: bool = True,
    ):
        self.storage = storage
        self.engine = engine
        self.clock = clock
        self.broadcaster = broadcaster
        self.distributor = distributor
        self.generator = generator
        self._now = now_fn
        self.price_update_interval = price_update_interval
        self.market_check_interval = market_check_interval
        self.housekeeping_interval = housekeeping_interval
        self.leaderboard_size = leaderboard_size
        self.enable_housekeeping = enable_housekeeping
        self.leaderboards = LeaderboardService(storage)

        self.state = SchedulerState.IDLE
        self._market_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._housekeeping_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self.state == SchedulerState.RUNNING

    @property
    def started(self) -> bool:
        return self._market_task is not None

    async def start(self) -> None:
        """Arm the market check (and housekeeping) timers. Calling twice is a no-op."""
        if self._market_task is not None:
            return
        logger.info("Starting price-update scheduler")
        self._market_task = asyncio.create_task(self._market_loop())
        if self.enable_housekeeping:
            self._housekeeping_task = asyncio.create_task(self._housekeeping_loop())

    async def stop(self) -> None:
        """Cancel every timer and go idle. Safe to call repeatedly."""
        tasks = [t for t in (self._market_task, self._tick_task, self._housekeeping_task) if t is not None]
        self._market_task = self._tick_task = self._housekeeping_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if tasks:
            logger.info("Price-update scheduler stopped")
        self.state = SchedulerState.IDLE

    async def _market_loop(self) -> None:
        while True:
            await self.check_market()
            await asyncio.sleep(self.market_check_interval)

    async def _housekeeping_loop(self) -> None:
        while True:
            await self.run_housekeeping()
            await asyncio.sleep(self.housekeeping_interval)

    async def _tick_loop(self) -> None:
        while self.state == SchedulerState.RUNNING:
            await asyncio.sleep(self.price_update_interval)
            await self.tick()

    async def check_market(self) -> None:
        """Apply the open/close transition for the current instant."""
        try:
            is_open = self.clock.is_open(self._now())
            if is_open and self.state == SchedulerState.IDLE:
                await self._enter_running()
            elif not is_open and self.state == SchedulerState.RUNNING:
                await self._enter_idle()
        except Exception as e:
            logger.error(f"Market check failed: {e}", exc_info=True)

    async def tick(self) -> None:
        """One scheduled price update; closes the day if the market shut."""
        try:
            if not self.clock.is_open(self._now()):
                await self._enter_idle()
                return
            await self.run_valuation_pass()
        except Exception as e:
            logger.error(f"Price update tick failed: {e}", exc_info=True)

    async def _enter_running(self) -> None:
        logger.info("Market opened, starting price updates")
        self.state = SchedulerState.RUNNING
        try:
            await self.run_valuation_pass()
        except Exception as e:
            logger.error(f"Initial valuation pass failed: {e}", exc_info=True)
        if self.state == SchedulerState.RUNNING and self._tick_task is None:
            self._tick_task = asyncio.create_task(self._tick_loop())

    async def _enter_idle(self) -> None:
        logger.info("Market closed, stopping price updates")
        self.state = SchedulerState.IDLE
        task, self._tick_task = self._tick_task, None
        # The tick loop exits by itself when the transition happens inside it
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.close_out_day()

    async def close_out_day(self) -> None:
        """Settle finished contests, then make sure the next day's exist."""
        now = self._now()
        if self.distributor is not None:
            try:
                await self.distributor.distribute_prizes(now)
            except Exception as e:
                logger.error(f"Prize distribution at market close failed: {e}", exc_info=True)
        if self.generator is not None:
            try:
                await self.generator.check_and_create_tomorrow(now)
            except Exception as e:
                logger.error(f"Contest generation at market close failed: {e}", exc_info=True)

    async def run_housekeeping(self) -> None:
        try:
            if self.distributor is not None:
                await self.distributor.distribute_prizes(self._now())
            if self.generator is not None:
                await self.generator.initialize(self._now())
        except Exception as e:
            logger.error(f"Hourly housekeeping failed: {e}", exc_info=True)

    async def run_valuation_pass(self, now: Optional[datetime] = None) -> int:
        """
        Value every contest whose window contains ``now``.

        Contests are processed in listing order; a failing contest is logged
        and the rest continue.

        Returns:
            Number of contests processed successfully
        """
        now = ensure_utc(now or self._now())
        if not self.clock.is_open(now):
            logger.debug("Market closed, skipping valuation pass")
            return 0

        processed = 0
        with VALUATION_PASS_DURATION.time():
            for contest in await self.storage.list_contests():
                if contest.status == ContestStatus.ENDED.value:
                    continue
                if not ensure_utc(contest.start_date) <= now <= ensure_utc(contest.end_date):
                    continue
                try:
                    await self._update_contest(contest)
                    processed += 1
                except Exception as e:
                    logger.error(f"Price update failed for contest {contest.id}: {e}", exc_info=True)

        logger.info(f"Valuation pass updated {processed} active contests")
        return processed

    async def _update_contest(self, contest) -> None:
        if contest.status == ContestStatus.UPCOMING.value:
            await self.storage.update_contest_status(contest.id, ContestStatus.LIVE.value)
        summary = await self.engine.valuate_contest(contest.id)
        if self.broadcaster is None:
            return
        top = await self.leaderboards.contest_leaderboard(contest.id, self.leaderboard_size)
        try:
            await self.broadcaster.emit_contest_update(
                contest.id,
                {"leaderboard": [entry.to_dict() for entry in top], "valuation": summary},
            )
        except Exception as e:
            logger.warning(f"Leaderboard broadcast failed for contest {contest.id}: {e}")
