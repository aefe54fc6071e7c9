"""
Wiring of the core services
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from app.core.websocket_manager import WebSocketManager
from app.services.contest_generator import DailyContestGenerator, build_templates
from app.services.contest_join import ContestJoinService
from app.services.leaderboard import LeaderboardService
from app.services.market_clock import MarketClock, utcnow
from app.services.price_source import PriceSource, build_price_source
from app.services.quote_quota import build_quote_quota
from app.services.scheduler import PriceUpdateScheduler
from app.services.settlement import PrizeDistributor
from app.services.valuation import PortfolioValuationEngine
from app.storage.base import StorageBackend

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: object
    storage: StorageBackend
    clock: MarketClock
    price_source: PriceSource
    websockets: WebSocketManager
    engine: PortfolioValuationEngine
    leaderboards: LeaderboardService
    distributor: PrizeDistributor
    generator: DailyContestGenerator
    joins: ContestJoinService
    scheduler: PriceUpdateScheduler
    now: Callable[[], datetime] = utcnow

    async def shutdown(self) -> None:
        await self.scheduler.stop()
        await self.websockets.close_all()
        await self.price_source.aclose()
        await self.storage.close()


def build_services(
    settings,
    storage: StorageBackend,
    price_source: Optional[PriceSource] = None,
    clock: Optional[MarketClock] = None,
    now_fn: Callable[[], datetime] = utcnow,
) -> Services:
    """Build every service from settings; tests pass their own storage, prices and clock."""
    clock = clock or MarketClock(
        utc_offset_minutes=settings.market_utc_offset_minutes,
        open_minutes=settings.market_open_minutes,
        close_minutes=settings.market_close_minutes,
    )
    if price_source is None:
        quota = build_quote_quota(settings.quota_backend, settings.quote_daily_quota)
        price_source = build_price_source(settings, quota)

    websockets = WebSocketManager()
    engine = PortfolioValuationEngine(storage, price_source, broadcaster=websockets,
                                      market=settings.market_exchange)
    distributor = PrizeDistributor(storage, now_fn=now_fn)
    generator = DailyContestGenerator(
        storage,
        clock,
        now_fn=now_fn,
        templates=build_templates(settings.daily_contest_fees[:settings.daily_contest_count]),
        starting_capital=Decimal(settings.daily_contest_starting_capital),
    )
    scheduler = PriceUpdateScheduler(
        storage,
        engine,
        clock,
        broadcaster=websockets,
        distributor=distributor,
        generator=generator,
        now_fn=now_fn,
        price_update_interval=settings.price_update_interval_seconds,
        market_check_interval=settings.market_check_interval_seconds,
        housekeeping_interval=settings.housekeeping_interval_seconds,
        leaderboard_size=settings.leaderboard_broadcast_size,
        enable_housekeeping=settings.enable_housekeeping,
    )
    return Services(
        settings=settings,
        storage=storage,
        clock=clock,
        price_source=price_source,
        websockets=websockets,
        engine=engine,
        leaderboards=LeaderboardService(storage),
        distributor=distributor,
        generator=generator,
        joins=ContestJoinService(storage, engine, now_fn=now_fn),
        scheduler=scheduler,
        now=now_fn,
    )
