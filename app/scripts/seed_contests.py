#!/usr/bin/env python3
"""
Seed script to create demo contests, users and portfolios
"""

import asyncio
import logging
import random
from datetime import datetime
from typing import Dict, Optional

from app.core.config import settings
from app.services.contest_generator import DailyContestGenerator, build_templates
from app.services.market_clock import MarketClock, utcnow
from app.services.portfolios import create_portfolio_with_holdings
from app.services.contest_join import ContestJoinService
from app.services.price_source import POPULAR_INDIAN_STOCKS, PriceSource, SimulatedPriceSource
from app.storage.base import StorageBackend

logger = logging.getLogger(__name__)

DEMO_COLLEGES = [("IIT Bombay", "Mumbai"), ("BITS Pilani", "Pilani")]
DEMO_USERS = ["arjun", "diya", "kabir", "meera", "rohan", "sara"]


async def seed(storage: StorageBackend, price_source: PriceSource, clock: MarketClock,
               now: Optional[datetime] = None, seed_value: int = 42) -> Dict[str, int]:
    """
    Create today's contests plus demo users who joined the first one.

    Args:
        storage: Target storage
        price_source: Used to price the demo holdings
        clock: Market clock for the contest windows
        now: Reference instant (defaults to now)
        seed_value: RNG seed for reproducible holdings

    Returns:
        Counts of created records
    """
    now = now or utcnow()
    rng = random.Random(seed_value)
    generator = DailyContestGenerator(
        storage, clock,
        templates=build_templates(settings.daily_contest_fees[:settings.daily_contest_count]),
    )

    day = clock.exchange_date(now)
    if not clock.is_trading_day(day):
        day = clock.next_trading_day(day)
    await generator.ensure_contests_for_date(day)
    contests = await generator.contests_for_date(day)
    if not contests:
        logger.warning("No contests available to seed participants into")
        return {"contests": 0, "users": 0, "portfolios": 0}
    target = contests[0]
    if await storage.count_participants(target.id):
        logger.info(f"Contest {target.name} already has participants, nothing to seed")
        return {"contests": len(contests), "users": 0, "portfolios": 0}

    existing = {c.name: c for c in await storage.list_colleges()}
    colleges = [existing.get(name) or await storage.add_college(name, city) for name, city in DEMO_COLLEGES]
    joins = ContestJoinService(storage, now_fn=lambda: now)

    users = portfolios = 0
    for i, username in enumerate(DEMO_USERS):
        user = await storage.add_user(
            username=f"{username}_{day.strftime('%m%d')}",
            college_id=colleges[i % len(colleges)].id,
            virtual_balance=target.entry_fee * 10,
        )
        users += 1
        positions = [(symbol, rng.randint(1, 20)) for symbol in rng.sample(POPULAR_INDIAN_STOCKS, 3)]
        portfolio = await create_portfolio_with_holdings(storage, price_source, user.id, positions)
        portfolios += 1
        await joins.join(target.id, user.id, portfolio.id)

    logger.info(f"Seeded {users} users into contest {target.name}")
    return {"contests": len(contests), "users": users, "portfolios": portfolios}


async def run():
    """Seed the configured storage with demo data"""
    from app.storage.factory import build_storage

    storage = await build_storage(settings)
    clock = MarketClock(settings.market_utc_offset_minutes, settings.market_open_minutes,
                        settings.market_close_minutes)
    summary = await seed(storage, SimulatedPriceSource(), clock)
    print(f"Seeded {summary}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    asyncio.run(run())
