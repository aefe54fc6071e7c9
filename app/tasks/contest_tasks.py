"""
Contest housekeeping tasks for out-of-process deployments
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, List

from app.celery_app import celery
from app.core.config import settings
from app.db.session import build_engine, build_session_factory
from app.services.contest_generator import DailyContestGenerator, build_templates
from app.services.market_clock import MarketClock, utcnow
from app.services.settlement import PrizeDistributor
from app.storage.sql import SqlStorage

logger = logging.getLogger(__name__)


def _clock() -> MarketClock:
    return MarketClock(
        utc_offset_minutes=settings.market_utc_offset_minutes,
        open_minutes=settings.market_open_minutes,
        close_minutes=settings.market_close_minutes,
    )


async def _with_storage(work):
    # Each task run owns its engine since asyncio.run() creates a fresh loop
    engine = build_engine(settings.database_url)
    try:
        storage = SqlStorage(build_session_factory(engine), new_user_balance=Decimal(settings.new_user_balance))
        return await work(storage)
    finally:
        await engine.dispose()


async def _distribute(storage) -> List[Dict[str, Any]]:
    return await PrizeDistributor(storage).distribute_prizes()


async def _generate(storage) -> List[str]:
    generator = DailyContestGenerator(
        storage,
        _clock(),
        templates=build_templates(settings.daily_contest_fees[:settings.daily_contest_count]),
        starting_capital=Decimal(settings.daily_contest_starting_capital),
    )
    # Called step by step so failures reach the task retry
    now = utcnow()
    created = await generator.ensure_contests_for_date(generator.clock.exchange_date(now))
    created.extend(await generator.check_and_create_tomorrow(now))
    return [str(c.id) for c in created]


@celery.task(bind=True, max_retries=3, default_retry_delay=60)
def distribute_prizes_task(self):
    """
    Settle every contest whose end date has passed.
    This task should be run periodically (e.g., hourly).
    """
    try:
        logger.info("Starting prize distribution task")
        results = asyncio.run(_with_storage(_distribute))
        logger.info(f"Prize distribution settled {len(results)} contests")
        return results
    except Exception as exc:
        logger.error(f"Error distributing prizes: {exc}")
        if self.request.retries < self.max_retries:
            logger.info(f"Retrying prize distribution (attempt {self.request.retries + 1})")
            raise self.retry(countdown=60 * (2 ** self.request.retries))  # Exponential backoff
        logger.error("Max retries exceeded for prize distribution")
        raise


@celery.task(bind=True, max_retries=3, default_retry_delay=60)
def ensure_daily_contests_task(self):
    """
    Make sure today's and the next trading day's contests exist.
    """
    try:
        created = asyncio.run(_with_storage(_generate))
        logger.info(f"Daily contest task created {len(created)} contests")
        return created
    except Exception as exc:
        logger.error(f"Error generating daily contests: {exc}")
        if self.request.retries < self.max_retries:
            raise self.retry(countdown=60 * (2 ** self.request.retries))
        raise
