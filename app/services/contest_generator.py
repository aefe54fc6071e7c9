"""
Daily contest generator.

Keeps two contests scheduled for every trading day: a morning challenge
and a cheaper afternoon one. Both span the full trading session.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Sequence

from app.core.metrics import CONTESTS_CREATED
from app.models.contest import Contest
from app.models.enums import ContestStatus
from app.services.market_clock import MarketClock, ensure_utc, utcnow
from app.storage.base import StorageBackend

logger = logging.getLogger(__name__)


@dataclass
class ContestTemplate:
    label: str
    entry_fee: Decimal
    description: str


DEFAULT_TEMPLATES = [
    ContestTemplate(
        label="Morning",
        entry_fee=Decimal("100"),
        description="Join the morning trading session! Show your skills and compete for the top spot.",
    ),
    ContestTemplate(
        label="Afternoon",
        entry_fee=Decimal("50"),
        description="Afternoon trading session. Make the best moves and climb the leaderboard!",
    ),
]


def build_templates(fees: Sequence[int]) -> List[ContestTemplate]:
    """Default templates with entry fees overridden from configuration."""
    templates = []
    for template, fee in zip(DEFAULT_TEMPLATES, fees):
        templates.append(ContestTemplate(template.label, Decimal(fee), template.description))
    return templates or list(DEFAULT_TEMPLATES)


def contest_name(label: str, day: date) -> str:
    return f"Daily Stock Challenge - {label} ({day.strftime('%b')} {day.day})"


class DailyContestGenerator:
    """Creates the standard daily contests ahead of time."""

    def __init__(
        self,
        storage: StorageBackend,
        clock: MarketClock,
        now_fn: Callable[[], datetime] = utcnow,
        templates: Optional[List[ContestTemplate]] = None,
        starting_capital: Decimal = Decimal("1000000"),
    ):
        self.storage = storage
        self.clock = clock
        self._now = now_fn
        self.templates = templates or list(DEFAULT_TEMPLATES)
        self.starting_capital = Decimal(starting_capital)

    async def contests_for_date(self, day: date) -> List[Contest]:
        """Contests whose start falls on exchange date ``day``."""
        start = datetime.combine(day, time.min, tzinfo=self.clock.tz).astimezone(timezone.utc)
        return await self.storage.list_contests_starting_between(start, start + timedelta(days=1))

    async def ensure_contests_for_date(self, day: date) -> List[Contest]:
        """
        Create the daily contests for ``day`` unless they already exist.

        Args:
            day: Exchange calendar date

        Returns:
            The contests created by this call (empty when nothing was needed)
        """
        if not self.clock.is_trading_day(day):
            logger.debug(f"{day} is not a trading day, no contests needed")
            return []

        existing = await self.contests_for_date(day)
        if len(existing) >= len(self.templates):
            logger.debug(f"{len(existing)} contests already exist for {day}")
            return []

        start, end = self.clock.session_window(day)
        existing_names = {c.name for c in existing}
        created = []
        for template in self.templates:
            if contest_name(template.label, day) in existing_names:
                continue
            contest = await self.storage.add_contest(
                name=contest_name(template.label, day),
                description=template.description,
                entry_fee=template.entry_fee,
                starting_capital=self.starting_capital,
                duration=1,
                start_date=start,
                end_date=end,
                fest_mode=False,
                status=ContestStatus.UPCOMING.value,
            )
            created.append(contest)
            CONTESTS_CREATED.inc()
            logger.info(f"Created contest {contest.name} ({contest.id})")
        return created

    async def check_and_create_tomorrow(self, now: Optional[datetime] = None) -> List[Contest]:
        """
        Pre-create the next trading day's contests once today's are over.

        Runs when any of today's contests has ended, or when today has none.
        """
        now = ensure_utc(now or self._now())
        today = self.clock.exchange_date(now)

        todays = [c for c in await self.storage.list_contests()
                  if self.clock.exchange_date(c.end_date) == today]
        any_ended = any(
            c.status == ContestStatus.ENDED.value or ensure_utc(c.end_date) < now for c in todays
        )
        if todays and not any_ended:
            return []

        return await self.ensure_contests_for_date(self.clock.next_trading_day(today))

    async def initialize(self, now: Optional[datetime] = None) -> List[Contest]:
        """Make sure today's (if trading) and the next contests exist. Never raises."""
        now = ensure_utc(now or self._now())
        created = []
        try:
            created.extend(await self.ensure_contests_for_date(self.clock.exchange_date(now)))
            created.extend(await self.check_and_create_tomorrow(now))
        except Exception as e:
            logger.error(f"Daily contest generation failed: {e}", exc_info=True)
        return created
