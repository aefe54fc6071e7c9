"""
Market clock for the NSE trading window.

The exchange trades Monday to Friday between 09:15 and 15:30 local time
(IST, a fixed UTC+05:30 offset with no daylight saving). The window is
half-open: 09:15:00 is open and 15:30:00 is already closed. Exchange
holidays are not modelled.

All public methods accept timezone-aware instants; naive datetimes are
interpreted as UTC since that is how SQLite hands them back.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

from app.core.config import settings

logger = logging.getLogger(__name__)


def ensure_utc(instant: datetime) -> datetime:
    """Return ``instant`` as an aware UTC datetime."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MarketClock:
    """Answers whether the exchange is open and when it opens next."""

    def __init__(
        self,
        utc_offset_minutes: int = 330,
        open_minutes: int = 555,
        close_minutes: int = 930,
    ):
        if not 0 <= open_minutes < close_minutes <= 24 * 60:
            raise ValueError("Market open must precede close within one day")
        self.tz = timezone(timedelta(minutes=utc_offset_minutes))
        self.open_minutes = open_minutes
        self.close_minutes = close_minutes

    @property
    def open_time(self) -> time:
        return time(self.open_minutes // 60, self.open_minutes % 60)

    @property
    def close_time(self) -> time:
        return time(self.close_minutes // 60, self.close_minutes % 60)

    def to_local(self, instant: datetime) -> datetime:
        return ensure_utc(instant).astimezone(self.tz)

    def exchange_date(self, instant: datetime) -> date:
        """Calendar date on the exchange for the given instant."""
        return self.to_local(instant).date()

    @staticmethod
    def is_trading_day(day: date) -> bool:
        # Monday=0 .. Friday=4
        return day.weekday() < 5

    def next_trading_day(self, day: date) -> date:
        """First trading day strictly after ``day``."""
        candidate = day + timedelta(days=1)
        while not self.is_trading_day(candidate):
            candidate += timedelta(days=1)
        return candidate

    def is_open(self, instant: datetime) -> bool:
        """
        Check whether the market is open at ``instant``.

        Args:
            instant: Point in time to check

        Returns:
            True on a weekday inside [open, close) exchange time
        """
        local = self.to_local(instant)
        if not self.is_trading_day(local.date()):
            return False
        minutes = local.hour * 60 + local.minute
        return self.open_minutes <= minutes < self.close_minutes

    def session_window(self, day: date) -> Tuple[datetime, datetime]:
        """UTC instants of the open and close on exchange date ``day``."""
        start = datetime.combine(day, self.open_time, tzinfo=self.tz)
        end = datetime.combine(day, self.close_time, tzinfo=self.tz)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)

    def next_open(self, instant: datetime) -> datetime:
        """
        Next market open strictly after ``instant``.

        Before the open on a trading day this is today's open; otherwise it
        is the open of the following trading day (Friday rolls to Monday).
        """
        local = self.to_local(instant)
        today = local.date()
        minutes = local.hour * 60 + local.minute + local.second / 60 + local.microsecond / 60e6
        if self.is_trading_day(today) and minutes < self.open_minutes:
            target = today
        else:
            target = self.next_trading_day(today)
        return self.session_window(target)[0]

    def time_until_next_open(self, instant: datetime) -> timedelta:
        return self.next_open(instant) - ensure_utc(instant)

    def should_refresh(
        self,
        last_update: Optional[datetime],
        instant: datetime,
        interval: timedelta = timedelta(minutes=5),
    ) -> bool:
        """True only while open and at least ``interval`` after ``last_update``."""
        if not self.is_open(instant):
            return False
        if last_update is None:
            return True
        return ensure_utc(instant) - ensure_utc(last_update) >= interval


# Default clock built from settings
market_clock = MarketClock(
    utc_offset_minutes=settings.market_utc_offset_minutes,
    open_minutes=settings.market_open_minutes,
    close_minutes=settings.market_close_minutes,
)


def is_market_open_at(instant: datetime) -> bool:
    return market_clock.is_open(instant)


def is_market_open() -> bool:
    return market_clock.is_open(utcnow())
