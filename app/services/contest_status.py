"""
Derived contest status for display
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict

from app.models.contest import Contest
from app.models.enums import ContestStatus
from app.services.market_clock import MarketClock, ensure_utc

DEFAULT_CLOSING_SOON = timedelta(hours=2)


@dataclass
class ContestView:
    status: str
    time_remaining: str
    closing_soon: bool
    participants: int
    prize_pool: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "timeRemaining": self.time_remaining,
            "closingSoon": self.closing_soon,
            "participants": self.participants,
            "prizePool": float(self.prize_pool),
        }


def format_duration(delta: timedelta) -> str:
    """Human readable countdown such as "2d 3h", "3h 12m" or "12m"."""
    total_minutes = int(delta.total_seconds() // 60)
    if total_minutes < 1:
        return "<1m"
    days, rem = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rem, 60)
    if days:
        return f"{days}d {hours}h"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def derive_contest_view(
    contest: Contest,
    now: datetime,
    clock: MarketClock,
    participants: int,
    closing_soon_threshold: timedelta = DEFAULT_CLOSING_SOON,
) -> ContestView:
    """
    Compute what a contest should show right now.

    Inside its window a contest only reads as live while the market is
    open; otherwise it reads as upcoming with a countdown to the reopen.
    Ended is terminal and wins over everything else.
    """
    now = ensure_utc(now)
    start = ensure_utc(contest.start_date)
    end = ensure_utc(contest.end_date)
    prize_pool = Decimal(contest.entry_fee or 0) * participants

    if contest.status == ContestStatus.ENDED.value or now > end:
        return ContestView(ContestStatus.ENDED.value, "Ended", False, participants, prize_pool)

    if now < start:
        return ContestView(
            ContestStatus.UPCOMING.value,
            f"Starts in {format_duration(start - now)}",
            False,
            participants,
            prize_pool,
        )

    if clock.is_open(now):
        remaining = end - now
        return ContestView(
            ContestStatus.LIVE.value,
            f"Ends in {format_duration(remaining)}",
            remaining < closing_soon_threshold,
            participants,
            prize_pool,
        )

    return ContestView(
        ContestStatus.UPCOMING.value,
        f"Market reopens in {format_duration(clock.next_open(now) - now)}",
        False,
        participants,
        prize_pool,
    )


def contest_payload(contest: Contest, view: ContestView) -> Dict[str, Any]:
    """Stored contest fields merged with the derived view."""
    payload = contest.to_dict()
    payload["storedStatus"] = payload.pop("status")
    payload.update(view.to_dict())
    return payload
