"""
Contest settlement service for deterministic prize distribution
"""

import logging
from datetime import datetime
from decimal import Decimal, ROUND_FLOOR
from typing import Callable, Dict, List, Optional

from app.core.metrics import CONTESTS_SETTLED, PRIZE_PAYOUTS
from app.models.contest import Contest
from app.models.enums import ContestStatus
from app.services.leaderboard import LeaderboardService
from app.services.market_clock import ensure_utc, utcnow
from app.storage.base import StorageBackend

# Configure logging
logger = logging.getLogger(__name__)

# Top three split the pool 50/30/20
PRIZE_STRUCTURE = [
    {"pos": 1, "pct": 50},
    {"pos": 2, "pct": 30},
    {"pos": 3, "pct": 20},
]


def compute_payouts(prize_pool: Decimal, num_participants: int,
                    prize_structure: Optional[List[Dict]] = None) -> List[Dict]:
    """
    Split a prize pool over the ranked positions.

    Each amount is floored to whole coins so the total never exceeds the
    pool. Positions beyond the number of participants and zero amounts are
    dropped.

    Args:
        prize_pool: Total pool (entry fee times participants)
        num_participants: Number of ranked participants
        prize_structure: List of {"pos", "pct"} slots

    Returns:
        List of {"position", "percentage", "amount"} dicts
    """
    prize_structure = prize_structure if prize_structure is not None else PRIZE_STRUCTURE
    payouts = []
    for slot in prize_structure:
        position = slot["pos"]
        if position > num_participants:
            continue
        amount = (Decimal(prize_pool) * Decimal(str(slot["pct"])) / Decimal("100")).to_integral_value(rounding=ROUND_FLOOR)
        if amount > 0:
            payouts.append({"position": position, "percentage": slot["pct"], "amount": amount})
    return payouts


class PrizeDistributor:
    """Finalises contests whose end date has passed."""

    def __init__(self, storage: StorageBackend, prize_structure: Optional[List[Dict]] = None,
                 now_fn: Callable[[], datetime] = utcnow):
        self.storage = storage
        self.prize_structure = prize_structure or PRIZE_STRUCTURE
        self.leaderboards = LeaderboardService(storage)
        self._now = now_fn

    async def distribute_prizes(self, now: Optional[datetime] = None) -> List[Dict]:
        """
        Settle every contest that has ended but is not yet marked ended.

        A failure in one contest is logged and does not stop the others.

        Returns:
            Settlement summaries of the contests processed in this run
        """
        now = ensure_utc(now or self._now())
        results = []
        for contest in await self.storage.list_contests():
            if contest.status == ContestStatus.ENDED.value:
                continue
            if ensure_utc(contest.end_date) >= now:
                continue
            try:
                results.append(await self.settle_contest(contest))
            except Exception as e:
                logger.error(f"Settlement failed for contest {contest.id}: {e}", exc_info=True)
                results.append({"success": False, "contest_id": str(contest.id), "error": str(e)})
        if results:
            logger.info(f"Prize distribution processed {len(results)} contests")
        return results

    async def settle_contest(self, contest: Contest) -> Dict:
        """
        Snapshot final ROI for every participant, credit the top three and
        mark the contest ended.
        """
        entries = await self.leaderboards.contest_leaderboard(contest.id)
        num_players = len(entries)

        if not entries:
            await self.storage.update_contest_status(contest.id, ContestStatus.ENDED.value)
            CONTESTS_SETTLED.inc()
            logger.info(f"Contest {contest.id} ended with no participants")
            return {
                "success": True,
                "contest_id": str(contest.id),
                "num_players": 0,
                "total_prize_pool": "0",
                "payouts": [],
            }

        # Freeze the leaderboard before paying anyone
        for entry in entries:
            await self.storage.record_final_result(entry.participation.id, entry.roi, entry.rank)

        total_prize_pool = Decimal(contest.entry_fee or 0) * num_players
        logger.info(f"Contest {contest.id}: {num_players} players, prize pool {total_prize_pool}")

        payouts = []
        total_paid = Decimal("0")
        for payout in compute_payouts(total_prize_pool, num_players, self.prize_structure):
            winner = entries[payout["position"] - 1]
            user_id = winner.participation.user_id
            await self.storage.adjust_balance(user_id, payout["amount"])
            total_paid += payout["amount"]
            PRIZE_PAYOUTS.inc(float(payout["amount"]))
            payouts.append({
                "position": payout["position"],
                "percentage": payout["percentage"],
                "user_id": str(user_id),
                "amount": str(payout["amount"]),
                "roi": float(winner.roi),
            })
            logger.info(f"Credited {payout['amount']} to user {user_id} for position {payout['position']}")

        await self.storage.update_contest_status(contest.id, ContestStatus.ENDED.value)
        CONTESTS_SETTLED.inc()

        logger.info(f"Settlement completed for contest {contest.id}: paid {total_paid} of {total_prize_pool}")
        return {
            "success": True,
            "contest_id": str(contest.id),
            "num_players": num_players,
            "total_prize_pool": str(total_prize_pool),
            "total_payouts": str(total_paid),
            "payouts": payouts,
        }
