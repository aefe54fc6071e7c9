"""
Portfolio valuation engine.

Values a portfolio's holdings at current quotes and persists the derived
``total_value`` and ``roi`` fields. This is the only writer of those fields
and of ``Holding.current_price``.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional
from uuid import UUID

from app.core.exceptions import PortfolioNotFoundError, PriceSourceUnavailableError
from app.core.metrics import VALUATION_COUNT
from app.services.price_source import PriceSource, clean_symbol
from app.storage.base import StorageBackend

logger = logging.getLogger(__name__)

ROI_PRECISION = Decimal("0.0001")
MONEY_PRECISION = Decimal("0.01")
ZERO = Decimal("0")


@dataclass
class PortfolioMetrics:
    """Valuation result: invested and current value, P&L, ROI in percent."""
    total_invested: Decimal
    total_current: Decimal
    total_pl: Decimal
    roi: Decimal

    @classmethod
    def zero(cls) -> "PortfolioMetrics":
        return cls(ZERO, ZERO, ZERO, ZERO)

    def to_dict(self) -> Dict[str, float]:
        return {
            "totalInvested": float(self.total_invested),
            "totalCurrent": float(self.total_current),
            "totalPL": float(self.total_pl),
            "roi": float(self.roi),
        }


def compute_roi(total_invested: Decimal, total_current: Decimal) -> Decimal:
    """ROI in percent, zero when nothing was invested."""
    if total_invested <= 0:
        return ZERO
    return ((total_current - total_invested) / total_invested * 100).quantize(ROI_PRECISION)


class PortfolioValuationEngine:
    """Computes and persists portfolio metrics."""

    def __init__(self, storage: StorageBackend, price_source: PriceSource,
                 broadcaster=None, market: str = "NSE"):
        self.storage = storage
        self.price_source = price_source
        self.broadcaster = broadcaster
        self.market = market

    async def valuate(self, portfolio_id: UUID) -> PortfolioMetrics:
        """
        Value one portfolio at current quotes.

        Args:
            portfolio_id: Portfolio UUID

        Returns:
            PortfolioMetrics for the portfolio

        Raises:
            PortfolioNotFoundError: if the portfolio does not exist
            PriceSourceUnavailableError: if the price source itself raised
        """
        portfolio = await self.storage.get_portfolio(portfolio_id)
        if portfolio is None:
            VALUATION_COUNT.labels(status="not_found").inc()
            raise PortfolioNotFoundError(portfolio_id)

        holdings = await self.storage.get_holdings(portfolio_id)
        if not holdings:
            VALUATION_COUNT.labels(status="empty").inc()
            return PortfolioMetrics.zero()

        symbols = list(dict.fromkeys(clean_symbol(h.stock_symbol) for h in holdings))
        try:
            quotes = await self.price_source.get_quotes(symbols, self.market)
        except Exception as e:
            VALUATION_COUNT.labels(status="price_source_error").inc()
            raise PriceSourceUnavailableError(f"Price source failed for portfolio {portfolio_id}: {e}") from e

        prices = {q.symbol: Decimal(str(q.price)) for q in quotes}

        total_invested = ZERO
        total_current = ZERO
        for holding in holdings:
            quantity = Decimal(holding.quantity)
            buy_price = Decimal(holding.buy_price)
            price = prices.get(clean_symbol(holding.stock_symbol))

            if price is None:
                # No quote: keep the cached price, or cost basis if never priced
                price = Decimal(holding.current_price) if holding.current_price is not None else buy_price
            elif not portfolio.is_locked:
                await self._cache_holding_price(holding.id, price)

            total_invested += buy_price * quantity
            total_current += price * quantity

        metrics = PortfolioMetrics(
            total_invested=total_invested,
            total_current=total_current,
            total_pl=total_current - total_invested,
            roi=compute_roi(total_invested, total_current),
        )

        if portfolio.is_locked:
            logger.debug(f"Portfolio {portfolio_id} is locked, skipping persistence")
        else:
            await self._persist(portfolio_id, metrics)

        await self._notify(portfolio_id, metrics)
        VALUATION_COUNT.labels(status="success").inc()
        return metrics

    async def _cache_holding_price(self, holding_id: UUID, price: Decimal) -> None:
        try:
            await self.storage.update_holding_price(holding_id, price.quantize(MONEY_PRECISION))
        except Exception as e:
            logger.error(f"Failed to cache price for holding {holding_id}: {e}")

    async def _persist(self, portfolio_id: UUID, metrics: PortfolioMetrics) -> None:
        try:
            await self.storage.update_portfolio_valuation(
                portfolio_id,
                metrics.total_current.quantize(MONEY_PRECISION),
                metrics.roi,
            )
        except Exception as e:
            logger.error(f"Failed to persist valuation for portfolio {portfolio_id}: {e}")

    async def _notify(self, portfolio_id: UUID, metrics: PortfolioMetrics) -> None:
        if self.broadcaster is None:
            return
        try:
            await self.broadcaster.emit_portfolio_update(portfolio_id, metrics.to_dict())
        except Exception as e:
            logger.warning(f"Portfolio update broadcast failed for {portfolio_id}: {e}")

    async def valuate_contest(self, contest_id: UUID) -> Dict[str, int]:
        """
        Value every participant portfolio of a contest.

        A failing portfolio is logged and counted; the rest still run.
        """
        summary = {"valuated": 0, "failed": 0, "skipped": 0}
        for record in await self.storage.list_participations(contest_id):
            if record.portfolio_id is None:
                summary["skipped"] += 1
                continue
            try:
                await self.valuate(record.portfolio_id)
                summary["valuated"] += 1
            except Exception as e:
                summary["failed"] += 1
                logger.error(f"Valuation failed for portfolio {record.portfolio_id} in contest {contest_id}: {e}")
        logger.info(f"Contest {contest_id} valuation: {summary}")
        return summary

    async def valuate_user_portfolios(self, user_id: UUID) -> Dict[str, int]:
        """Value every portfolio owned by a user, isolating failures."""
        summary = {"valuated": 0, "failed": 0}
        for portfolio in await self.storage.list_user_portfolios(user_id):
            try:
                await self.valuate(portfolio.id)
                summary["valuated"] += 1
            except Exception as e:
                summary["failed"] += 1
                logger.error(f"Valuation failed for portfolio {portfolio.id} of user {user_id}: {e}")
        return summary

    async def valuate_safely(self, portfolio_id: UUID) -> Optional[PortfolioMetrics]:
        """Value a portfolio, logging instead of raising. Used for on-demand refresh after a join."""
        try:
            return await self.valuate(portfolio_id)
        except Exception as e:
            logger.warning(f"On-demand valuation of portfolio {portfolio_id} failed: {e}")
            return None
