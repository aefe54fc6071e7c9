"""
Portfolio creation
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional, Tuple
from uuid import UUID

from app.core.exceptions import UserNotFoundError
from app.models.portfolio import Portfolio
from app.services.price_source import PriceSource, clean_symbol
from app.storage.base import StorageBackend

logger = logging.getLogger(__name__)


async def create_portfolio_with_holdings(
    storage: StorageBackend,
    price_source: PriceSource,
    user_id: UUID,
    positions: Iterable[Tuple[str, int]],
    contest_id: Optional[UUID] = None,
    market: str = "NSE",
) -> Portfolio:
    """
    Create a portfolio and buy the given positions at current quotes.

    Args:
        storage: Storage backend
        price_source: Source of buy prices
        user_id: Owner
        positions: (symbol, quantity) pairs; quantities must be positive
        contest_id: Contest the portfolio is dedicated to, if any
        market: Exchange code

    Returns:
        The created Portfolio
    """
    positions = [(clean_symbol(symbol), int(quantity)) for symbol, quantity in positions]
    if any(quantity <= 0 for _, quantity in positions):
        raise ValueError("Holding quantities must be positive")

    if await storage.get_user(user_id) is None:
        raise UserNotFoundError(user_id)

    quotes = await price_source.get_quotes([symbol for symbol, _ in positions], market)
    prices = {q.symbol: Decimal(str(q.price)) for q in quotes}

    cost = sum((prices[symbol] * quantity for symbol, quantity in positions), Decimal("0"))
    portfolio = await storage.add_portfolio(user_id, contest_id=contest_id, total_value=cost)
    for symbol, quantity in positions:
        await storage.add_holding(portfolio.id, symbol, quantity, prices[symbol], current_price=prices[symbol])

    logger.info(f"Created portfolio {portfolio.id} for user {user_id} with {len(positions)} holdings")
    return portfolio
