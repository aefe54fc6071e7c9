"""
Portfolio and holding repository
"""

from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from app.models.portfolio import Portfolio, Holding


async def create_portfolio(
    session: AsyncSession,
    user_id: UUID,
    contest_id: Optional[UUID] = None,
    total_value: Decimal = Decimal("1000000"),
) -> Portfolio:
    """
    Create an empty portfolio.

    Args:
        session: Database session
        user_id: Owner UUID
        contest_id: Contest the portfolio is dedicated to, if any
        total_value: Initial total value

    Returns:
        Created Portfolio instance
    """
    portfolio = Portfolio(
        user_id=user_id,
        contest_id=contest_id,
        total_value=total_value,
        roi=Decimal("0"),
        is_locked=False,
    )
    session.add(portfolio)
    await session.commit()
    await session.refresh(portfolio)
    return portfolio


async def get_portfolio_by_id(session: AsyncSession, portfolio_id: UUID) -> Optional[Portfolio]:
    result = await session.execute(
        select(Portfolio).where(Portfolio.id == portfolio_id)
    )
    return result.scalar_one_or_none()


async def get_user_portfolios(session: AsyncSession, user_id: UUID) -> List[Portfolio]:
    result = await session.execute(
        select(Portfolio).where(Portfolio.user_id == user_id).order_by(Portfolio.created_at)
    )
    return list(result.scalars().all())


async def update_portfolio_valuation(
    session: AsyncSession,
    portfolio_id: UUID,
    total_value: Decimal,
    roi: Decimal,
) -> None:
    """
    Write the derived valuation fields of a portfolio.

    Args:
        session: Database session
        portfolio_id: Portfolio UUID
        total_value: Current market value of the holdings
        roi: Return on investment in percent
    """
    await session.execute(
        update(Portfolio)
        .where(Portfolio.id == portfolio_id)
        .values(total_value=total_value, roi=roi)
    )
    await session.commit()


async def set_portfolio_contest(session: AsyncSession, portfolio_id: UUID, contest_id: UUID) -> None:
    await session.execute(
        update(Portfolio).where(Portfolio.id == portfolio_id).values(contest_id=contest_id)
    )
    await session.commit()


async def create_holding(
    session: AsyncSession,
    portfolio_id: UUID,
    stock_symbol: str,
    quantity: int,
    buy_price: Decimal,
    current_price: Optional[Decimal] = None,
) -> Holding:
    """
    Add a holding to a portfolio.

    Args:
        session: Database session
        portfolio_id: Portfolio UUID
        stock_symbol: Exchange symbol without prefix
        quantity: Number of shares (positive)
        buy_price: Price paid per share
        current_price: Last known price, if any

    Returns:
        Created Holding instance
    """
    if quantity <= 0:
        raise ValueError("Holding quantity must be positive")
    holding = Holding(
        portfolio_id=portfolio_id,
        stock_symbol=stock_symbol,
        quantity=quantity,
        buy_price=buy_price,
        current_price=current_price,
    )
    session.add(holding)
    await session.commit()
    await session.refresh(holding)
    return holding


async def get_holdings(session: AsyncSession, portfolio_id: UUID) -> List[Holding]:
    result = await session.execute(
        select(Holding).where(Holding.portfolio_id == portfolio_id)
    )
    return list(result.scalars().all())


async def update_holding_price(session: AsyncSession, holding_id: UUID, current_price: Decimal) -> None:
    """Cache the latest quoted price on a holding."""
    await session.execute(
        update(Holding).where(Holding.id == holding_id).values(current_price=current_price)
    )
    await session.commit()
