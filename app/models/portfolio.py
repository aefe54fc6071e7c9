"""
Portfolio and holding models
"""

from sqlalchemy import Column, String, Integer, Numeric, DateTime, Boolean, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from app.db.base import Base
import uuid


class Portfolio(Base):
    """Portfolio model - portfolios table.

    ``total_value`` and ``roi`` are derived and only written by the
    valuation engine.
    """
    __tablename__ = "portfolios"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    contest_id = Column(UUID(as_uuid=True), ForeignKey("contests.id"), nullable=True)
    total_value = Column(Numeric(20, 2), nullable=False, default=1000000)
    roi = Column(Numeric(12, 4), nullable=False, default=0)
    is_locked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Portfolio(id={self.id}, user_id={self.user_id}, roi={self.roi})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "contest_id": str(self.contest_id) if self.contest_id else None,
            "total_value": str(self.total_value),
            "roi": float(self.roi or 0),
            "is_locked": self.is_locked,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Holding(Base):
    """Holding model - holdings table"""
    __tablename__ = "holdings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    portfolio_id = Column(UUID(as_uuid=True), ForeignKey("portfolios.id"), nullable=False, index=True)
    stock_symbol = Column(String(32), nullable=False)
    quantity = Column(Integer, nullable=False)
    buy_price = Column(Numeric(20, 2), nullable=False)
    current_price = Column(Numeric(20, 2), nullable=True)

    def __repr__(self):
        return f"<Holding(id={self.id}, symbol={self.stock_symbol}, qty={self.quantity})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "portfolio_id": str(self.portfolio_id),
            "stock_symbol": self.stock_symbol,
            "quantity": self.quantity,
            "buy_price": str(self.buy_price),
            "current_price": str(self.current_price) if self.current_price is not None else None,
        }
