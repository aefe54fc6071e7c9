"""
Contest participation model
"""

from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from app.db.base import Base
import uuid
from datetime import datetime, timezone


class UserContest(Base):
    """Participation of a user in a contest - user_contests table"""
    __tablename__ = "user_contests"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    contest_id = Column(UUID(as_uuid=True), ForeignKey("contests.id"), nullable=False, index=True)
    portfolio_id = Column(UUID(as_uuid=True), ForeignKey("portfolios.id"), nullable=True)
    # Python-side default keeps sub-second join order on every backend
    joined_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), server_default=func.now())
    rank = Column(Integer, nullable=True)
    final_roi = Column(Numeric(12, 4), nullable=True)

    # Constraints
    __table_args__ = (
        UniqueConstraint('user_id', 'contest_id', name='uq_user_contest'),
    )

    def __repr__(self):
        return f"<UserContest(id={self.id}, contest_id={self.contest_id}, user_id={self.user_id}, final_roi={self.final_roi})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "contest_id": str(self.contest_id),
            "portfolio_id": str(self.portfolio_id) if self.portfolio_id else None,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
            "rank": self.rank,
            "final_roi": float(self.final_roi) if self.final_roi is not None else None,
        }
