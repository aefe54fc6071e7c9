"""
Contest model
"""

from sqlalchemy import Column, String, Text, Numeric, DateTime, Integer, Boolean
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from app.db.base import Base
from app.models.enums import ContestStatus
import uuid


class Contest(Base):
    """Contest model - contests table"""
    __tablename__ = "contests"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    entry_fee = Column(Numeric(20, 2), nullable=False, default=0)
    starting_capital = Column(Numeric(20, 2), nullable=False, default=1000000)
    duration = Column(Integer, nullable=False, default=1)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    fest_mode = Column(Boolean, nullable=False, default=False)
    status = Column(String(16), nullable=False, default=ContestStatus.UPCOMING.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Contest(id={self.id}, name={self.name}, status={self.status}, entry_fee={self.entry_fee})>"

    def to_dict(self):
        """Convert contest to dictionary for API responses"""
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "entry_fee": str(self.entry_fee),
            "starting_capital": str(self.starting_capital),
            "duration": self.duration,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "fest_mode": self.fest_mode,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
