"""
User model
"""

from sqlalchemy import Column, String, Integer, Numeric, DateTime, Boolean, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from app.db.base import Base
import uuid


class User(Base):
    """User model - users table"""
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(48), nullable=False, unique=True)
    email = Column(String(255), nullable=True)
    college_id = Column(UUID(as_uuid=True), ForeignKey("colleges.id"), nullable=True)
    virtual_balance = Column(Numeric(20, 2), nullable=False, default=100)
    referral_code = Column(String(32), nullable=True, unique=True)
    referral_count = Column(Integer, nullable=False, default=0)
    fest_mode = Column(Boolean, nullable=False, default=False)
    is_guest = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, balance={self.virtual_balance})>"

    def to_dict(self):
        """Convert user to dictionary for API responses"""
        return {
            "id": str(self.id),
            "username": self.username,
            "email": self.email,
            "college_id": str(self.college_id) if self.college_id else None,
            "virtual_balance": str(self.virtual_balance),
            "referral_code": self.referral_code,
            "referral_count": self.referral_count,
            "fest_mode": self.fest_mode,
            "is_guest": self.is_guest,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
