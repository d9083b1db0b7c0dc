import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, String, Boolean, DateTime, Text, Numeric, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base


class Guest(Base):
    """Guests - people who have made or may make bookings"""
    __tablename__ = "guests"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(20), nullable=True)
    nationality = Column(String(100), nullable=True)

    # Running total, maintained incrementally by the booking lifecycle
    total_spend = Column(Numeric(12, 2), default=Decimal("0"), nullable=False)

    is_blacklisted = Column(Boolean, default=False)
    blacklist_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Archive
    archived_at = Column(DateTime, nullable=True, index=True)
    archived_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    bookings = relationship("Booking", back_populates="guest")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    def __repr__(self):
        return f"<Guest {self.full_name}>"
