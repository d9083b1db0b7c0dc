import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, String, Date, Integer, Numeric, Text, ForeignKey, DateTime, Index, JSON
from sqlalchemy.orm import relationship
import enum

from ..database import Base


class BookingChannel(str, enum.Enum):
    """Where the booking came from"""
    AIRBNB = "airbnb"
    BOOKING_COM = "booking_com"
    DIRECT = "direct"
    OTHER = "other"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"


class LifecycleState(str, enum.Enum):
    """Stay progress. Archiving is tracked separately by archived_at."""
    PENDING = "pending"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"


class BookingEventType(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    ARCHIVED = "archived"
    RESTORED = "restored"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    reference = Column(String(40), nullable=False, unique=True, index=True)

    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_id = Column(String(36), ForeignKey("units.id", ondelete="SET NULL"), nullable=True, index=True)
    guest_id = Column(String(36), ForeignKey("guests.id", ondelete="SET NULL"), nullable=True, index=True)

    channel = Column(String(20), default=BookingChannel.DIRECT.value)
    checkin_date = Column(Date, nullable=False)
    checkout_date = Column(Date, nullable=False)
    nights = Column(Integer, nullable=False)

    total_amount = Column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    currency = Column(String(3), nullable=False)
    payment_status = Column(String(20), default=PaymentStatus.PENDING.value)
    deposit_amount = Column(Numeric(12, 2), nullable=True)

    notes = Column(Text, nullable=True)
    booking_documents = Column(JSON, default=list)

    lifecycle_state = Column(String(20), default=LifecycleState.PENDING.value, nullable=False)

    # Archive
    archived_at = Column(DateTime, nullable=True, index=True)
    archived_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    # Relationships. `property` is rebound from here on.
    property = relationship("Property", back_populates="bookings")
    unit = relationship("Unit", back_populates="bookings")
    guest = relationship("Guest", back_populates="bookings")
    events = relationship(
        "BookingEvent",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingEvent.occurred_at",
    )

    __table_args__ = (
        Index("ix_booking_unit_dates", "unit_id", "checkin_date", "checkout_date"),
        Index("ix_booking_property_dates", "property_id", "checkin_date", "checkout_date"),
    )

    def __repr__(self):
        return f"<Booking {self.reference} {self.checkin_date} -> {self.checkout_date}>"


class BookingEvent(Base):
    """
    Append-only record of booking lifecycle transitions.
    Rows are written once and never updated.
    """
    __tablename__ = "booking_events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(String(20), nullable=False)
    actor_id = Column(String(36), nullable=True)
    actor_email = Column(String(255), nullable=True)
    details = Column(JSON, nullable=True)
    occurred_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    booking = relationship("Booking", back_populates="events")

    def __repr__(self):
        return f"<BookingEvent {self.event_type} {self.booking_id}>"
