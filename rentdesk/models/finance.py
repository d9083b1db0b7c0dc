import uuid
from datetime import datetime, date
from sqlalchemy import Column, String, Text, Date, DateTime, Numeric, ForeignKey
import enum

from ..database import Base


class FinanceType(str, enum.Enum):
    REVENUE = "revenue"
    EXPENSE = "expense"


class FinanceStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"


class FinanceRecord(Base):
    """
    One ledger line. Written once by the transition that produced it,
    changed afterwards only through the finance CRUD endpoints.
    """
    __tablename__ = "finance_records"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    type = Column(String(20), nullable=False, index=True)
    category = Column(String(50), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    date = Column(Date, nullable=False, default=date.today, index=True)
    status = Column(String(20), default=FinanceStatus.PENDING.value)
    payment_method = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)

    property_id = Column(String(36), ForeignKey("properties.id", ondelete="SET NULL"), nullable=True, index=True)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True)
    guest_id = Column(String(36), ForeignKey("guests.id", ondelete="SET NULL"), nullable=True)
    cleaning_task_id = Column(String(36), ForeignKey("cleaning_tasks.id", ondelete="SET NULL"), nullable=True, unique=True)
    maintenance_task_id = Column(String(36), ForeignKey("maintenance_tasks.id", ondelete="SET NULL"), nullable=True, unique=True)

    created_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<FinanceRecord {self.type} {self.amount}>"
