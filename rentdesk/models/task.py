"""
Cleaning and maintenance work items
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, Date, DateTime, Numeric, ForeignKey, JSON
from sqlalchemy.orm import relationship
import enum

from ..database import Base


class CleaningStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class MaintenanceStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class MaintenancePriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class MaintenanceType(str, enum.Enum):
    AC = "ac"
    PLUMBING = "plumbing"
    ELECTRICAL = "electrical"
    APPLIANCE = "appliance"
    OTHER = "other"


class CleaningTask(Base):
    __tablename__ = "cleaning_tasks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    cleaning_id = Column(String(40), nullable=False, unique=True, index=True)

    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_id = Column(String(36), ForeignKey("units.id", ondelete="SET NULL"), nullable=True)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True)

    scheduled_date = Column(Date, nullable=False)
    status = Column(String(20), default=CleaningStatus.NOT_STARTED.value)
    cleaner_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    checklist = Column(JSON, default=list)
    before_photos = Column(JSON, default=list)
    after_photos = Column(JSON, default=list)
    cost = Column(Numeric(12, 2), nullable=True)
    notes = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    cleaner = relationship("User", foreign_keys=[cleaner_id])

    def __repr__(self):
        return f"<CleaningTask {self.cleaning_id} - {self.status}>"


class MaintenanceTask(Base):
    __tablename__ = "maintenance_tasks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_id = Column(String(36), ForeignKey("units.id", ondelete="SET NULL"), nullable=True)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)

    type = Column(String(20), default=MaintenanceType.OTHER.value)
    priority = Column(String(20), default=MaintenancePriority.MEDIUM.value)
    status = Column(String(20), default=MaintenanceStatus.OPEN.value)
    assigned_to_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    photos = Column(JSON, default=list)
    invoice_file = Column(String(500), nullable=True)
    cost = Column(Numeric(12, 2), nullable=True)
    notes = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    assigned_to = relationship("User", foreign_keys=[assigned_to_id])

    def __repr__(self):
        return f"<MaintenanceTask {self.title} - {self.status}>"
