import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from ..database import Base


class PropertyStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Owner(Base):
    """Property owner receiving monthly statements"""
    __tablename__ = "owners"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    properties = relationship("Property", back_populates="owner")

    def __repr__(self):
        return f"<Owner {self.name}>"


class Property(Base):
    __tablename__ = "properties"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code = Column(String(50), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False)
    address = Column(Text, nullable=True)
    owner_id = Column(String(36), ForeignKey("owners.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), default=PropertyStatus.ACTIVE.value)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("Owner", back_populates="properties")
    units = relationship("Unit", back_populates="property", cascade="all, delete-orphan")
    bookings = relationship("Booking", back_populates="property")

    def __repr__(self):
        return f"<Property {self.code} - {self.name}>"


class Unit(Base):
    __tablename__ = "units"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_code = Column(String(50), nullable=False)
    bedrooms = Column(Integer, default=1)
    max_guests = Column(Integer, default=2)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    property = relationship("Property", back_populates="units")
    bookings = relationship("Booking", back_populates="unit")

    __table_args__ = (
        UniqueConstraint("property_id", "unit_code", name="uq_unit_property_code"),
    )

    def __repr__(self):
        return f"<Unit {self.unit_code}>"
