import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime
import enum

from ..database import Base


class UserRole(str, enum.Enum):
    """Staff roles"""
    ADMIN = "admin"
    ASSISTANT = "assistant"
    CLEANER = "cleaner"
    MAINTENANCE = "maintenance"
    OWNER_VIEW = "owner_view"


class User(Base):
    """Staff member able to sign in to the back office"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), nullable=False, unique=True, index=True)
    hashed_password = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.ASSISTANT.value)
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
