import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, Boolean, Integer, DateTime, JSON, Index
import enum

from ..database import Base


class Automation(Base):
    """
    Stored rule: trigger + optional conditions + ordered actions.
    Read-only during evaluation.
    """
    __tablename__ = "automations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    trigger = Column(String(100), nullable=False, index=True)
    conditions = Column(JSON, nullable=True)
    actions = Column(JSON, nullable=False, default=list)
    enabled = Column(Boolean, default=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Automation {self.name} on {self.trigger}>"


class JobQueueName(str, enum.Enum):
    AUTOMATIONS = "automations"
    EMAILS = "emails"
    SYNC = "sync"


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class AutomationJob(Base):
    """
    Job queue row. Producers only insert; the worker claims and runs them.
    """
    __tablename__ = "automation_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    queue = Column(String(30), nullable=False, default=JobQueueName.AUTOMATIONS.value)
    job_type = Column(String(50), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)

    status = Column(String(20), nullable=False, default=JobStatus.PENDING.value)
    attempts = Column(Integer, default=0)
    max_attempts = Column(Integer, default=5)
    last_error = Column(Text, nullable=True)
    result = Column(JSON, nullable=True)

    next_attempt_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_automation_jobs_pending", "status", "next_attempt_at"),
    )

    def __repr__(self):
        return f"<AutomationJob {self.queue}:{self.job_type} {self.status}>"


class ConditionOperator(str, enum.Enum):
    """Operators accepted in an automation condition"""
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    GREATER_THAN_OR_EQUAL = "greaterThanOrEqual"
    LESS_THAN_OR_EQUAL = "lessThanOrEqual"
    CONTAINS = "contains"
    IN = "in"
    NOT_IN = "notIn"
    EXISTS = "exists"
    NOT_EXISTS = "notExists"


class ActionType(str, enum.Enum):
    """Built-in automation actions; each maps to one queued job"""
    CREATE_CLEANING_TASK = "create_cleaning_task"
    SEND_EMAIL = "send_email"
    SEND_CHECKIN_EMAIL = "send_checkin_email"
    SEND_CHECKOUT_EMAIL = "send_checkout_email"
    CREATE_MAINTENANCE_REMINDER = "create_maintenance_reminder"
