# Models package
from .user import User, UserRole
from .property import Owner, Property, Unit, PropertyStatus
from .guest import Guest
from .booking import (
    Booking,
    BookingEvent,
    BookingChannel,
    PaymentStatus,
    LifecycleState,
    BookingEventType,
)
from .task import (
    CleaningTask,
    MaintenanceTask,
    CleaningStatus,
    MaintenanceStatus,
    MaintenancePriority,
    MaintenanceType,
)
from .finance import FinanceRecord, FinanceType, FinanceStatus
from .automation import (
    Automation,
    AutomationJob,
    JobQueueName,
    JobStatus,
    ConditionOperator,
    ActionType,
)
from .audit_log import AuditLog, AuditAction

__all__ = [
    "User", "UserRole",
    "Owner", "Property", "Unit", "PropertyStatus",
    "Guest",
    "Booking", "BookingEvent", "BookingChannel", "PaymentStatus", "LifecycleState", "BookingEventType",
    "CleaningTask", "MaintenanceTask", "CleaningStatus", "MaintenanceStatus",
    "MaintenancePriority", "MaintenanceType",
    "FinanceRecord", "FinanceType", "FinanceStatus",
    "Automation", "AutomationJob", "JobQueueName", "JobStatus", "ConditionOperator", "ActionType",
    "AuditLog", "AuditAction",
]
