"""
Cleaning and maintenance work items.

Completing a cleaning or resolving a maintenance task with a cost writes one
expense FinanceRecord linked to the task. A task can only be completed once.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..errors import BusinessRuleError, ForbiddenError, NotFoundError, ValidationFailure
from ..models.audit_log import AuditAction
from ..models.booking import Booking
from ..models.finance import FinanceRecord, FinanceStatus, FinanceType
from ..models.property import Property, Unit
from ..models.task import CleaningStatus, CleaningTask, MaintenanceStatus, MaintenanceTask
from ..models.user import User, UserRole
from ..schemas.task import (
    CleaningTaskComplete,
    CleaningTaskCreate,
    CleaningTaskUpdate,
    MaintenanceTaskCreate,
    MaintenanceTaskResolve,
    MaintenanceTaskUpdate,
)
from ..utils.dates import get_today
from ..utils.db_helpers import acquire_row_lock
from .audit_service import log_activity
from .reference_generator import generate_cleaning_id

logger = logging.getLogger(__name__)

# Roles that may complete any task, not only their own
SUPERVISOR_ROLES = {UserRole.ADMIN.value, UserRole.ASSISTANT.value}

# Explicit nulls for these are ignored on update
CLEANING_REQUIRED_FIELDS = ("scheduled_date", "status", "checklist", "before_photos")
MAINTENANCE_REQUIRED_FIELDS = ("title", "type", "priority", "status")


def _drop_nulls(changes: dict, fields) -> dict:
    return {key: value for key, value in changes.items() if value is not None or key not in fields}


def _append_note(existing: Optional[str], note: Optional[str], label: str) -> Optional[str]:
    if not note:
        return existing
    line = f"[{label}] {datetime.utcnow().isoformat()}: {note}"
    return f"{existing}\n{line}" if existing else line


class TaskService:

    def __init__(self, db: Session, today: Callable[[], date] = get_today):
        self.db = db
        self.today = today

    # ==================
    # Shared checks
    # ==================

    def _check_location(self, property_id: str, unit_id: Optional[str], booking_id: Optional[str]):
        if not self.db.query(Property).filter(Property.id == property_id).first():
            raise NotFoundError("Property not found", {"property_id": property_id})
        if unit_id:
            unit = self.db.query(Unit).filter(Unit.id == unit_id).first()
            if not unit or unit.property_id != property_id:
                raise NotFoundError("Unit not found for this property", {"unit_id": unit_id})
        if booking_id and not self.db.query(Booking).filter(Booking.id == booking_id).first():
            raise NotFoundError("Booking not found", {"booking_id": booking_id})

    def _check_assignee(self, user_id: Optional[str], allowed_role: UserRole):
        if not user_id:
            return
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user or not user.is_active or user.role not in (allowed_role.value, UserRole.ADMIN.value):
            raise ValidationFailure(
                f"Assignee must be an active {allowed_role.value} or admin",
                {"user_id": user_id},
            )

    def _check_can_complete(self, actor: User, assignee_id: Optional[str]):
        if actor.role in SUPERVISOR_ROLES:
            return
        if assignee_id and assignee_id == actor.id:
            return
        raise ForbiddenError("Not authorized to complete this task")

    def _expense(self, category: str, amount: Decimal, property_id: str, payment_method: str,
                 actor: Optional[User], **links) -> FinanceRecord:
        record = FinanceRecord(
            type=FinanceType.EXPENSE.value,
            category=category,
            amount=amount,
            date=self.today(),
            status=FinanceStatus.PAID.value,
            payment_method=payment_method,
            property_id=property_id,
            created_by_id=actor.id if actor else None,
            **links,
        )
        self.db.add(record)
        return record

    # ==================
    # Cleaning
    # ==================

    def get_cleaning(self, task_id: str) -> CleaningTask:
        task = self.db.query(CleaningTask).filter(CleaningTask.id == task_id).first()
        if not task:
            raise NotFoundError("Cleaning task not found", {"task_id": task_id})
        return task

    def list_cleaning(
        self,
        property_id: Optional[str] = None,
        status: Optional[str] = None,
        cleaner_id: Optional[str] = None,
        scheduled_date: Optional[date] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[CleaningTask], int]:
        query = self.db.query(CleaningTask)
        if property_id:
            query = query.filter(CleaningTask.property_id == property_id)
        if status:
            query = query.filter(CleaningTask.status == status)
        if cleaner_id:
            query = query.filter(CleaningTask.cleaner_id == cleaner_id)
        if scheduled_date:
            query = query.filter(CleaningTask.scheduled_date == scheduled_date)
        total = query.count()
        items = query.order_by(CleaningTask.scheduled_date).offset(offset).limit(limit).all()
        return items, total

    def create_cleaning(self, data: CleaningTaskCreate, actor: Optional[User] = None) -> CleaningTask:
        self._check_location(data.property_id, data.unit_id, data.booking_id)
        self._check_assignee(data.cleaner_id, UserRole.CLEANER)

        task = CleaningTask(
            cleaning_id=generate_cleaning_id(),
            property_id=data.property_id,
            unit_id=data.unit_id,
            booking_id=data.booking_id,
            scheduled_date=data.scheduled_date,
            status=CleaningStatus.NOT_STARTED.value,
            cleaner_id=data.cleaner_id,
            checklist=list(data.checklist),
            notes=data.notes,
        )
        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)

        log_activity(self.db, actor, AuditAction.CREATE, "cleaning_tasks", task.id, {
            "cleaning_id": task.cleaning_id,
        })
        return task

    def update_cleaning(self, task_id: str, data: CleaningTaskUpdate, actor: Optional[User] = None) -> CleaningTask:
        task = self.get_cleaning(task_id)
        changes = _drop_nulls(data.model_dump(exclude_unset=True), CLEANING_REQUIRED_FIELDS)

        if "cleaner_id" in changes:
            self._check_assignee(changes["cleaner_id"], UserRole.CLEANER)
        if changes.get("status") == CleaningStatus.COMPLETED:
            raise ValidationFailure("Use the complete endpoint to finish a cleaning")

        for key, value in changes.items():
            if key == "status":
                value = value.value
            setattr(task, key, value)
        self.db.commit()
        self.db.refresh(task)

        log_activity(self.db, actor, AuditAction.UPDATE, "cleaning_tasks", task.id, {"fields": sorted(changes)})
        return task

    def complete_cleaning(self, task_id: str, data: CleaningTaskComplete, actor: User) -> CleaningTask:
        # Locked so concurrent completions cannot both write the expense
        task = acquire_row_lock(self.db, CleaningTask, CleaningTask.id == task_id)
        if not task:
            raise NotFoundError("Cleaning task not found", {"task_id": task_id})
        self._check_can_complete(actor, task.cleaner_id)

        if task.status == CleaningStatus.COMPLETED.value:
            raise BusinessRuleError("Cleaning task is already completed")

        task.status = CleaningStatus.COMPLETED.value
        task.completed_at = datetime.utcnow()
        task.after_photos = list(task.after_photos or []) + list(data.after_photos)
        task.notes = _append_note(task.notes, data.notes, "COMPLETED")
        if data.cost is not None:
            task.cost = data.cost

        if data.cost:
            self._expense("cleaning", data.cost, task.property_id, "cash", actor, cleaning_task_id=task.id)

        self.db.commit()
        self.db.refresh(task)

        logger.info(f"Cleaning {task.cleaning_id} completed by {actor.email}")
        log_activity(self.db, actor, AuditAction.UPDATE, "cleaning_tasks", task.id, {
            "action": "completed",
            "cost": data.cost,
        })
        return task

    def delete_cleaning(self, task_id: str, actor: Optional[User] = None):
        task = self.get_cleaning(task_id)
        self.db.query(FinanceRecord).filter(FinanceRecord.cleaning_task_id == task.id).update(
            {FinanceRecord.cleaning_task_id: None}, synchronize_session=False
        )
        self.db.delete(task)
        self.db.commit()
        log_activity(self.db, actor, AuditAction.DELETE, "cleaning_tasks", task_id)

    # ==================
    # Maintenance
    # ==================

    def get_maintenance(self, task_id: str) -> MaintenanceTask:
        task = self.db.query(MaintenanceTask).filter(MaintenanceTask.id == task_id).first()
        if not task:
            raise NotFoundError("Maintenance task not found", {"task_id": task_id})
        return task

    def list_maintenance(
        self,
        property_id: Optional[str] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[MaintenanceTask], int]:
        query = self.db.query(MaintenanceTask)
        if property_id:
            query = query.filter(MaintenanceTask.property_id == property_id)
        if status:
            query = query.filter(MaintenanceTask.status == status)
        if priority:
            query = query.filter(MaintenanceTask.priority == priority)
        if assigned_to_id:
            query = query.filter(MaintenanceTask.assigned_to_id == assigned_to_id)
        total = query.count()
        items = query.order_by(MaintenanceTask.created_at.desc()).offset(offset).limit(limit).all()
        return items, total

    def create_maintenance(self, data: MaintenanceTaskCreate, actor: Optional[User] = None) -> MaintenanceTask:
        self._check_location(data.property_id, data.unit_id, data.booking_id)
        self._check_assignee(data.assigned_to_id, UserRole.MAINTENANCE)

        task = MaintenanceTask(
            title=data.title,
            description=data.description,
            property_id=data.property_id,
            unit_id=data.unit_id,
            booking_id=data.booking_id,
            type=data.type.value,
            priority=data.priority.value,
            status=MaintenanceStatus.OPEN.value,
            assigned_to_id=data.assigned_to_id,
        )
        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)

        log_activity(self.db, actor, AuditAction.CREATE, "maintenance_tasks", task.id, {"title": task.title})
        return task

    def update_maintenance(self, task_id: str, data: MaintenanceTaskUpdate, actor: Optional[User] = None) -> MaintenanceTask:
        task = self.get_maintenance(task_id)
        changes = _drop_nulls(data.model_dump(exclude_unset=True), MAINTENANCE_REQUIRED_FIELDS)

        if "assigned_to_id" in changes:
            self._check_assignee(changes["assigned_to_id"], UserRole.MAINTENANCE)
        if changes.get("status") == MaintenanceStatus.COMPLETED:
            raise ValidationFailure("Use the resolve endpoint to complete a maintenance task")

        for key, value in changes.items():
            if key in ("type", "priority", "status"):
                value = value.value
            setattr(task, key, value)
        self.db.commit()
        self.db.refresh(task)

        log_activity(self.db, actor, AuditAction.UPDATE, "maintenance_tasks", task.id, {"fields": sorted(changes)})
        return task

    def resolve_maintenance(self, task_id: str, data: MaintenanceTaskResolve, actor: User) -> MaintenanceTask:
        task = acquire_row_lock(self.db, MaintenanceTask, MaintenanceTask.id == task_id)
        if not task:
            raise NotFoundError("Maintenance task not found", {"task_id": task_id})
        self._check_can_complete(actor, task.assigned_to_id)

        if task.status == MaintenanceStatus.COMPLETED.value:
            raise BusinessRuleError("Maintenance task is already resolved")

        task.status = MaintenanceStatus.COMPLETED.value
        task.completed_at = datetime.utcnow()
        task.photos = list(task.photos or []) + list(data.photos)
        task.notes = _append_note(task.notes, data.notes, "RESOLVED")
        if data.invoice_file:
            task.invoice_file = data.invoice_file
        if data.cost is not None:
            task.cost = data.cost

        if data.cost:
            self._expense(
                "maintenance", data.cost, task.property_id, "bank_transfer", actor,
                maintenance_task_id=task.id,
                description=f"Invoice: {data.invoice_file}" if data.invoice_file else task.title,
            )

        self.db.commit()
        self.db.refresh(task)

        logger.info(f"Maintenance task {task.id} resolved by {actor.email}")
        log_activity(self.db, actor, AuditAction.UPDATE, "maintenance_tasks", task.id, {
            "action": "resolved",
            "cost": data.cost,
        })
        return task

    def delete_maintenance(self, task_id: str, actor: Optional[User] = None):
        task = self.get_maintenance(task_id)
        self.db.query(FinanceRecord).filter(FinanceRecord.maintenance_task_id == task.id).update(
            {FinanceRecord.maintenance_task_id: None}, synchronize_session=False
        )
        self.db.delete(task)
        self.db.commit()
        log_activity(self.db, actor, AuditAction.DELETE, "maintenance_tasks", task_id)
