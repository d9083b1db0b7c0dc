"""
Persistent Job Queue

Automation side effects are written as AutomationJob rows and executed later
by JobProcessor, either inside the API process or from worker.py.

Features:
- Three named queues: automations, emails, sync
- skip_locked claiming so several workers never run the same job
- Exponential backoff between attempts, failed after max_attempts
- Handlers return a JSON result stored on the job row
"""

import logging
from datetime import datetime, timedelta, date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..models.automation import AutomationJob, JobQueueName, JobStatus
from ..models.booking import Booking
from ..models.finance import FinanceRecord, FinanceType
from ..models.property import Owner, Property
from ..models.task import CleaningTask, CleaningStatus, MaintenanceTask, MaintenanceStatus
from ..utils.dates import get_today
from ..utils.db_helpers import get_pending_with_skip_locked
from ..utils.logging_config import job_id_var
from .reference_generator import generate_cleaning_id

logger = logging.getLogger(__name__)


class JobQueue:
    """Producer side: inserts jobs, never runs them"""

    def __init__(self, db: Session):
        self.db = db

    def enqueue(
        self,
        queue: JobQueueName,
        job_type: str,
        payload: Optional[Dict[str, Any]] = None,
        max_attempts: Optional[int] = None,
        delay_seconds: int = 0
    ) -> AutomationJob:
        job = AutomationJob(
            queue=queue.value,
            job_type=job_type,
            payload=payload or {},
            status=JobStatus.PENDING.value,
            attempts=0,
            max_attempts=max_attempts or settings.job_max_attempts,
            next_attempt_at=datetime.utcnow() + timedelta(seconds=delay_seconds),
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        logger.debug(f"Enqueued {queue.value}:{job_type} ({job.id})")
        return job


class JobProcessor:
    """
    Consumer side of the job queue.

    Should be run periodically by the in-process worker task or worker.py.
    """

    def __init__(self, db: Session, today: Callable[[], date] = get_today):
        self.db = db
        self.today = today
        self.queue = JobQueue(db)
        self.handlers: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
            "create_cleaning_task": self._handle_create_cleaning_task,
            "send_checkin_email": self._handle_send_checkin_email,
            "send_checkout_email": self._handle_send_checkout_email,
            "maintenance_reminder": self._handle_maintenance_reminder,
            "generate_owner_statement": self._handle_generate_owner_statement,
            "automation_trigger": self._handle_automation_trigger,
            "send_email": self._handle_send_email,
            "channel_sync": self._handle_channel_sync,
        }

    def get_pending_jobs(self, limit: int = 50, queue: Optional[JobQueueName] = None) -> List[AutomationJob]:
        """
        Jobs ready to run: pending and due.

        Uses skip_locked to prevent race conditions between multiple workers.
        """
        condition = (AutomationJob.status == JobStatus.PENDING.value) & (
            AutomationJob.next_attempt_at <= datetime.utcnow()
        )
        if queue is not None:
            condition = condition & (AutomationJob.queue == queue.value)

        return get_pending_with_skip_locked(
            self.db,
            AutomationJob,
            condition,
            order_by=AutomationJob.next_attempt_at,
            limit=limit,
        )

    def process_job(self, job: AutomationJob) -> bool:
        """
        Run a single job.

        Returns True if successful, False if failed.
        """
        job.status = JobStatus.PROCESSING.value
        job.attempts = (job.attempts or 0) + 1
        self.db.commit()

        token = job_id_var.set(job.id)
        try:
            return self._run(job)
        finally:
            job_id_var.reset(token)

    def _run(self, job: AutomationJob) -> bool:
        handler = self.handlers.get(job.job_type)
        if handler is None:
            job.status = JobStatus.FAILED.value
            job.last_error = f"Unknown job type: {job.job_type}"
            self.db.commit()
            logger.error(f"Job {job.id} has unknown type {job.job_type}")
            return False

        try:
            result = handler(dict(job.payload or {}))
            job.status = JobStatus.COMPLETED.value
            job.result = result
            job.completed_at = datetime.utcnow()
            self.db.commit()
            return True
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error processing job {job.id} ({job.job_type}): {e}")
            self._handle_failure(job, str(e))
            self.db.commit()
            return False

    def _handle_failure(self, job: AutomationJob, error: str):
        """Back off exponentially, give up after max_attempts"""
        job.last_error = error[:1000]

        if job.attempts >= job.max_attempts:
            job.status = JobStatus.FAILED.value
            logger.error(f"Job {job.id} permanently failed after {job.attempts} attempts")
        else:
            job.status = JobStatus.PENDING.value
            # 1, 2, 4, 8 ... minutes, capped at an hour
            delay_minutes = min(2 ** (job.attempts - 1), 60)
            job.next_attempt_at = datetime.utcnow() + timedelta(minutes=delay_minutes)
            logger.warning(f"Job {job.id} will retry in {delay_minutes} minutes")

    def process_batch(self, limit: int = 50) -> Tuple[int, int]:
        """
        Process a batch of pending jobs.

        Returns: (success_count, failure_count)
        """
        success_count = 0
        failure_count = 0

        for job in self.get_pending_jobs(limit):
            if self.process_job(job):
                success_count += 1
            else:
                failure_count += 1

        return success_count, failure_count

    def retry_failed_job(self, job_id: str) -> bool:
        """Manually put a failed job back on its queue"""
        job = self.db.query(AutomationJob).filter(AutomationJob.id == job_id).first()
        if not job or job.status != JobStatus.FAILED.value:
            return False

        job.status = JobStatus.PENDING.value
        job.attempts = 0
        job.next_attempt_at = datetime.utcnow()
        job.last_error = None
        self.db.commit()
        return True

    # ==================
    # Handlers
    # ==================

    def _handle_create_cleaning_task(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        booking_id = payload.get("bookingId")
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first() if booking_id else None
        if not booking:
            return {"success": False, "message": "Booking not found"}

        # One cleaning per booking
        existing = self.db.query(CleaningTask).filter(CleaningTask.booking_id == booking.id).first()
        if existing:
            return {
                "success": False,
                "message": "Cleaning task already exists for this booking",
                "cleaningTaskId": existing.id,
            }

        task = CleaningTask(
            cleaning_id=generate_cleaning_id(),
            property_id=booking.property_id,
            unit_id=booking.unit_id,
            booking_id=booking.id,
            scheduled_date=booking.checkout_date,
            status=CleaningStatus.NOT_STARTED.value,
            cleaner_id=payload.get("cleanerId"),
        )
        self.db.add(task)
        self.db.flush()
        logger.info(f"Automation created cleaning {task.cleaning_id} for booking {booking.reference}")
        return {"success": True, "cleaningTaskId": task.id}

    def _guest_email_job(self, booking: Booking, kind: str) -> Optional[AutomationJob]:
        guest = booking.guest
        if guest is None or not guest.email:
            logger.info(f"No guest email on booking {booking.reference}, skipping {kind} email")
            return None

        property_name = booking.property.name if booking.property else ""
        if kind == "checkin":
            subject = f"Check-in Instructions for {property_name}"
        else:
            subject = f"Check-out Reminder for {property_name}"

        return self.queue.enqueue(
            JobQueueName.EMAILS,
            "send_email",
            {
                "to": guest.email,
                "subject": subject,
                "template": kind,
                "data": {
                    "guestName": guest.full_name,
                    "propertyName": property_name,
                    "checkinDate": booking.checkin_date.isoformat(),
                    "checkoutDate": booking.checkout_date.isoformat(),
                    "reference": booking.reference,
                },
            },
        )

    def _send_stay_emails(self, payload: Dict[str, Any], kind: str) -> Dict[str, Any]:
        booking_id = payload.get("bookingId")
        if booking_id:
            booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
            if not booking:
                return {"success": False, "message": "Booking not found"}
            bookings = [booking]
        else:
            # Scheduled run: every stay starting or ending today
            today = self.today()
            date_column = Booking.checkin_date if kind == "checkin" else Booking.checkout_date
            bookings = self.db.query(Booking).filter(
                date_column == today,
                Booking.archived_at.is_(None),
            ).all()

        queued = sum(1 for b in bookings if self._guest_email_job(b, kind) is not None)
        return {"success": True, "queued": queued}

    def _handle_send_checkin_email(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._send_stay_emails(payload, "checkin")

    def _handle_send_checkout_email(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._send_stay_emails(payload, "checkout")

    def _handle_maintenance_reminder(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        task_id = payload.get("maintenanceTaskId")
        task = self.db.query(MaintenanceTask).filter(MaintenanceTask.id == task_id).first() if task_id else None
        if not task or task.status == MaintenanceStatus.COMPLETED.value:
            return {"success": False, "message": "Task not found or already completed"}

        assignee = task.assigned_to
        if assignee and assignee.email:
            prop = self.db.query(Property).filter(Property.id == task.property_id).first()
            self.queue.enqueue(
                JobQueueName.EMAILS,
                "send_email",
                {
                    "to": assignee.email,
                    "subject": f"Maintenance Reminder: {task.title}",
                    "template": "maintenance-reminder",
                    "data": {
                        "taskTitle": task.title,
                        "propertyName": prop.name if prop else "",
                        "priority": task.priority,
                    },
                },
            )
        return {"success": True}

    def _handle_generate_owner_statement(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Revenue/expense totals per owner for one month (default: last month)"""
        month = payload.get("month")
        if month:
            year, mon = (int(part) for part in month.split("-"))
            start = date(year, mon, 1)
        else:
            first_of_this_month = self.today().replace(day=1)
            start = (first_of_this_month - timedelta(days=1)).replace(day=1)
        end = date(start.year + 1, 1, 1) if start.month == 12 else date(start.year, start.month + 1, 1)

        owners_query = self.db.query(Owner)
        if payload.get("ownerId"):
            owners_query = owners_query.filter(Owner.id == payload["ownerId"])

        statements = []
        for owner in owners_query.all():
            property_ids = [p.id for p in owner.properties]
            totals = {FinanceType.REVENUE.value: Decimal("0"), FinanceType.EXPENSE.value: Decimal("0")}
            if property_ids:
                rows = self.db.query(
                    FinanceRecord.type, func.coalesce(func.sum(FinanceRecord.amount), 0)
                ).filter(
                    FinanceRecord.property_id.in_(property_ids),
                    FinanceRecord.date >= start,
                    FinanceRecord.date < end,
                ).group_by(FinanceRecord.type).all()
                for record_type, total in rows:
                    totals[record_type] = Decimal(str(total))

            revenue = totals[FinanceType.REVENUE.value]
            expense = totals[FinanceType.EXPENSE.value]
            statements.append({
                "ownerId": owner.id,
                "ownerName": owner.name,
                "revenue": str(revenue),
                "expense": str(expense),
                "net": str(revenue - expense),
            })
            logger.info(f"Owner statement {owner.name} {start:%Y-%m}: revenue={revenue} expense={expense}")

        return {"success": True, "month": f"{start:%Y-%m}", "statements": statements}

    def _handle_automation_trigger(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        from .automation_service import AutomationDispatcher

        trigger = payload.get("trigger")
        if not trigger:
            raise ValueError("automation_trigger job without a trigger name")

        data = dict(payload.get("data") or {})
        data.setdefault("date", self.today().isoformat())
        result = AutomationDispatcher(self.db, self.queue).trigger(trigger, data)
        return {"triggered": result.triggered, "errors": result.errors}

    def _handle_send_email(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        to = payload.get("to")
        if not to:
            raise ValueError("send_email job without a recipient")
        # No mail transport is configured; delivery is logged only
        logger.info(f"Sending email to {to}: {payload.get('subject')}")
        return {"success": True}

    def _handle_channel_sync(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        provider = payload.get("provider")
        logger.info(f"Channel sync for {provider} requested, no channel client configured")
        return {"success": False, "provider": provider, "message": "No channel client configured"}
