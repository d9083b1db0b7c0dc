"""
Recurring Job Scheduler

Registers the recurring triggers at process start:
- 02:00 / 03:00: channel syncs (airbnb, booking_com)
- 08:00 daily / 08:00 on the 1st: scheduled.daily / scheduled.monthly automations
- 09:00: check-in and check-out reminder emails
- 10:00 on the 1st: owner statements

Each firing only enqueues an AutomationJob; the job worker does the work.
Uses APScheduler for cron-based scheduling.
"""

import logging
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session

from ..config import settings
from ..models.automation import JobQueueName
from .job_queue import JobQueue

logger = logging.getLogger(__name__)


class RecurringJob(NamedTuple):
    id: str
    name: str
    cron: str
    queue: JobQueueName
    job_type: str
    payload: Dict[str, Any]


RECURRING_JOBS: List[RecurringJob] = [
    RecurringJob("daily-sync-airbnb", "Daily Airbnb sync", "0 2 * * *",
                 JobQueueName.SYNC, "channel_sync", {"provider": "airbnb"}),
    RecurringJob("daily-sync-bookingcom", "Daily Booking.com sync", "0 3 * * *",
                 JobQueueName.SYNC, "channel_sync", {"provider": "booking_com"}),
    RecurringJob("scheduled-daily", "scheduled.daily automations", "0 8 * * *",
                 JobQueueName.AUTOMATIONS, "automation_trigger", {"trigger": "scheduled.daily"}),
    RecurringJob("scheduled-monthly", "scheduled.monthly automations", "0 8 1 * *",
                 JobQueueName.AUTOMATIONS, "automation_trigger", {"trigger": "scheduled.monthly"}),
    RecurringJob("daily-checkin-reminders", "Check-in reminders", "0 9 * * *",
                 JobQueueName.AUTOMATIONS, "send_checkin_email", {}),
    RecurringJob("daily-checkout-reminders", "Check-out reminders", "0 9 * * *",
                 JobQueueName.AUTOMATIONS, "send_checkout_email", {}),
    RecurringJob("monthly-owner-statements", "Monthly owner statements", "0 10 1 * *",
                 JobQueueName.AUTOMATIONS, "generate_owner_statement", {}),
]


def enqueue_recurring_job(session_factory: Callable[[], Session], job: RecurringJob):
    """Scheduler callback: put one run of ``job`` on its queue"""
    db = session_factory()
    try:
        JobQueue(db).enqueue(job.queue, job.job_type, dict(job.payload))
        logger.info(f"Scheduled job {job.id} enqueued")
    except Exception as e:
        logger.error(f"Scheduled job {job.id} could not be enqueued: {e}")
    finally:
        db.close()


class RecurringJobScheduler:
    """
    Wraps one AsyncIOScheduler for the life of the process.

    Job ids are fixed and registered with replace_existing=True, so calling
    register_jobs twice in one process keeps a single copy of each job.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        timezone: Optional[str] = None,
        jobs: Optional[List[RecurringJob]] = None,
    ):
        self.session_factory = session_factory
        self.timezone = timezone or settings.scheduler_timezone
        self.jobs = jobs if jobs is not None else RECURRING_JOBS
        self.scheduler = AsyncIOScheduler(timezone=self.timezone)

    def register_jobs(self):
        for job in self.jobs:
            self.scheduler.add_job(
                enqueue_recurring_job,
                CronTrigger.from_crontab(job.cron, timezone=self.timezone),
                args=[self.session_factory, job],
                id=job.id,
                name=job.name,
                replace_existing=True,
            )

    def start(self) -> bool:
        if self.scheduler.running:
            logger.warning("Recurring job scheduler is already running")
            return True

        try:
            self.register_jobs()
            self.scheduler.start()
            logger.info(f"Recurring job scheduler started with {len(self.jobs)} jobs ({self.timezone})")
            return True
        except Exception as e:
            logger.error(f"Failed to start recurring job scheduler: {e}")
            return False

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Recurring job scheduler stopped")

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.scheduler.running,
            "timezone": self.timezone,
            "jobs": [
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run": job.next_run_time.isoformat() if getattr(job, "next_run_time", None) else None,
                }
                for job in self.scheduler.get_jobs()
            ],
        }
