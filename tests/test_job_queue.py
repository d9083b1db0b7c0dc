"""
Tests for the persistent job queue and its handlers
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from conftest import FIXED_TODAY, make_booking
from rentdesk.models.automation import Automation, AutomationJob, JobQueueName, JobStatus
from rentdesk.models.finance import FinanceRecord, FinanceType
from rentdesk.models.task import CleaningTask, MaintenanceTask
from rentdesk.services.job_queue import JobProcessor, JobQueue


@pytest.fixture
def queue(db):
    return JobQueue(db)


@pytest.fixture
def processor(db, today):
    return JobProcessor(db, today=today)


class TestQueueMechanics:

    def test_enqueue_creates_pending_job(self, queue):
        job = queue.enqueue(JobQueueName.SYNC, "channel_sync", {"provider": "airbnb"})
        assert job.status == JobStatus.PENDING.value
        assert job.queue == "sync"
        assert job.attempts == 0

    def test_delayed_job_is_not_due(self, queue, processor):
        queue.enqueue(JobQueueName.SYNC, "channel_sync", {"provider": "airbnb"}, delay_seconds=600)
        assert processor.get_pending_jobs() == []

    def test_pending_jobs_filtered_by_queue(self, queue, processor):
        queue.enqueue(JobQueueName.SYNC, "channel_sync", {"provider": "airbnb"})
        queue.enqueue(JobQueueName.EMAILS, "send_email", {"to": "a@example.com"})

        jobs = processor.get_pending_jobs(queue=JobQueueName.EMAILS)
        assert [j.job_type for j in jobs] == ["send_email"]

    def test_successful_job_is_completed(self, db, queue, processor):
        job = queue.enqueue(JobQueueName.EMAILS, "send_email", {"to": "a@example.com", "subject": "Hi"})

        assert processor.process_batch() == (1, 0)
        db.refresh(job)
        assert job.status == JobStatus.COMPLETED.value
        assert job.attempts == 1
        assert job.result == {"success": True}
        assert job.completed_at is not None

    def test_unknown_job_type_fails_immediately(self, db, queue, processor):
        job = queue.enqueue(JobQueueName.AUTOMATIONS, "launch_rocket", {})

        assert processor.process_job(job) is False
        db.refresh(job)
        assert job.status == JobStatus.FAILED.value
        assert "Unknown job type" in job.last_error

    def test_failing_job_backs_off_then_fails(self, db, queue, processor):
        job = queue.enqueue(JobQueueName.EMAILS, "send_email", {}, max_attempts=2)

        assert processor.process_job(job) is False
        db.refresh(job)
        assert job.status == JobStatus.PENDING.value
        assert job.next_attempt_at > datetime.utcnow() + timedelta(seconds=30)

        assert processor.process_job(job) is False
        db.refresh(job)
        assert job.status == JobStatus.FAILED.value
        assert "recipient" in job.last_error

    def test_retry_failed_job(self, db, queue, processor):
        job = queue.enqueue(JobQueueName.AUTOMATIONS, "launch_rocket", {})
        processor.process_job(job)

        assert processor.retry_failed_job(job.id) is True
        db.refresh(job)
        assert job.status == JobStatus.PENDING.value
        assert job.attempts == 0

        assert processor.retry_failed_job(job.id) is False
        assert processor.retry_failed_job("missing") is False


class TestHandlers:

    def test_create_cleaning_task_is_idempotent(self, db, processor, property_, unit, cleaner):
        booking = make_booking(db, property_, date(2026, 4, 1), date(2026, 4, 4), unit=unit)

        first = processor.handlers["create_cleaning_task"]({"bookingId": booking.id, "cleanerId": cleaner.id})
        db.commit()
        second = processor.handlers["create_cleaning_task"]({"bookingId": booking.id})

        assert first["success"] is True
        assert second["success"] is False
        assert second["cleaningTaskId"] == first["cleaningTaskId"]

        task = db.query(CleaningTask).one()
        assert task.scheduled_date == date(2026, 4, 4)
        assert task.cleaner_id == cleaner.id

    def test_create_cleaning_task_for_missing_booking(self, processor):
        assert processor.handlers["create_cleaning_task"]({"bookingId": "missing"})["success"] is False

    def test_scheduled_checkin_emails_cover_todays_arrivals(self, db, processor, property_, guest, other_guest):
        make_booking(db, property_, FIXED_TODAY, FIXED_TODAY + timedelta(days=2), guest=guest)
        make_booking(db, property_, FIXED_TODAY + timedelta(days=1), FIXED_TODAY + timedelta(days=3), guest=other_guest)

        result = processor.handlers["send_checkin_email"]({})

        assert result == {"success": True, "queued": 1}
        email = db.query(AutomationJob).filter(AutomationJob.job_type == "send_email").one()
        assert email.queue == JobQueueName.EMAILS.value
        assert email.payload["to"] == guest.email
        assert email.payload["template"] == "checkin"

    def test_checkout_email_for_one_booking(self, db, processor, property_, guest):
        booking = make_booking(db, property_, date(2026, 4, 1), date(2026, 4, 4), guest=guest)

        result = processor.handlers["send_checkout_email"]({"bookingId": booking.id})

        assert result["queued"] == 1
        email = db.query(AutomationJob).one()
        assert email.payload["subject"] == "Check-out Reminder for Marina Heights"

    def test_guest_without_email_is_skipped(self, db, processor, property_, guest):
        guest.email = None
        db.commit()
        booking = make_booking(db, property_, date(2026, 4, 1), date(2026, 4, 4), guest=guest)

        assert processor.handlers["send_checkin_email"]({"bookingId": booking.id})["queued"] == 0

    def test_maintenance_reminder_emails_assignee(self, db, processor, property_, technician):
        task = MaintenanceTask(title="Leaking tap", property_id=property_.id, assigned_to_id=technician.id)
        db.add(task)
        db.commit()

        assert processor.handlers["maintenance_reminder"]({"maintenanceTaskId": task.id}) == {"success": True}
        email = db.query(AutomationJob).one()
        assert email.payload["to"] == technician.email

    def test_owner_statement_defaults_to_last_month(self, db, processor, property_, owner):
        db.add_all([
            FinanceRecord(type=FinanceType.REVENUE.value, category="guest_payment", amount=Decimal("1200"),
                          date=date(2026, 2, 10), property_id=property_.id),
            FinanceRecord(type=FinanceType.EXPENSE.value, category="cleaning", amount=Decimal("150"),
                          date=date(2026, 2, 20), property_id=property_.id),
            FinanceRecord(type=FinanceType.REVENUE.value, category="guest_payment", amount=Decimal("999"),
                          date=date(2026, 3, 1), property_id=property_.id),
        ])
        db.commit()

        result = processor.handlers["generate_owner_statement"]({})

        assert result["month"] == "2026-02"
        statement = result["statements"][0]
        assert statement["ownerId"] == owner.id
        assert Decimal(statement["revenue"]) == Decimal("1200")
        assert Decimal(statement["expense"]) == Decimal("150")
        assert Decimal(statement["net"]) == Decimal("1050")

    def test_automation_trigger_job_runs_dispatcher(self, db, processor):
        db.add(Automation(
            name="Daily digest",
            trigger="scheduled.daily",
            conditions={"date": "2026-03-15"},
            actions=[{"type": "send_email", "params": {"to": "ops@example.com", "subject": "Digest"}}],
        ))
        db.commit()

        result = processor.handlers["automation_trigger"]({"trigger": "scheduled.daily"})

        assert result == {"triggered": 1, "errors": []}
        assert db.query(AutomationJob).filter(AutomationJob.job_type == "send_email").count() == 1

    def test_channel_sync_only_reports(self, processor):
        result = processor.handlers["channel_sync"]({"provider": "airbnb"})
        assert result["success"] is False
        assert result["provider"] == "airbnb"
