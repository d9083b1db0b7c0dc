"""
Tests for archiving, restoring and permanently deleting records
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from conftest import FIXED_TODAY, make_booking
from rentdesk.errors import BusinessRuleError, NotFoundError, ValidationFailure
from rentdesk.models.booking import Booking, BookingEvent
from rentdesk.models.finance import FinanceRecord, FinanceType
from rentdesk.models.guest import Guest
from rentdesk.models.property import PropertyStatus
from rentdesk.services.archive_service import ArchiveService


@pytest.fixture
def service(db, today):
    return ArchiveService(db, today=today)


class TestBookingArchive:

    def test_checkout_90_days_ago_is_too_recent(self, db, service, property_):
        checkout = FIXED_TODAY - timedelta(days=90)
        booking = make_booking(db, property_, checkout - timedelta(days=3), checkout)

        with pytest.raises(BusinessRuleError):
            service.archive_booking(booking.id)

    def test_checkout_91_days_ago_archives(self, db, service, property_, admin):
        checkout = FIXED_TODAY - timedelta(days=91)
        booking = make_booking(db, property_, checkout - timedelta(days=3), checkout)

        archived = service.archive_booking(booking.id, admin)
        assert archived.is_archived
        assert archived.archived_by_id == admin.id

        events = db.query(BookingEvent).filter(BookingEvent.booking_id == booking.id).all()
        assert [e.event_type for e in events] == ["archived"]

        with pytest.raises(BusinessRuleError):
            service.archive_booking(booking.id, admin)

    def test_archiving_twice_is_rejected_and_keeps_first_stamp(self, db, service, property_, admin, assistant):
        booking = make_booking(db, property_, date(2025, 10, 1), date(2025, 10, 5))
        first = service.archive_booking(booking.id, admin).archived_at

        with pytest.raises(BusinessRuleError):
            service.archive_booking(booking.id, assistant)

        db.expire_all()
        stored = db.query(Booking).filter(Booking.id == booking.id).one()
        assert stored.archived_at == first
        assert stored.archived_by_id == admin.id
        assert db.query(BookingEvent).filter(BookingEvent.booking_id == booking.id).count() == 1

    def test_archived_bookings_leave_default_list(self, db, service, property_):
        old = make_booking(db, property_, date(2025, 10, 1), date(2025, 10, 5))
        current = make_booking(db, property_, date(2026, 4, 1), date(2026, 4, 5))
        service.archive_booking(old.id)

        items, total = service.lifecycle.list_bookings()
        assert [b.id for b in items] == [current.id]

        items, total = service.list_archived_bookings()
        assert total == 1
        assert items[0].id == old.id

    def test_restore_round_trip(self, db, service, property_):
        booking = make_booking(db, property_, date(2025, 10, 1), date(2025, 10, 5))
        service.archive_booking(booking.id)

        restored = service.restore_booking(booking.id)
        assert not restored.is_archived
        assert restored.archived_by_id is None

        # Restoring a live booking is a no-op
        assert service.restore_booking(booking.id).archived_at is None

    def test_missing_booking(self, service):
        with pytest.raises(NotFoundError):
            service.archive_booking("missing")


class TestGuestArchive:

    def test_recent_stay_blocks_archive(self, db, service, property_, guest):
        make_booking(db, property_, date(2025, 12, 1), date(2025, 12, 5), guest=guest)
        with pytest.raises(BusinessRuleError):
            service.archive_guest(guest.id)

    def test_old_guest_archives_and_restores(self, db, service, property_, guest):
        make_booking(db, property_, date(2024, 12, 1), date(2024, 12, 5), guest=guest)

        assert service.archive_guest(guest.id).is_archived
        items, total = service.list_archived_guests()
        assert total == 1

        assert not service.restore_guest(guest.id).is_archived

    def test_guest_without_bookings_archives(self, service, guest):
        assert service.archive_guest(guest.id).is_archived


class TestPropertyArchive:

    def test_active_booking_blocks_deactivation(self, db, service, property_):
        make_booking(db, property_, FIXED_TODAY - timedelta(days=2), FIXED_TODAY + timedelta(days=1))
        with pytest.raises(BusinessRuleError):
            service.archive_property(property_.id)

    def test_property_without_active_stays_is_deactivated(self, db, service, property_):
        make_booking(db, property_, date(2026, 1, 1), date(2026, 1, 4))
        assert service.archive_property(property_.id).status == PropertyStatus.INACTIVE.value


class TestPermanentDelete:

    def test_live_booking_cannot_be_deleted(self, db, service, property_):
        booking = make_booking(db, property_, date(2025, 10, 1), date(2025, 10, 5))
        with pytest.raises(BusinessRuleError):
            service.permanently_delete("bookings", booking.id)

    def test_archived_booking_is_deleted(self, db, service, property_, guest):
        booking = make_booking(db, property_, date(2025, 10, 1), date(2025, 10, 5), guest=guest, total_amount=Decimal("250"))
        guest.total_spend = Decimal("250")
        db.add(FinanceRecord(
            type=FinanceType.REVENUE.value, category="guest_payment", amount=Decimal("250"),
            date=date(2025, 10, 1), booking_id=booking.id, property_id=property_.id,
        ))
        db.commit()
        service.archive_booking(booking.id)

        result = service.permanently_delete("bookings", booking.id)
        assert result == {"table_name": "bookings", "record_id": booking.id, "deleted": True}
        assert db.query(Booking).count() == 0
        assert db.query(FinanceRecord).count() == 0

        db.expire_all()
        assert db.query(Guest).filter(Guest.id == guest.id).one().total_spend == Decimal("0")

    def test_guest_with_active_booking_cannot_be_deleted(self, db, service, property_, guest):
        make_booking(db, property_, FIXED_TODAY, FIXED_TODAY + timedelta(days=2), guest=guest)
        with pytest.raises(BusinessRuleError):
            service.permanently_delete("guests", guest.id)

    def test_guest_delete_unlinks_history(self, db, service, property_, guest):
        booking = make_booking(db, property_, date(2025, 1, 1), date(2025, 1, 3), guest=guest)

        service.permanently_delete("guests", guest.id)

        db.expire_all()
        assert db.query(Guest).count() == 0
        assert db.query(Booking).filter(Booking.id == booking.id).one().guest_id is None

    def test_properties_and_unknown_tables(self, service, property_):
        with pytest.raises(BusinessRuleError):
            service.permanently_delete("properties", property_.id)
        with pytest.raises(ValidationFailure):
            service.permanently_delete("invoices", "anything")


def test_archive_timestamp_is_set(db, service, property_):
    booking = make_booking(db, property_, date(2025, 10, 1), date(2025, 10, 5))
    before = datetime.utcnow()
    archived = service.archive_booking(booking.id)
    assert archived.archived_at >= before.replace(microsecond=0)
