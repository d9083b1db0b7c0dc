"""
Tests for the booking lifecycle manager

Test Coverage:
1. Create: reference, nights, revenue record, guest spend, booking.created event
2. Overlapping create is rejected and writes nothing
3. Check-in / check-out date gates and state transitions
4. Update keeps guest spend in step with booking amounts
5. Delete reverses spend and removes the booking's finance records
6. A failing emitter never fails the operation
"""

import re
from datetime import date, datetime
from decimal import Decimal

import pytest

from conftest import FIXED_TODAY, make_booking
from rentdesk.errors import BusinessRuleError, ConflictError, NotFoundError, ValidationFailure
from rentdesk.models.booking import Booking, BookingEvent, LifecycleState, PaymentStatus
from rentdesk.models.finance import FinanceRecord, FinanceStatus, FinanceType
from rentdesk.models.guest import Guest
from rentdesk.models.property import Property, Unit
from rentdesk.models.task import CleaningTask
from rentdesk.schemas.booking import BookingCreate, BookingUpdate
from rentdesk.services.booking_lifecycle import BookingLifecycleManager, booking_event_data


@pytest.fixture
def manager(db, emitter, today):
    return BookingLifecycleManager(db, emitter=emitter, today=today)


def create_data(property_, guest, checkin, checkout, unit=None, **overrides):
    values = dict(
        property_id=property_.id,
        unit_id=unit.id if unit else None,
        guest_id=guest.id,
        checkin_date=checkin,
        checkout_date=checkout,
        total_amount=Decimal("400"),
    )
    values.update(overrides)
    return BookingCreate(**values)


def spend_of(db, guest_id):
    db.expire_all()
    return db.query(Guest).filter(Guest.id == guest_id).first().total_spend


class TestCreate:

    def test_create_writes_booking_and_side_effects(self, db, manager, emitter, property_, unit, guest, admin):
        booking, cleaning = manager.create(
            create_data(property_, guest, date(2026, 4, 1), date(2026, 4, 4), unit=unit),
            admin,
        )

        assert re.match(r"^BK-\d{8}-[A-Z0-9]{4}$", booking.reference)
        assert booking.nights == 3
        assert booking.currency == "AED"
        assert booking.lifecycle_state == LifecycleState.PENDING.value
        assert cleaning is None

        revenue = db.query(FinanceRecord).filter(FinanceRecord.booking_id == booking.id).one()
        assert revenue.type == FinanceType.REVENUE.value
        assert revenue.amount == Decimal("400")
        assert revenue.date == FIXED_TODAY
        assert revenue.status == FinanceStatus.PENDING.value

        assert spend_of(db, guest.id) == Decimal("400")

        events = db.query(BookingEvent).filter(BookingEvent.booking_id == booking.id).all()
        assert [e.event_type for e in events] == ["created"]
        assert events[0].actor_email == admin.email

        assert [name for name, _ in emitter.events] == ["booking.created"]
        payload = emitter.events[0][1]
        assert payload["bookingId"] == booking.id
        assert payload["reference"] == booking.reference
        assert payload["nights"] == 3

    def test_paid_booking_records_paid_revenue(self, db, manager, property_, unit, guest):
        booking, _ = manager.create(create_data(
            property_, guest, date(2026, 4, 1), date(2026, 4, 2), unit=unit, payment_status=PaymentStatus.PAID
        ))
        revenue = db.query(FinanceRecord).filter(FinanceRecord.booking_id == booking.id).one()
        assert revenue.status == FinanceStatus.PAID.value

    def test_optional_cleaning_task_on_checkout_date(self, db, manager, property_, unit, guest):
        booking, cleaning = manager.create(create_data(
            property_, guest, date(2026, 4, 1), date(2026, 4, 4), unit=unit, create_cleaning_task=True
        ))
        assert cleaning is not None
        assert cleaning.booking_id == booking.id
        assert cleaning.scheduled_date == date(2026, 4, 4)
        assert cleaning.cleaning_id.startswith("CLN-")

    def test_overlap_is_rejected_without_writes(self, db, manager, emitter, property_, unit, guest, other_guest):
        manager.create(create_data(property_, guest, date(2026, 4, 10), date(2026, 4, 15), unit=unit))
        emitter.events.clear()

        with pytest.raises(ConflictError):
            manager.create(create_data(property_, other_guest, date(2026, 4, 12), date(2026, 4, 18), unit=unit))

        assert db.query(Booking).count() == 1
        assert db.query(FinanceRecord).count() == 1
        assert spend_of(db, other_guest.id) == Decimal("0")
        assert emitter.events == []

    def test_back_to_back_create_is_allowed(self, db, manager, property_, unit, guest, other_guest):
        manager.create(create_data(property_, guest, date(2026, 4, 10), date(2026, 4, 15), unit=unit))
        booking, _ = manager.create(create_data(property_, other_guest, date(2026, 4, 15), date(2026, 4, 17), unit=unit))
        assert booking.nights == 2

    @pytest.mark.parametrize("checkout", [date(2026, 4, 10), date(2026, 4, 9)])
    def test_checkout_must_follow_checkin(self, db, manager, property_, guest, checkout):
        with pytest.raises(ValidationFailure):
            manager.create(create_data(property_, guest, date(2026, 4, 10), checkout))
        assert db.query(Booking).count() == 0

    def test_unknown_property_guest_or_unit(self, db, manager, property_, unit, guest):
        with pytest.raises(NotFoundError):
            manager.create(create_data(property_, guest, date(2026, 4, 1), date(2026, 4, 2), property_id="missing"))
        with pytest.raises(NotFoundError):
            manager.create(create_data(property_, guest, date(2026, 4, 1), date(2026, 4, 2), guest_id="missing"))

        other_property = Property(code="JBR-2", name="JBR Walk")
        db.add(other_property)
        db.commit()
        foreign_unit = Unit(property_id=other_property.id, unit_code="X-1")
        db.add(foreign_unit)
        db.commit()
        with pytest.raises(NotFoundError):
            manager.create(create_data(property_, guest, date(2026, 4, 1), date(2026, 4, 2), unit=foreign_unit))

    def test_blacklisted_guest_is_rejected(self, db, manager, property_, guest):
        guest.is_blacklisted = True
        guest.blacklist_reason = "Property damage"
        db.commit()

        with pytest.raises(BusinessRuleError):
            manager.create(create_data(property_, guest, date(2026, 4, 1), date(2026, 4, 2)))

    def test_emitter_failure_does_not_fail_create(self, db, property_, unit, guest, today):
        class ExplodingEmitter:
            def emit(self, event, data):
                raise RuntimeError("dispatcher down")

        manager = BookingLifecycleManager(db, emitter=ExplodingEmitter(), today=today)
        booking, _ = manager.create(create_data(property_, guest, date(2026, 4, 1), date(2026, 4, 2), unit=unit))
        assert db.query(Booking).filter(Booking.id == booking.id).count() == 1


class TestCheckInOut:

    def test_check_in_before_checkin_date_is_rejected(self, db, manager, property_, unit):
        booking = make_booking(db, property_, date(2026, 3, 16), date(2026, 3, 18), unit=unit)
        with pytest.raises(BusinessRuleError):
            manager.check_in(booking.id)

    def test_check_in_on_checkin_date(self, db, manager, emitter, property_, unit, admin):
        booking = make_booking(db, property_, FIXED_TODAY, date(2026, 3, 18), unit=unit)

        result = manager.check_in(booking.id, admin)
        assert result.lifecycle_state == LifecycleState.CHECKED_IN.value
        assert [name for name, _ in emitter.events] == ["booking.checkin"]

        with pytest.raises(BusinessRuleError):
            manager.check_in(booking.id, admin)

    def test_check_out_before_checkout_date_is_rejected(self, db, manager, property_, unit):
        booking = make_booking(db, property_, date(2026, 3, 10), date(2026, 3, 16), unit=unit)
        with pytest.raises(BusinessRuleError):
            manager.check_out(booking.id)

    def test_check_out_pulls_cleaning_to_today(self, db, manager, emitter, property_, unit, guest):
        booking, cleaning = manager.create(create_data(
            property_, guest, date(2026, 3, 10), date(2026, 3, 14), unit=unit, create_cleaning_task=True
        ))
        emitter.events.clear()

        result = manager.check_out(booking.id)
        assert result.lifecycle_state == LifecycleState.CHECKED_OUT.value

        db.refresh(cleaning)
        assert cleaning.scheduled_date == FIXED_TODAY
        assert [name for name, _ in emitter.events] == ["booking.checkout"]

        with pytest.raises(BusinessRuleError):
            manager.check_out(booking.id)

    def test_archived_booking_cannot_move(self, db, manager, property_, unit):
        booking = make_booking(db, property_, date(2026, 3, 10), date(2026, 3, 14), unit=unit, archived_at=datetime(2026, 3, 14))
        with pytest.raises(BusinessRuleError):
            manager.check_in(booking.id)
        with pytest.raises(BusinessRuleError):
            manager.check_out(booking.id)

    def test_missing_booking(self, manager):
        with pytest.raises(NotFoundError):
            manager.check_in("missing")


class TestUpdateAndDelete:

    def test_amount_change_adjusts_spend(self, db, manager, emitter, property_, unit, guest):
        booking, _ = manager.create(create_data(property_, guest, date(2026, 4, 1), date(2026, 4, 4), unit=unit))
        emitter.events.clear()

        manager.update(booking.id, BookingUpdate(total_amount=Decimal("550")))
        assert spend_of(db, guest.id) == Decimal("550")
        assert emitter.events == []

    def test_guest_change_moves_spend(self, db, manager, property_, unit, guest, other_guest):
        booking, _ = manager.create(create_data(property_, guest, date(2026, 4, 1), date(2026, 4, 4), unit=unit))

        manager.update(booking.id, BookingUpdate(guest_id=other_guest.id, total_amount=Decimal("300")))
        assert spend_of(db, guest.id) == Decimal("0")
        assert spend_of(db, other_guest.id) == Decimal("300")

    def test_date_change_rechecks_conflicts_and_nights(self, db, manager, property_, unit, guest):
        make_booking(db, property_, date(2026, 4, 10), date(2026, 4, 15), unit=unit)
        booking, _ = manager.create(create_data(property_, guest, date(2026, 4, 1), date(2026, 4, 4), unit=unit))

        updated = manager.update(booking.id, BookingUpdate(checkout_date=date(2026, 4, 6)))
        assert updated.nights == 5

        with pytest.raises(ConflictError):
            manager.update(booking.id, BookingUpdate(checkout_date=date(2026, 4, 12)))

        with pytest.raises(ValidationFailure):
            manager.update(booking.id, BookingUpdate(checkout_date=date(2026, 3, 30)))

    def test_guest_change_to_blacklisted_guest_is_rejected(self, db, manager, property_, guest, other_guest):
        booking, _ = manager.create(create_data(property_, guest, date(2026, 4, 1), date(2026, 4, 4)))
        other_guest.is_blacklisted = True
        other_guest.blacklist_reason = "Chargeback"
        db.commit()

        with pytest.raises(BusinessRuleError):
            manager.update(booking.id, BookingUpdate(guest_id=other_guest.id))

        db.expire_all()
        assert db.query(Booking).filter(Booking.id == booking.id).one().guest_id == guest.id
        assert spend_of(db, guest.id) == Decimal("400")
        assert spend_of(db, other_guest.id) == Decimal("0")

        # Edits that keep the same guest are unaffected
        updated = manager.update(booking.id, BookingUpdate(guest_id=guest.id, notes="VIP"))
        assert updated.notes == "VIP"

    def test_spend_matches_remaining_bookings_after_mixed_changes(self, db, manager, property_, guest, other_guest):
        amounts = [Decimal("100"), Decimal("250"), Decimal("75.50"), Decimal("400"), Decimal("60")]
        bookings = []
        for i, amount in enumerate(amounts):
            owner_guest = guest if i % 2 == 0 else other_guest
            checkin = date(2026, 4, 1 + 4 * i)
            booking, _ = manager.create(create_data(
                property_, owner_guest, checkin, date(2026, 4, 3 + 4 * i), total_amount=amount,
            ))
            bookings.append(booking)

        manager.delete(bookings[1].id)
        manager.update(bookings[2].id, BookingUpdate(total_amount=Decimal("90")))
        manager.delete(bookings[4].id)
        manager.create(create_data(
            property_, other_guest, date(2026, 5, 1), date(2026, 5, 3), total_amount=Decimal("33.25"),
        ))
        manager.update(bookings[0].id, BookingUpdate(guest_id=other_guest.id))

        db.expire_all()
        for g in (guest, other_guest):
            remaining = db.query(Booking).filter(Booking.guest_id == g.id).all()
            expected = sum((Decimal(str(b.total_amount)) for b in remaining), Decimal("0"))
            assert spend_of(db, g.id) == expected

    def test_explicit_null_on_required_field_is_ignored(self, db, manager, property_, guest):
        booking, _ = manager.create(create_data(property_, guest, date(2026, 4, 1), date(2026, 4, 4)))
        updated = manager.update(booking.id, BookingUpdate(total_amount=None, notes="Late arrival"))
        assert updated.total_amount == Decimal("400")
        assert updated.notes == "Late arrival"

    def test_delete_reverses_spend_and_finance(self, db, manager, property_, unit, guest):
        booking, cleaning = manager.create(create_data(
            property_, guest, date(2026, 4, 1), date(2026, 4, 4), unit=unit, create_cleaning_task=True
        ))

        result = manager.delete(booking.id)
        assert result["finance_records_removed"] == 1
        assert db.query(Booking).count() == 0
        assert db.query(FinanceRecord).count() == 0
        assert spend_of(db, guest.id) == Decimal("0")

        db.expire_all()
        assert db.query(CleaningTask).filter(CleaningTask.id == cleaning.id).one().booking_id is None


def test_event_data_uses_camel_case_keys(db, property_, unit, guest):
    booking = make_booking(db, property_, date(2026, 4, 1), date(2026, 4, 3), unit=unit, guest=guest)
    data = booking_event_data(booking)
    assert set(data) == {
        "bookingId", "reference", "propertyId", "unitId", "guestId", "channel",
        "checkinDate", "checkoutDate", "nights", "totalAmount", "currency", "paymentStatus",
    }
    assert data["unitId"] == unit.id
    assert data["guestId"] == guest.id
