"""
Booking Lifecycle Manager

Owns every state change of a booking and the writes each change implies:

    create    -> booking, optional cleaning task, revenue record, guest spend,
                 booking.created event
    update    -> nights / conflict re-check on date or unit change, guest spend
                 adjusted when the amount or guest changes (no event)
    delete    -> guest spend reversed, finance records of the booking removed
    check_in  -> pending -> checked_in, booking.checkin event
    check_out -> pending|checked_in -> checked_out, cleaning pulled to today,
                 booking.checkout event

Side effects are committed one after another, not atomically. Automation
events are emitted last and can never fail the operation.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import BusinessRuleError, ConflictError, NotFoundError, ValidationFailure
from ..models.audit_log import AuditAction
from ..models.booking import Booking, BookingEvent, BookingEventType, LifecycleState, PaymentStatus
from ..models.finance import FinanceRecord, FinanceStatus, FinanceType
from ..models.guest import Guest
from ..models.property import Property, Unit
from ..models.task import CleaningStatus, CleaningTask, MaintenanceTask
from ..models.user import User
from ..schemas.booking import BookingCreate, BookingUpdate
from ..utils.dates import get_today
from ..utils.db_helpers import AtomicCounter, acquire_row_lock
from .audit_service import log_activity
from .conflict_detector import ConflictDetector
from .reference_generator import ReferenceGenerator, booking_reference_exists, generate_cleaning_id

logger = logging.getLogger(__name__)


def booking_event_data(booking: Booking) -> Dict[str, Any]:
    """Payload handed to automations for booking.* triggers"""
    return {
        "bookingId": booking.id,
        "reference": booking.reference,
        "propertyId": booking.property_id,
        "unitId": booking.unit_id,
        "guestId": booking.guest_id,
        "channel": booking.channel,
        "checkinDate": booking.checkin_date,
        "checkoutDate": booking.checkout_date,
        "nights": booking.nights,
        "totalAmount": booking.total_amount,
        "currency": booking.currency,
        "paymentStatus": booking.payment_status,
    }


# Explicit nulls for these are ignored on update
NON_NULLABLE_FIELDS = (
    "channel", "checkin_date", "checkout_date", "total_amount",
    "currency", "payment_status", "booking_documents",
)


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


class BookingLifecycleManager:

    def __init__(
        self,
        db: Session,
        emitter=None,
        today: Callable[[], date] = get_today,
        reference_generator: Optional[ReferenceGenerator] = None,
    ):
        self.db = db
        self.emitter = emitter
        self.today = today
        self.detector = ConflictDetector(db)
        self.references = reference_generator or ReferenceGenerator(booking_reference_exists(db))

    # ==================
    # Helpers
    # ==================

    def get(self, booking_id: str) -> Booking:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFoundError("Booking not found", {"booking_id": booking_id})
        return booking

    def _lock_booking(self, booking_id: str) -> Booking:
        booking = acquire_row_lock(self.db, Booking, Booking.id == booking_id)
        if not booking:
            raise NotFoundError("Booking not found", {"booking_id": booking_id})
        return booking

    def _lock_resource(self, property_id: str, unit_id: Optional[str]):
        """Serialise creates on one unit (or property) on PostgreSQL"""
        try:
            if unit_id:
                return acquire_row_lock(self.db, Unit, Unit.id == unit_id, nowait=True)
            return acquire_row_lock(self.db, Property, Property.id == property_id, nowait=True)
        except OperationalError as e:
            self.db.rollback()
            logger.warning(f"Lock contention on {'unit ' + unit_id if unit_id else 'property ' + property_id}: {e}")
            raise ConflictError("This unit is being booked by another request, please retry")

    def _ensure_available(self, property_id, unit_id, checkin, checkout, exclude_booking_id=None):
        check = self.detector.check_conflict(property_id, unit_id, checkin, checkout, exclude_booking_id)
        if check.has_conflict:
            raise ConflictError(
                "The selected dates overlap an existing booking",
                {"conflicts": [b.reference for b in check.conflicts]},
            )

    def _get_unit(self, property_id: str, unit_id: str) -> Unit:
        unit = self.db.query(Unit).filter(Unit.id == unit_id).first()
        if not unit or unit.property_id != property_id:
            raise NotFoundError("Unit not found for this property", {"unit_id": unit_id})
        return unit

    def _get_guest(self, guest_id: str) -> Guest:
        guest = self.db.query(Guest).filter(Guest.id == guest_id).first()
        if not guest:
            raise NotFoundError("Guest not found", {"guest_id": guest_id})
        return guest

    def _check_not_blacklisted(self, guest: Guest):
        if guest.is_blacklisted:
            raise BusinessRuleError(
                "Guest is blacklisted",
                {"guest_id": guest.id, "reason": guest.blacklist_reason},
            )

    def _adjust_spend(self, guest_id: Optional[str], amount: Decimal):
        if not guest_id or not amount:
            return
        AtomicCounter.increment(self.db, Guest, Guest.id == guest_id, "total_spend", amount)

    def record_event(self, booking: Booking, event_type: BookingEventType, actor: Optional[User], details=None):
        self.db.add(BookingEvent(
            booking_id=booking.id,
            event_type=event_type.value,
            actor_id=actor.id if actor else None,
            actor_email=actor.email if actor else None,
            details=details,
        ))

    def _emit(self, event: str, booking: Booking):
        if self.emitter is None:
            return
        try:
            self.emitter.emit(event, booking_event_data(booking))
        except Exception as e:
            logger.error(f"Failed to emit {event} for booking {booking.id}: {e}")

    # ==================
    # Transitions
    # ==================

    def create(self, data: BookingCreate, actor: Optional[User] = None) -> Tuple[Booking, Optional[CleaningTask]]:
        if data.checkout_date <= data.checkin_date:
            raise ValidationFailure("Checkout date must be after checkin date")
        nights = (data.checkout_date - data.checkin_date).days

        self._lock_resource(data.property_id, data.unit_id)
        self._ensure_available(data.property_id, data.unit_id, data.checkin_date, data.checkout_date)

        prop = self.db.query(Property).filter(Property.id == data.property_id).first()
        if not prop:
            raise NotFoundError("Property not found", {"property_id": data.property_id})
        guest = self._get_guest(data.guest_id)
        if data.unit_id:
            self._get_unit(prop.id, data.unit_id)

        self._check_not_blacklisted(guest)

        booking = Booking(
            reference=self.references.generate(),
            property_id=prop.id,
            unit_id=data.unit_id,
            guest_id=guest.id,
            channel=data.channel.value,
            checkin_date=data.checkin_date,
            checkout_date=data.checkout_date,
            nights=nights,
            total_amount=data.total_amount,
            currency=data.currency or settings.default_currency,
            payment_status=data.payment_status.value,
            deposit_amount=data.deposit_amount,
            notes=data.notes,
            booking_documents=list(data.booking_documents),
            lifecycle_state=LifecycleState.PENDING.value,
            created_by_id=actor.id if actor else None,
        )
        self.db.add(booking)
        self.db.flush()
        self.record_event(booking, BookingEventType.CREATED, actor, {"reference": booking.reference})
        self.db.commit()
        self.db.refresh(booking)

        cleaning_task = None
        if data.create_cleaning_task:
            cleaning_task = CleaningTask(
                cleaning_id=generate_cleaning_id(),
                property_id=booking.property_id,
                unit_id=booking.unit_id,
                booking_id=booking.id,
                scheduled_date=booking.checkout_date,
                status=CleaningStatus.NOT_STARTED.value,
            )
            self.db.add(cleaning_task)
            self.db.commit()
            self.db.refresh(cleaning_task)

        self.db.add(FinanceRecord(
            type=FinanceType.REVENUE.value,
            category="guest_payment",
            amount=booking.total_amount,
            date=self.today(),
            status=FinanceStatus.PAID.value if booking.payment_status == PaymentStatus.PAID.value else FinanceStatus.PENDING.value,
            payment_method="booking",
            description=f"Booking {booking.reference}",
            property_id=booking.property_id,
            booking_id=booking.id,
            guest_id=booking.guest_id,
            created_by_id=actor.id if actor else None,
        ))
        self.db.commit()

        self._adjust_spend(guest.id, Decimal(str(booking.total_amount)))
        self.db.commit()

        logger.info(f"Booking {booking.reference} created for {booking.checkin_date} -> {booking.checkout_date}")
        log_activity(self.db, actor, AuditAction.CREATE, "bookings", booking.id, {
            "reference": booking.reference,
            "property_id": booking.property_id,
            "guest_id": booking.guest_id,
        })

        self._emit("booking.created", booking)
        return booking, cleaning_task

    def update(self, booking_id: str, patch: BookingUpdate, actor: Optional[User] = None) -> Booking:
        booking = self.get(booking_id)
        changes = patch.model_dump(exclude_unset=True)
        for key in NON_NULLABLE_FIELDS:
            if key in changes and changes[key] is None:
                changes.pop(key)
        if not changes:
            return booking

        new_checkin = changes.get("checkin_date") or booking.checkin_date
        new_checkout = changes.get("checkout_date") or booking.checkout_date
        new_unit_id = changes["unit_id"] if "unit_id" in changes else booking.unit_id

        if "unit_id" in changes and new_unit_id:
            self._get_unit(booking.property_id, new_unit_id)

        if {"checkin_date", "checkout_date", "unit_id"} & changes.keys():
            if new_checkout <= new_checkin:
                raise ValidationFailure("Checkout date must be after checkin date")
            self._ensure_available(booking.property_id, new_unit_id, new_checkin, new_checkout, booking.id)
            changes["nights"] = (new_checkout - new_checkin).days

        old_guest_id = booking.guest_id
        old_amount = Decimal(str(booking.total_amount or 0))
        new_guest_id = changes.get("guest_id") or old_guest_id
        if "guest_id" in changes and changes["guest_id"]:
            if new_guest_id != old_guest_id:
                self._check_not_blacklisted(self._get_guest(new_guest_id))
            else:
                self._get_guest(new_guest_id)
        elif "guest_id" in changes:
            changes.pop("guest_id")
        new_amount = Decimal(str(changes.get("total_amount", old_amount)))

        before = {key: getattr(booking, key) for key in changes}
        for key, value in changes.items():
            setattr(booking, key, _enum_value(value))
        booking.updated_by_id = actor.id if actor else None

        self.record_event(booking, BookingEventType.UPDATED, actor, {"fields": sorted(changes)})
        self.db.commit()

        # Keep guest spend equal to the sum of the guest's booking amounts
        if new_guest_id != old_guest_id:
            self._adjust_spend(old_guest_id, -old_amount)
            self._adjust_spend(new_guest_id, new_amount)
        else:
            self._adjust_spend(old_guest_id, new_amount - old_amount)
        self.db.commit()
        self.db.refresh(booking)

        log_activity(self.db, actor, AuditAction.UPDATE, "bookings", booking.id, {
            "before": before,
            "after": {key: getattr(booking, key) for key in changes},
        })
        return booking

    def delete(self, booking_id: str, actor: Optional[User] = None) -> Dict[str, Any]:
        booking = self._lock_booking(booking_id)
        reference = booking.reference

        self._adjust_spend(booking.guest_id, -Decimal(str(booking.total_amount or 0)))

        removed_records = self.db.query(FinanceRecord).filter(
            FinanceRecord.booking_id == booking.id
        ).delete(synchronize_session=False)

        # Tasks outlive the booking they were created for
        self.db.query(CleaningTask).filter(CleaningTask.booking_id == booking.id).update(
            {CleaningTask.booking_id: None}, synchronize_session=False
        )
        self.db.query(MaintenanceTask).filter(MaintenanceTask.booking_id == booking.id).update(
            {MaintenanceTask.booking_id: None}, synchronize_session=False
        )

        self.db.delete(booking)
        self.db.commit()

        logger.info(f"Booking {reference} deleted ({removed_records} finance records removed)")
        log_activity(self.db, actor, AuditAction.DELETE, "bookings", booking_id, {
            "reference": reference,
            "finance_records_removed": removed_records,
        })
        return {"id": booking_id, "reference": reference, "finance_records_removed": removed_records}

    def check_in(self, booking_id: str, actor: Optional[User] = None) -> Booking:
        booking = self._lock_booking(booking_id)
        today = self.today()

        if booking.is_archived:
            raise BusinessRuleError("Archived bookings cannot be checked in")
        if booking.lifecycle_state != LifecycleState.PENDING.value:
            raise BusinessRuleError(
                f"Booking cannot be checked in from state '{booking.lifecycle_state}'"
            )
        if today < booking.checkin_date:
            raise BusinessRuleError(
                f"Cannot check in before the checkin date ({booking.checkin_date}). Today is {today}"
            )

        booking.lifecycle_state = LifecycleState.CHECKED_IN.value
        booking.updated_by_id = actor.id if actor else None
        self.record_event(booking, BookingEventType.CHECKED_IN, actor)
        self.db.commit()
        self.db.refresh(booking)

        logger.info(f"Booking {booking.reference} checked in")
        log_activity(self.db, actor, AuditAction.CHECK_IN, "bookings", booking.id, {
            "timestamp": datetime.utcnow(),
        })
        self._emit("booking.checkin", booking)
        return booking

    def check_out(self, booking_id: str, actor: Optional[User] = None) -> Booking:
        booking = self._lock_booking(booking_id)
        today = self.today()

        if booking.is_archived:
            raise BusinessRuleError("Archived bookings cannot be checked out")
        if booking.lifecycle_state == LifecycleState.CHECKED_OUT.value:
            raise BusinessRuleError("Booking is already checked out")
        if today < booking.checkout_date:
            raise BusinessRuleError(
                f"Cannot check out before the checkout date ({booking.checkout_date}). Today is {today}"
            )

        booking.lifecycle_state = LifecycleState.CHECKED_OUT.value
        booking.updated_by_id = actor.id if actor else None
        self.record_event(booking, BookingEventType.CHECKED_OUT, actor)

        cleaning = self.db.query(CleaningTask).filter(
            CleaningTask.booking_id == booking.id
        ).order_by(CleaningTask.created_at).first()
        if cleaning:
            cleaning.scheduled_date = today

        self.db.commit()
        self.db.refresh(booking)

        logger.info(f"Booking {booking.reference} checked out")
        log_activity(self.db, actor, AuditAction.CHECK_OUT, "bookings", booking.id, {
            "timestamp": datetime.utcnow(),
            "cleaning_task_id": cleaning.id if cleaning else None,
        })
        self._emit("booking.checkout", booking)
        return booking

    # ==================
    # Read side
    # ==================

    def list_bookings(
        self,
        property_id: Optional[str] = None,
        unit_id: Optional[str] = None,
        guest_id: Optional[str] = None,
        payment_status: Optional[str] = None,
        channel: Optional[str] = None,
        lifecycle_state: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        search: Optional[str] = None,
        include_archived: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Booking], int]:
        query = self.db.query(Booking)

        if not include_archived:
            query = query.filter(Booking.archived_at.is_(None))
        if property_id:
            query = query.filter(Booking.property_id == property_id)
        if unit_id:
            query = query.filter(Booking.unit_id == unit_id)
        if guest_id:
            query = query.filter(Booking.guest_id == guest_id)
        if payment_status:
            query = query.filter(Booking.payment_status == payment_status)
        if channel:
            query = query.filter(Booking.channel == channel)
        if lifecycle_state:
            query = query.filter(Booking.lifecycle_state == lifecycle_state)
        # Stays touching the window
        if start_date:
            query = query.filter(Booking.checkout_date > start_date)
        if end_date:
            query = query.filter(Booking.checkin_date < end_date)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.outerjoin(Guest, Booking.guest_id == Guest.id).filter(or_(
                Booking.reference.ilike(pattern),
                Guest.first_name.ilike(pattern),
                Guest.last_name.ilike(pattern),
                Guest.email.ilike(pattern),
            ))

        total = query.count()
        items = query.order_by(Booking.checkin_date.desc()).offset(offset).limit(limit).all()
        return items, total

    def calendar(self, start: date, end: date, property_id: Optional[str] = None) -> List[Booking]:
        if end <= start:
            raise ValidationFailure("Calendar end must be after start")
        bookings, _ = self.list_bookings(
            property_id=property_id,
            start_date=start,
            end_date=end,
            limit=1000,
        )
        return sorted(bookings, key=lambda b: b.checkin_date)
