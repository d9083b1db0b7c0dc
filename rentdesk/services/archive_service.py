"""
Archive Service

Archiving hides old records from day-to-day lists without losing them:
- bookings: once the checkout is more than ARCHIVE_BOOKING_AFTER_DAYS old
- guests: once their last checkout is ARCHIVE_GUEST_AFTER_DAYS old
- properties: deactivated (status=inactive) when no stay is still running

Archived bookings and guests can be restored or permanently deleted.
"""

import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import BusinessRuleError, NotFoundError, ValidationFailure
from ..models.audit_log import AuditAction
from ..models.booking import Booking, BookingEventType
from ..models.finance import FinanceRecord
from ..models.guest import Guest
from ..models.property import Property, PropertyStatus
from ..models.user import User
from ..utils.dates import days_between, get_today
from ..utils.db_helpers import acquire_row_lock
from .audit_service import log_activity
from .booking_lifecycle import BookingLifecycleManager

logger = logging.getLogger(__name__)


class ArchiveService:

    def __init__(
        self,
        db: Session,
        lifecycle: Optional[BookingLifecycleManager] = None,
        today: Callable[[], date] = get_today,
    ):
        self.db = db
        self.today = today
        self.lifecycle = lifecycle or BookingLifecycleManager(db, today=today)

    # ==================
    # Bookings
    # ==================

    def archive_booking(self, booking_id: str, actor: Optional[User] = None) -> Booking:
        booking = acquire_row_lock(self.db, Booking, Booking.id == booking_id)
        if not booking:
            raise NotFoundError("Booking not found", {"booking_id": booking_id})

        if booking.is_archived:
            raise BusinessRuleError("Booking is already archived")

        days_since_checkout = days_between(booking.checkout_date, self.today())
        if days_since_checkout <= settings.archive_booking_after_days:
            raise BusinessRuleError(
                f"Booking cannot be archived. Checkout date must be more than "
                f"{settings.archive_booking_after_days} days ago",
                {"days_since_checkout": days_since_checkout},
            )

        booking.archived_at = datetime.utcnow()
        booking.archived_by_id = actor.id if actor else None
        self.lifecycle.record_event(booking, BookingEventType.ARCHIVED, actor)
        self.db.commit()
        self.db.refresh(booking)

        logger.info(f"Booking {booking.reference} archived")
        log_activity(self.db, actor, AuditAction.ARCHIVE, "bookings", booking.id, {
            "archived_at": booking.archived_at,
        })
        return booking

    def restore_booking(self, booking_id: str, actor: Optional[User] = None) -> Booking:
        """Un-archive a booking. Restoring a live booking changes nothing."""
        booking = self.lifecycle.get(booking_id)
        if not booking.is_archived:
            return booking

        booking.archived_at = None
        booking.archived_by_id = None
        self.lifecycle.record_event(booking, BookingEventType.RESTORED, actor)
        self.db.commit()
        self.db.refresh(booking)

        logger.info(f"Booking {booking.reference} restored")
        log_activity(self.db, actor, AuditAction.RESTORE, "bookings", booking.id)
        return booking

    def list_archived_bookings(self, limit: int = 50, offset: int = 0) -> Tuple[List[Booking], int]:
        query = self.db.query(Booking).filter(Booking.archived_at.isnot(None))
        total = query.count()
        items = query.order_by(Booking.archived_at.desc()).offset(offset).limit(limit).all()
        return items, total

    # ==================
    # Guests
    # ==================

    def _get_guest(self, guest_id: str) -> Guest:
        guest = self.db.query(Guest).filter(Guest.id == guest_id).first()
        if not guest:
            raise NotFoundError("Guest not found", {"guest_id": guest_id})
        return guest

    def _active_booking_count(self, **filters) -> int:
        query = self.db.query(Booking).filter(Booking.checkout_date >= self.today())
        for column, value in filters.items():
            query = query.filter(getattr(Booking, column) == value)
        return query.count()

    def archive_guest(self, guest_id: str, actor: Optional[User] = None) -> Guest:
        guest = self._get_guest(guest_id)
        if guest.is_archived:
            raise BusinessRuleError("Guest is already archived")

        last_booking = self.db.query(Booking).filter(
            Booking.guest_id == guest.id
        ).order_by(Booking.checkout_date.desc()).first()

        if last_booking:
            days_since_last = days_between(last_booking.checkout_date, self.today())
            if days_since_last < settings.archive_guest_after_days:
                raise BusinessRuleError(
                    f"Guest cannot be archived. Last booking must be more than "
                    f"{settings.archive_guest_after_days} days ago",
                    {"days_since_last_checkout": days_since_last},
                )

        guest.archived_at = datetime.utcnow()
        guest.archived_by_id = actor.id if actor else None
        self.db.commit()
        self.db.refresh(guest)

        logger.info(f"Guest {guest.id} archived")
        log_activity(self.db, actor, AuditAction.ARCHIVE, "guests", guest.id)
        return guest

    def restore_guest(self, guest_id: str, actor: Optional[User] = None) -> Guest:
        guest = self._get_guest(guest_id)
        if not guest.is_archived:
            return guest

        guest.archived_at = None
        guest.archived_by_id = None
        self.db.commit()
        self.db.refresh(guest)

        log_activity(self.db, actor, AuditAction.RESTORE, "guests", guest.id)
        return guest

    def list_archived_guests(self, limit: int = 50, offset: int = 0) -> Tuple[List[Guest], int]:
        query = self.db.query(Guest).filter(Guest.archived_at.isnot(None))
        total = query.count()
        items = query.order_by(Guest.archived_at.desc()).offset(offset).limit(limit).all()
        return items, total

    # ==================
    # Properties
    # ==================

    def archive_property(self, property_id: str, actor: Optional[User] = None) -> Property:
        prop = self.db.query(Property).filter(Property.id == property_id).first()
        if not prop:
            raise NotFoundError("Property not found", {"property_id": property_id})

        if self._active_booking_count(property_id=prop.id) > 0:
            raise BusinessRuleError("Cannot archive property with active bookings")

        prop.status = PropertyStatus.INACTIVE.value
        self.db.commit()
        self.db.refresh(prop)

        logger.info(f"Property {prop.code} deactivated")
        log_activity(self.db, actor, AuditAction.ARCHIVE, "properties", prop.id, {
            "status": prop.status,
        })
        return prop

    # ==================
    # Permanent delete
    # ==================

    def permanently_delete(self, table_name: str, record_id: str, actor: Optional[User] = None) -> Dict[str, Any]:
        if table_name == "bookings":
            booking = self.lifecycle.get(record_id)
            if not booking.is_archived:
                raise BusinessRuleError("Only archived bookings can be permanently deleted")
            self.lifecycle.delete(record_id, actor)

        elif table_name == "guests":
            guest = self._get_guest(record_id)
            if self._active_booking_count(guest_id=guest.id) > 0:
                raise BusinessRuleError("Cannot delete guest with active bookings")

            # Past bookings and ledger lines stay, unlinked
            self.db.query(Booking).filter(Booking.guest_id == guest.id).update(
                {Booking.guest_id: None}, synchronize_session=False
            )
            self.db.query(FinanceRecord).filter(FinanceRecord.guest_id == guest.id).update(
                {FinanceRecord.guest_id: None}, synchronize_session=False
            )
            self.db.delete(guest)
            self.db.commit()

        elif table_name == "properties":
            raise BusinessRuleError("Properties should be deactivated, not permanently deleted")

        else:
            raise ValidationFailure(f"Unknown table: {table_name}")

        logger.warning(f"Permanently deleted {table_name}:{record_id}")
        log_activity(self.db, actor, AuditAction.PERMANENT_DELETE, table_name, record_id, {
            "deleted_at": datetime.utcnow(),
        })
        return {"table_name": table_name, "record_id": record_id, "deleted": True}
