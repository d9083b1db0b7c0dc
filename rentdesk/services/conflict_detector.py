"""
Booking Conflict Detector

Two stays on the same unit (or on the same property when no unit is given)
conflict when their [checkin, checkout) ranges overlap:

    existing.checkin < new.checkout AND existing.checkout > new.checkin

That single test covers all three shapes of overlap:
- the new checkin falls inside an existing stay
- the new checkout falls inside an existing stay
- the new stay swallows an existing one

A checkout on day X never conflicts with a checkin on day X.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional
from sqlalchemy.orm import Session

from ..models.booking import Booking

logger = logging.getLogger(__name__)


@dataclass
class ConflictCheck:
    has_conflict: bool
    conflicts: List[Booking] = field(default_factory=list)


class ConflictDetector:
    """Read-only overlap scan. Takes no locks of its own."""

    def __init__(self, db: Session):
        self.db = db

    def check_conflict(
        self,
        property_id: str,
        unit_id: Optional[str],
        checkin: date,
        checkout: date,
        exclude_booking_id: Optional[str] = None
    ) -> ConflictCheck:
        query = self.db.query(Booking)

        # Without a unit the whole property is the bookable resource
        if unit_id:
            query = query.filter(Booking.unit_id == unit_id)
        else:
            query = query.filter(Booking.property_id == property_id)

        query = query.filter(
            Booking.checkin_date < checkout,
            Booking.checkout_date > checkin,
        )

        if exclude_booking_id:
            query = query.filter(Booking.id != exclude_booking_id)

        conflicts = query.order_by(Booking.checkin_date).all()

        if conflicts:
            logger.info(
                f"Booking conflict on {'unit ' + unit_id if unit_id else 'property ' + property_id} "
                f"for {checkin} -> {checkout}: {[b.reference for b in conflicts]}"
            )

        return ConflictCheck(has_conflict=bool(conflicts), conflicts=conflicts)

    def is_available(
        self,
        property_id: str,
        unit_id: Optional[str],
        checkin: date,
        checkout: date,
        exclude_booking_id: Optional[str] = None
    ) -> bool:
        return not self.check_conflict(
            property_id, unit_id, checkin, checkout, exclude_booking_id
        ).has_conflict
