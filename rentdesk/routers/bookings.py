from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from ..database import get_db
from ..models.booking import Booking, LifecycleState, PaymentStatus, BookingChannel
from ..models.user import User
from ..schemas.booking import (
    BookingCreate, BookingUpdate, BookingResponse, BookingDetailResponse,
    BookingEventResponse, BookingCreateResponse, AvailabilityResponse, CalendarEvent
)
from ..schemas.pagination import PaginatedResponse
from ..services.booking_lifecycle import BookingLifecycleManager
from ..services.conflict_detector import ConflictDetector
from ..errors import ValidationFailure
from ..utils.dependencies import get_current_user, get_emitter, require_admin, require_staff

router = APIRouter(prefix="/api/bookings", tags=["Bookings"])


def get_lifecycle(db: Session = Depends(get_db), emitter=Depends(get_emitter)) -> BookingLifecycleManager:
    return BookingLifecycleManager(db, emitter=emitter)


def to_booking_detail(booking: Booking) -> BookingDetailResponse:
    """Booking with the display names the front office shows next to it"""
    base = BookingResponse.model_validate(booking).model_dump()
    return BookingDetailResponse(
        **base,
        property_name=booking.property.name if booking.property else None,
        unit_code=booking.unit.unit_code if booking.unit else None,
        guest_name=booking.guest.full_name if booking.guest else None,
        events=[BookingEventResponse.model_validate(e) for e in booking.events],
    )


@router.get("", response_model=PaginatedResponse[BookingResponse])
@router.get("/", response_model=PaginatedResponse[BookingResponse])
async def list_bookings(
    property_id: Optional[str] = None,
    unit_id: Optional[str] = None,
    guest_id: Optional[str] = None,
    payment_status: Optional[PaymentStatus] = None,
    channel: Optional[BookingChannel] = None,
    lifecycle_state: Optional[LifecycleState] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = Query(None, max_length=100),
    include_archived: bool = False,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    lifecycle: BookingLifecycleManager = Depends(get_lifecycle),
    current_user: User = Depends(get_current_user)
):
    """Bookings, newest stays first. Archived bookings are hidden unless asked for."""
    items, total = lifecycle.list_bookings(
        property_id=property_id,
        unit_id=unit_id,
        guest_id=guest_id,
        payment_status=payment_status.value if payment_status else None,
        channel=channel.value if channel else None,
        lifecycle_state=lifecycle_state.value if lifecycle_state else None,
        start_date=start_date,
        end_date=end_date,
        search=search,
        include_archived=include_archived,
        limit=limit,
        offset=offset,
    )
    return PaginatedResponse[BookingResponse](
        items=[BookingResponse.model_validate(b) for b in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/check-availability", response_model=AvailabilityResponse)
async def check_availability(
    property_id: str,
    checkin_date: date,
    checkout_date: date,
    unit_id: Optional[str] = None,
    exclude_booking_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if checkout_date <= checkin_date:
        raise ValidationFailure("Checkout date must be after checkin date")

    check = ConflictDetector(db).check_conflict(
        property_id, unit_id, checkin_date, checkout_date, exclude_booking_id
    )
    return AvailabilityResponse(
        available=not check.has_conflict,
        conflicts=[BookingResponse.model_validate(b) for b in check.conflicts],
    )


@router.get("/calendar", response_model=List[CalendarEvent])
async def booking_calendar(
    start: date,
    end: date,
    property_id: Optional[str] = None,
    lifecycle: BookingLifecycleManager = Depends(get_lifecycle),
    current_user: User = Depends(get_current_user)
):
    bookings = lifecycle.calendar(start, end, property_id)
    return [
        CalendarEvent(
            id=b.id,
            title=f"{b.reference} - {b.guest.full_name}" if b.guest else b.reference,
            start=b.checkin_date,
            end=b.checkout_date,
            property_id=b.property_id,
            unit_id=b.unit_id,
            lifecycle_state=b.lifecycle_state,
            payment_status=b.payment_status,
        )
        for b in bookings
    ]


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking(
    booking_id: str,
    lifecycle: BookingLifecycleManager = Depends(get_lifecycle),
    current_user: User = Depends(get_current_user)
):
    return to_booking_detail(lifecycle.get(booking_id))


@router.post("", response_model=BookingCreateResponse, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=BookingCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    lifecycle: BookingLifecycleManager = Depends(get_lifecycle),
    current_user: User = Depends(require_staff)
):
    booking, cleaning_task = lifecycle.create(booking_data, current_user)
    return BookingCreateResponse(
        booking=BookingResponse.model_validate(booking),
        cleaning_task_id=cleaning_task.id if cleaning_task else None,
    )


@router.put("/{booking_id}", response_model=BookingResponse)
@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: str,
    booking_data: BookingUpdate,
    lifecycle: BookingLifecycleManager = Depends(get_lifecycle),
    current_user: User = Depends(require_staff)
):
    return lifecycle.update(booking_id, booking_data, current_user)


@router.delete("/{booking_id}")
async def delete_booking(
    booking_id: str,
    lifecycle: BookingLifecycleManager = Depends(get_lifecycle),
    current_user: User = Depends(require_admin)
):
    return lifecycle.delete(booking_id, current_user)


@router.post("/{booking_id}/check-in", response_model=BookingResponse)
async def check_in_booking(
    booking_id: str,
    lifecycle: BookingLifecycleManager = Depends(get_lifecycle),
    current_user: User = Depends(require_staff)
):
    return lifecycle.check_in(booking_id, current_user)


@router.post("/{booking_id}/check-out", response_model=BookingResponse)
async def check_out_booking(
    booking_id: str,
    lifecycle: BookingLifecycleManager = Depends(get_lifecycle),
    current_user: User = Depends(require_staff)
):
    return lifecycle.check_out(booking_id, current_user)
