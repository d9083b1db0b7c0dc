from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from ..schemas.archive import ArchivedBookingList, PermanentDeleteResponse
from ..schemas.booking import BookingResponse
from ..schemas.guest import GuestResponse
from ..schemas.pagination import PaginatedResponse
from ..schemas.property import PropertyResponse
from ..services.archive_service import ArchiveService
from ..utils.dependencies import require_admin, require_staff

router = APIRouter(prefix="/api/archive", tags=["Archive"])


def get_archive_service(db: Session = Depends(get_db)) -> ArchiveService:
    return ArchiveService(db)


@router.get("/bookings", response_model=ArchivedBookingList)
async def list_archived_bookings(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: ArchiveService = Depends(get_archive_service),
    current_user: User = Depends(require_staff)
):
    items, total = service.list_archived_bookings(limit=limit, offset=offset)
    return ArchivedBookingList(
        items=[BookingResponse.model_validate(b) for b in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/bookings/{booking_id}", response_model=BookingResponse)
async def archive_booking(
    booking_id: str,
    service: ArchiveService = Depends(get_archive_service),
    current_user: User = Depends(require_admin)
):
    """Archive a booking whose checkout is old enough"""
    return service.archive_booking(booking_id, current_user)


@router.post("/bookings/{booking_id}/restore", response_model=BookingResponse)
async def restore_booking(
    booking_id: str,
    service: ArchiveService = Depends(get_archive_service),
    current_user: User = Depends(require_admin)
):
    return service.restore_booking(booking_id, current_user)


@router.get("/guests", response_model=PaginatedResponse[GuestResponse])
async def list_archived_guests(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: ArchiveService = Depends(get_archive_service),
    current_user: User = Depends(require_staff)
):
    items, total = service.list_archived_guests(limit=limit, offset=offset)
    return PaginatedResponse[GuestResponse](
        items=[GuestResponse.model_validate(g) for g in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/guests/{guest_id}", response_model=GuestResponse)
async def archive_guest(
    guest_id: str,
    service: ArchiveService = Depends(get_archive_service),
    current_user: User = Depends(require_admin)
):
    return service.archive_guest(guest_id, current_user)


@router.post("/guests/{guest_id}/restore", response_model=GuestResponse)
async def restore_guest(
    guest_id: str,
    service: ArchiveService = Depends(get_archive_service),
    current_user: User = Depends(require_admin)
):
    return service.restore_guest(guest_id, current_user)


@router.post("/properties/{property_id}", response_model=PropertyResponse)
async def archive_property(
    property_id: str,
    service: ArchiveService = Depends(get_archive_service),
    current_user: User = Depends(require_admin)
):
    """Deactivate a property that has no running or upcoming stays"""
    return service.archive_property(property_id, current_user)


@router.delete("/{table_name}/{record_id}", response_model=PermanentDeleteResponse)
async def permanently_delete(
    table_name: str,
    record_id: str,
    service: ArchiveService = Depends(get_archive_service),
    current_user: User = Depends(require_admin)
):
    return service.permanently_delete(table_name, record_id, current_user)
