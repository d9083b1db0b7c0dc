from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Optional

from ..database import get_db
from ..errors import ConflictError, NotFoundError
from ..models.audit_log import AuditAction
from ..models.guest import Guest
from ..models.user import User
from ..schemas.guest import GuestCreate, GuestUpdate, GuestResponse
from ..schemas.pagination import PaginatedResponse
from ..services.audit_service import log_activity
from ..utils.dependencies import get_current_user, require_staff

router = APIRouter(prefix="/api/guests", tags=["Guests"])


def _get_guest(db: Session, guest_id: str) -> Guest:
    guest = db.query(Guest).filter(Guest.id == guest_id).first()
    if not guest:
        raise NotFoundError("Guest not found", {"guest_id": guest_id})
    return guest


def _ensure_email_free(db: Session, email: Optional[str], exclude_id: Optional[str] = None):
    if not email:
        return
    query = db.query(Guest).filter(Guest.email == email)
    if exclude_id:
        query = query.filter(Guest.id != exclude_id)
    if query.first():
        raise ConflictError("A guest with this email already exists", {"email": email})


@router.get("", response_model=PaginatedResponse[GuestResponse])
@router.get("/", response_model=PaginatedResponse[GuestResponse])
async def list_guests(
    search: Optional[str] = Query(None, max_length=100),
    is_blacklisted: Optional[bool] = None,
    include_archived: bool = False,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(Guest)
    if not include_archived:
        query = query.filter(Guest.archived_at.is_(None))
    if is_blacklisted is not None:
        query = query.filter(Guest.is_blacklisted == is_blacklisted)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Guest.first_name.ilike(pattern),
            Guest.last_name.ilike(pattern),
            Guest.email.ilike(pattern),
            Guest.phone.ilike(pattern),
        ))

    total = query.count()
    items = query.order_by(Guest.created_at.desc()).offset(offset).limit(limit).all()
    return PaginatedResponse[GuestResponse](
        items=[GuestResponse.model_validate(g) for g in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{guest_id}", response_model=GuestResponse)
async def get_guest(
    guest_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return _get_guest(db, guest_id)


@router.post("", response_model=GuestResponse, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=GuestResponse, status_code=status.HTTP_201_CREATED)
async def create_guest(
    guest_data: GuestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    email = guest_data.email.lower() if guest_data.email else None
    _ensure_email_free(db, email)

    guest = Guest(**guest_data.model_dump(exclude={"email"}), email=email)
    db.add(guest)
    db.commit()
    db.refresh(guest)

    log_activity(db, current_user, AuditAction.CREATE, "guests", guest.id, {"name": guest.full_name})
    return guest


@router.patch("/{guest_id}", response_model=GuestResponse)
async def update_guest(
    guest_id: str,
    guest_data: GuestUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    guest = _get_guest(db, guest_id)
    changes = guest_data.model_dump(exclude_unset=True)

    if changes.get("email"):
        changes["email"] = changes["email"].lower()
        _ensure_email_free(db, changes["email"], exclude_id=guest.id)
    for key in ("first_name", "last_name", "is_blacklisted"):
        if key in changes and changes[key] is None:
            changes.pop(key)
    if changes.get("is_blacklisted") is False:
        changes["blacklist_reason"] = None

    for key, value in changes.items():
        setattr(guest, key, value)
    db.commit()
    db.refresh(guest)

    log_activity(db, current_user, AuditAction.UPDATE, "guests", guest.id, {"fields": sorted(changes)})
    return guest
