from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ..database import get_db
from ..errors import ConflictError, NotFoundError
from ..models.audit_log import AuditAction
from ..models.property import Owner, Property, Unit, PropertyStatus
from ..models.user import User
from ..schemas.property import (
    OwnerCreate, OwnerResponse, PropertyCreate, PropertyUpdate, PropertyResponse,
    UnitCreate, UnitResponse
)
from ..services.audit_service import log_activity
from ..utils.dependencies import get_current_user, require_admin

router = APIRouter(prefix="/api/properties", tags=["Properties"])
owners_router = APIRouter(prefix="/api/owners", tags=["Owners"])


def _get_property(db: Session, property_id: str) -> Property:
    prop = db.query(Property).filter(Property.id == property_id).first()
    if not prop:
        raise NotFoundError("Property not found", {"property_id": property_id})
    return prop


def _check_owner(db: Session, owner_id: Optional[str]):
    if owner_id and not db.query(Owner).filter(Owner.id == owner_id).first():
        raise NotFoundError("Owner not found", {"owner_id": owner_id})


@router.get("", response_model=List[PropertyResponse])
@router.get("/", response_model=List[PropertyResponse])
async def list_properties(
    status_filter: Optional[PropertyStatus] = Query(None, alias="status"),
    owner_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(Property)
    if status_filter:
        query = query.filter(Property.status == status_filter.value)
    if owner_id:
        query = query.filter(Property.owner_id == owner_id)
    return query.order_by(Property.code).all()


@router.get("/{property_id}", response_model=PropertyResponse)
async def get_property(
    property_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return _get_property(db, property_id)


@router.post("", response_model=PropertyResponse, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=PropertyResponse, status_code=status.HTTP_201_CREATED)
async def create_property(
    property_data: PropertyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    if db.query(Property).filter(Property.code == property_data.code).first():
        raise ConflictError("Property code already in use", {"code": property_data.code})
    _check_owner(db, property_data.owner_id)

    prop = Property(**property_data.model_dump())
    db.add(prop)
    db.commit()
    db.refresh(prop)

    log_activity(db, current_user, AuditAction.CREATE, "properties", prop.id, {"code": prop.code})
    return prop


@router.patch("/{property_id}", response_model=PropertyResponse)
async def update_property(
    property_id: str,
    property_data: PropertyUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    prop = _get_property(db, property_id)
    changes = property_data.model_dump(exclude_unset=True)
    if "owner_id" in changes:
        _check_owner(db, changes["owner_id"])

    for key, value in changes.items():
        if key in ("name", "status") and value is None:
            continue
        setattr(prop, key, value.value if key == "status" else value)
    db.commit()
    db.refresh(prop)

    log_activity(db, current_user, AuditAction.UPDATE, "properties", prop.id, {"fields": sorted(changes)})
    return prop


@router.get("/{property_id}/units", response_model=List[UnitResponse])
async def list_units(
    property_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    prop = _get_property(db, property_id)
    return sorted(prop.units, key=lambda u: u.unit_code)


@router.post("/{property_id}/units", response_model=UnitResponse, status_code=status.HTTP_201_CREATED)
async def create_unit(
    property_id: str,
    unit_data: UnitCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    prop = _get_property(db, property_id)
    duplicate = db.query(Unit).filter(
        Unit.property_id == prop.id,
        Unit.unit_code == unit_data.unit_code
    ).first()
    if duplicate:
        raise ConflictError("Unit code already exists in this property", {"unit_code": unit_data.unit_code})

    unit = Unit(property_id=prop.id, **unit_data.model_dump())
    db.add(unit)
    db.commit()
    db.refresh(unit)

    log_activity(db, current_user, AuditAction.CREATE, "units", unit.id, {"unit_code": unit.unit_code})
    return unit


@owners_router.get("", response_model=List[OwnerResponse])
@owners_router.get("/", response_model=List[OwnerResponse])
async def list_owners(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    return db.query(Owner).order_by(Owner.name).all()


@owners_router.post("", response_model=OwnerResponse, status_code=status.HTTP_201_CREATED)
@owners_router.post("/", response_model=OwnerResponse, status_code=status.HTTP_201_CREATED)
async def create_owner(
    owner_data: OwnerCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    owner = Owner(**owner_data.model_dump())
    db.add(owner)
    db.commit()
    db.refresh(owner)

    log_activity(db, current_user, AuditAction.CREATE, "owners", owner.id, {"name": owner.name})
    return owner
