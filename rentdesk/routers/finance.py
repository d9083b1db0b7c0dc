from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date
from decimal import Decimal

from ..database import get_db
from ..errors import NotFoundError
from ..models.audit_log import AuditAction
from ..models.finance import FinanceRecord, FinanceType, FinanceStatus
from ..models.user import User
from ..schemas.finance import FinanceRecordCreate, FinanceRecordUpdate, FinanceRecordResponse, FinanceSummary
from ..schemas.pagination import PaginatedResponse
from ..services.audit_service import log_activity
from ..utils.dates import get_today
from ..utils.dependencies import require_admin, require_staff

router = APIRouter(prefix="/api/finance", tags=["Finance"])


def _get_record(db: Session, record_id: str) -> FinanceRecord:
    record = db.query(FinanceRecord).filter(FinanceRecord.id == record_id).first()
    if not record:
        raise NotFoundError("Finance record not found", {"record_id": record_id})
    return record


def _filtered(query, property_id: Optional[str], start_date: Optional[date], end_date: Optional[date]):
    if property_id:
        query = query.filter(FinanceRecord.property_id == property_id)
    if start_date:
        query = query.filter(FinanceRecord.date >= start_date)
    if end_date:
        query = query.filter(FinanceRecord.date <= end_date)
    return query


@router.get("", response_model=PaginatedResponse[FinanceRecordResponse])
@router.get("/", response_model=PaginatedResponse[FinanceRecordResponse])
async def list_finance_records(
    type: Optional[FinanceType] = None,
    status_filter: Optional[FinanceStatus] = Query(None, alias="status"),
    property_id: Optional[str] = None,
    booking_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    query = _filtered(db.query(FinanceRecord), property_id, start_date, end_date)
    if type:
        query = query.filter(FinanceRecord.type == type.value)
    if status_filter:
        query = query.filter(FinanceRecord.status == status_filter.value)
    if booking_id:
        query = query.filter(FinanceRecord.booking_id == booking_id)

    total = query.count()
    items = query.order_by(FinanceRecord.date.desc()).offset(offset).limit(limit).all()
    return PaginatedResponse[FinanceRecordResponse](
        items=[FinanceRecordResponse.model_validate(r) for r in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/summary", response_model=FinanceSummary)
async def finance_summary(
    property_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """Revenue, expense and net over a window"""
    query = _filtered(
        db.query(FinanceRecord.type, func.coalesce(func.sum(FinanceRecord.amount), 0)),
        property_id, start_date, end_date,
    )
    totals = {row[0]: Decimal(str(row[1])) for row in query.group_by(FinanceRecord.type).all()}

    revenue = totals.get(FinanceType.REVENUE.value, Decimal("0"))
    expense = totals.get(FinanceType.EXPENSE.value, Decimal("0"))
    return FinanceSummary(
        revenue=revenue,
        expense=expense,
        net=revenue - expense,
        start_date=start_date,
        end_date=end_date,
        property_id=property_id,
    )


@router.get("/{record_id}", response_model=FinanceRecordResponse)
async def get_finance_record(
    record_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    return _get_record(db, record_id)


@router.post("", response_model=FinanceRecordResponse, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=FinanceRecordResponse, status_code=status.HTTP_201_CREATED)
async def create_finance_record(
    record_data: FinanceRecordCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    values = record_data.model_dump()
    values["type"] = record_data.type.value
    values["status"] = record_data.status.value
    values["date"] = record_data.date or get_today()

    record = FinanceRecord(**values, created_by_id=current_user.id)
    db.add(record)
    db.commit()
    db.refresh(record)

    log_activity(db, current_user, AuditAction.CREATE, "finance_records", record.id, {
        "type": record.type,
        "amount": record.amount,
    })
    return record


@router.patch("/{record_id}", response_model=FinanceRecordResponse)
async def update_finance_record(
    record_id: str,
    record_data: FinanceRecordUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    record = _get_record(db, record_id)
    changes = record_data.model_dump(exclude_unset=True, exclude_none=True)
    for key, value in changes.items():
        setattr(record, key, value.value if key == "status" else value)
    db.commit()
    db.refresh(record)

    log_activity(db, current_user, AuditAction.UPDATE, "finance_records", record.id, changes)
    return record


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_finance_record(
    record_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    record = _get_record(db, record_id)
    db.delete(record)
    db.commit()
    log_activity(db, current_user, AuditAction.DELETE, "finance_records", record_id)
