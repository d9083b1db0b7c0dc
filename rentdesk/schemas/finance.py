from pydantic import BaseModel, Field
from typing import Optional
from datetime import date as date_type, datetime
from decimal import Decimal

from ..models.finance import FinanceType, FinanceStatus


class FinanceRecordCreate(BaseModel):
    type: FinanceType
    category: str = Field(..., min_length=1, max_length=50)
    amount: Decimal = Field(..., ge=0)
    date: Optional[date_type] = None
    status: FinanceStatus = FinanceStatus.PENDING
    payment_method: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    property_id: Optional[str] = None
    booking_id: Optional[str] = None
    guest_id: Optional[str] = None


class FinanceRecordUpdate(BaseModel):
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    amount: Optional[Decimal] = Field(None, ge=0)
    date: Optional[date_type] = None
    status: Optional[FinanceStatus] = None
    payment_method: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None


class FinanceRecordResponse(BaseModel):
    id: str
    type: FinanceType
    category: str
    amount: Decimal
    date: date_type
    status: FinanceStatus
    payment_method: Optional[str] = None
    description: Optional[str] = None
    property_id: Optional[str] = None
    booking_id: Optional[str] = None
    guest_id: Optional[str] = None
    cleaning_task_id: Optional[str] = None
    maintenance_task_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class FinanceSummary(BaseModel):
    revenue: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    net: Decimal = Decimal("0")
    start_date: Optional[date_type] = None
    end_date: Optional[date_type] = None
    property_id: Optional[str] = None
