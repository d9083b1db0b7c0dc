from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime, date
from decimal import Decimal

from ..models.booking import BookingChannel, PaymentStatus, LifecycleState
from ..utils.sanitization import strip_dangerous_tags


class BookingCreate(BaseModel):
    property_id: str = Field(..., min_length=1, max_length=36)
    unit_id: Optional[str] = Field(None, max_length=36)
    guest_id: str = Field(..., min_length=1, max_length=36)
    channel: BookingChannel = BookingChannel.DIRECT
    checkin_date: date
    checkout_date: date
    total_amount: Decimal = Field(Decimal("0"), ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_status: PaymentStatus = PaymentStatus.PENDING
    deposit_amount: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=2000)
    booking_documents: List[str] = Field(default_factory=list)
    create_cleaning_task: bool = Field(False, description="Schedule a cleaning on the checkout date")

    @field_validator('notes', mode='before')
    @classmethod
    def sanitize_text_fields(cls, v):
        return strip_dangerous_tags(v)

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v):
        return v.upper() if v else v


class BookingUpdate(BaseModel):
    unit_id: Optional[str] = Field(None, max_length=36)
    guest_id: Optional[str] = Field(None, max_length=36)
    channel: Optional[BookingChannel] = None
    checkin_date: Optional[date] = None
    checkout_date: Optional[date] = None
    total_amount: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_status: Optional[PaymentStatus] = None
    deposit_amount: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=2000)
    booking_documents: Optional[List[str]] = None

    @field_validator('notes', mode='before')
    @classmethod
    def sanitize_text_fields(cls, v):
        return strip_dangerous_tags(v)

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v):
        return v.upper() if v else v


class BookingResponse(BaseModel):
    id: str
    reference: str
    property_id: str
    unit_id: Optional[str] = None
    guest_id: Optional[str] = None
    channel: BookingChannel
    checkin_date: date
    checkout_date: date
    nights: int
    total_amount: Decimal
    currency: str
    payment_status: PaymentStatus
    deposit_amount: Optional[Decimal] = None
    notes: Optional[str] = None
    booking_documents: List[str] = []
    lifecycle_state: LifecycleState
    is_archived: bool = False
    archived_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BookingEventResponse(BaseModel):
    id: str
    event_type: str
    actor_email: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    occurred_at: datetime

    class Config:
        from_attributes = True


class BookingDetailResponse(BookingResponse):
    property_name: Optional[str] = None
    unit_code: Optional[str] = None
    guest_name: Optional[str] = None
    events: List[BookingEventResponse] = []


class BookingCreateResponse(BaseModel):
    booking: BookingResponse
    cleaning_task_id: Optional[str] = None


class AvailabilityResponse(BaseModel):
    available: bool
    conflicts: List[BookingResponse] = []


class CalendarEvent(BaseModel):
    """One booking laid out on the calendar"""
    id: str
    title: str
    start: date
    end: date
    property_id: str
    unit_id: Optional[str] = None
    lifecycle_state: LifecycleState
    payment_status: PaymentStatus
