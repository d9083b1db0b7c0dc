"""
Cleaning and maintenance task schemas
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Any
from datetime import date, datetime
from decimal import Decimal

from ..models.task import CleaningStatus, MaintenanceStatus, MaintenancePriority, MaintenanceType
from ..utils.sanitization import strip_dangerous_tags


class CleaningTaskCreate(BaseModel):
    property_id: str
    unit_id: Optional[str] = None
    booking_id: Optional[str] = None
    scheduled_date: date
    cleaner_id: Optional[str] = None
    checklist: List[Any] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator('notes', mode='before')
    @classmethod
    def sanitize_text_fields(cls, v):
        return strip_dangerous_tags(v)


class CleaningTaskUpdate(BaseModel):
    scheduled_date: Optional[date] = None
    status: Optional[CleaningStatus] = None
    cleaner_id: Optional[str] = None
    checklist: Optional[List[Any]] = None
    before_photos: Optional[List[str]] = None
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator('notes', mode='before')
    @classmethod
    def sanitize_text_fields(cls, v):
        return strip_dangerous_tags(v)


class CleaningTaskComplete(BaseModel):
    """Mark a cleaning done, optionally with photos and the amount spent"""
    after_photos: List[str] = Field(default_factory=list)
    cost: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=2000)


class CleaningTaskResponse(BaseModel):
    id: str
    cleaning_id: str
    property_id: str
    unit_id: Optional[str] = None
    booking_id: Optional[str] = None
    scheduled_date: date
    status: CleaningStatus
    cleaner_id: Optional[str] = None
    checklist: Optional[List[Any]] = None
    before_photos: Optional[List[str]] = None
    after_photos: Optional[List[str]] = None
    cost: Optional[Decimal] = None
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MaintenanceTaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    property_id: str
    unit_id: Optional[str] = None
    booking_id: Optional[str] = None
    type: MaintenanceType = MaintenanceType.OTHER
    priority: MaintenancePriority = MaintenancePriority.MEDIUM
    assigned_to_id: Optional[str] = None

    @field_validator('title', 'description', mode='before')
    @classmethod
    def sanitize_text_fields(cls, v):
        return strip_dangerous_tags(v)


class MaintenanceTaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    type: Optional[MaintenanceType] = None
    priority: Optional[MaintenancePriority] = None
    status: Optional[MaintenanceStatus] = None
    assigned_to_id: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=2000)


class MaintenanceTaskResolve(BaseModel):
    photos: List[str] = Field(default_factory=list)
    invoice_file: Optional[str] = Field(None, max_length=500)
    cost: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=2000)


class MaintenanceTaskResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    property_id: str
    unit_id: Optional[str] = None
    booking_id: Optional[str] = None
    type: MaintenanceType
    priority: MaintenancePriority
    status: MaintenanceStatus
    assigned_to_id: Optional[str] = None
    photos: Optional[List[str]] = None
    invoice_file: Optional[str] = None
    cost: Optional[Decimal] = None
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
