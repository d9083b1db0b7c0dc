from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from ..utils.sanitization import strip_dangerous_tags


class GuestBase(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    nationality: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator('first_name', 'last_name', 'notes', mode='before')
    @classmethod
    def sanitize_text_fields(cls, v):
        return strip_dangerous_tags(v)


class GuestCreate(GuestBase):
    pass


class GuestUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    nationality: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=2000)
    is_blacklisted: Optional[bool] = None
    blacklist_reason: Optional[str] = Field(None, max_length=500)

    @field_validator('first_name', 'last_name', 'notes', 'blacklist_reason', mode='before')
    @classmethod
    def sanitize_text_fields(cls, v):
        return strip_dangerous_tags(v)


class GuestResponse(GuestBase):
    id: str
    total_spend: Decimal = Decimal("0")
    is_blacklisted: bool = False
    blacklist_reason: Optional[str] = None
    is_archived: bool = False
    archived_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
