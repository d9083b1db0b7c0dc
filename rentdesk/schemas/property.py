from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

from ..models.property import PropertyStatus


class OwnerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)


class OwnerResponse(OwnerCreate):
    id: str
    created_at: datetime

    class Config:
        from_attributes = True


class PropertyCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    address: Optional[str] = None
    owner_id: Optional[str] = None


class PropertyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = None
    owner_id: Optional[str] = None
    status: Optional[PropertyStatus] = None


class PropertyResponse(BaseModel):
    id: str
    code: str
    name: str
    address: Optional[str] = None
    owner_id: Optional[str] = None
    status: PropertyStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UnitCreate(BaseModel):
    unit_code: str = Field(..., min_length=1, max_length=50)
    bedrooms: int = Field(1, ge=0)
    max_guests: int = Field(2, ge=1)


class UnitResponse(BaseModel):
    id: str
    property_id: str
    unit_code: str
    bedrooms: int
    max_guests: int

    class Config:
        from_attributes = True
