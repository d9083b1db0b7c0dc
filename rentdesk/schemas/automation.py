from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from ..models.automation import ActionType


class AutomationAction(BaseModel):
    type: ActionType
    params: Dict[str, Any] = Field(default_factory=dict)


class AutomationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    trigger: str = Field(..., min_length=1, max_length=100, description="e.g. booking.created, scheduled.daily")
    conditions: Optional[Dict[str, Any]] = None
    actions: List[AutomationAction] = Field(..., min_length=1)
    enabled: bool = True


class AutomationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    trigger: Optional[str] = Field(None, min_length=1, max_length=100)
    conditions: Optional[Dict[str, Any]] = None
    actions: Optional[List[AutomationAction]] = None
    enabled: Optional[bool] = None


class AutomationResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    trigger: str
    conditions: Optional[Dict[str, Any]] = None
    actions: List[Dict[str, Any]]
    enabled: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TriggerRequest(BaseModel):
    trigger: str = Field(..., min_length=1, max_length=100)
    data: Dict[str, Any] = Field(default_factory=dict)


class TriggerResponse(BaseModel):
    triggered: int
    errors: List[str] = []


class AutomationJobResponse(BaseModel):
    id: str
    queue: str
    job_type: str
    payload: Dict[str, Any]
    status: str
    attempts: int
    last_error: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
