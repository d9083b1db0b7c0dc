from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ..database import get_db
from ..errors import BusinessRuleError, NotFoundError
from ..models.audit_log import AuditAction
from ..models.automation import Automation, AutomationJob, JobQueueName, JobStatus
from ..models.user import User
from ..schemas.automation import (
    AutomationCreate, AutomationUpdate, AutomationResponse,
    TriggerRequest, TriggerResponse, AutomationJobResponse
)
from ..schemas.pagination import PaginatedResponse
from ..services.audit_service import log_activity
from ..services.automation_service import AutomationDispatcher
from ..services.job_queue import JobProcessor, JobQueue
from ..utils.dependencies import require_admin

router = APIRouter(prefix="/api/automations", tags=["Automations"])


def _get_automation(db: Session, automation_id: str) -> Automation:
    automation = db.query(Automation).filter(Automation.id == automation_id).first()
    if not automation:
        raise NotFoundError("Automation not found", {"automation_id": automation_id})
    return automation


@router.get("", response_model=List[AutomationResponse])
@router.get("/", response_model=List[AutomationResponse])
async def list_automations(
    trigger: Optional[str] = None,
    enabled: Optional[bool] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    query = db.query(Automation)
    if trigger:
        query = query.filter(Automation.trigger == trigger)
    if enabled is not None:
        query = query.filter(Automation.enabled == enabled)
    return query.order_by(Automation.created_at).all()


@router.post("", response_model=AutomationResponse, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=AutomationResponse, status_code=status.HTTP_201_CREATED)
async def create_automation(
    automation_data: AutomationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    automation = Automation(
        name=automation_data.name,
        description=automation_data.description,
        trigger=automation_data.trigger,
        conditions=automation_data.conditions,
        actions=[a.model_dump(mode="json") for a in automation_data.actions],
        enabled=automation_data.enabled,
    )
    db.add(automation)
    db.commit()
    db.refresh(automation)

    log_activity(db, current_user, AuditAction.CREATE, "automations", automation.id, {
        "name": automation.name,
        "trigger": automation.trigger,
    })
    return automation


@router.get("/jobs", response_model=PaginatedResponse[AutomationJobResponse])
async def list_jobs(
    queue: Optional[JobQueueName] = None,
    status_filter: Optional[JobStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    query = db.query(AutomationJob)
    if queue:
        query = query.filter(AutomationJob.queue == queue.value)
    if status_filter:
        query = query.filter(AutomationJob.status == status_filter.value)

    total = query.count()
    items = query.order_by(AutomationJob.created_at.desc()).offset(offset).limit(limit).all()
    return PaginatedResponse[AutomationJobResponse](
        items=[AutomationJobResponse.model_validate(j) for j in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/jobs/{job_id}/retry", response_model=AutomationJobResponse)
async def retry_job(
    job_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    job = db.query(AutomationJob).filter(AutomationJob.id == job_id).first()
    if not job:
        raise NotFoundError("Job not found", {"job_id": job_id})
    if not JobProcessor(db).retry_failed_job(job_id):
        raise BusinessRuleError("Only failed jobs can be retried")
    db.refresh(job)
    return job


@router.post("/trigger", response_model=TriggerResponse)
async def trigger_automations(
    request_data: TriggerRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Fire a trigger by hand, e.g. to replay scheduled.daily"""
    result = AutomationDispatcher(db, JobQueue(db)).trigger(request_data.trigger, request_data.data)

    log_activity(db, current_user, AuditAction.TRIGGER, "automations", None, {
        "trigger": request_data.trigger,
        "triggered": result.triggered,
        "errors": len(result.errors),
    })
    return TriggerResponse(triggered=result.triggered, errors=result.errors)


@router.get("/{automation_id}", response_model=AutomationResponse)
async def get_automation(
    automation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    return _get_automation(db, automation_id)


@router.patch("/{automation_id}", response_model=AutomationResponse)
async def update_automation(
    automation_id: str,
    automation_data: AutomationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    automation = _get_automation(db, automation_id)
    changes = automation_data.model_dump(mode="json", exclude_unset=True)
    for key in ("name", "trigger", "actions", "enabled"):
        if key in changes and changes[key] is None:
            changes.pop(key)

    for key, value in changes.items():
        setattr(automation, key, value)
    db.commit()
    db.refresh(automation)

    log_activity(db, current_user, AuditAction.UPDATE, "automations", automation.id, {
        "fields": sorted(changes),
    })
    return automation


@router.delete("/{automation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_automation(
    automation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    automation = _get_automation(db, automation_id)
    db.delete(automation)
    db.commit()
    log_activity(db, current_user, AuditAction.DELETE, "automations", automation_id)
