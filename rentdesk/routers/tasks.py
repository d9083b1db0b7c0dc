from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from ..database import get_db
from ..models.task import CleaningStatus, MaintenanceStatus, MaintenancePriority
from ..models.user import User
from ..schemas.pagination import PaginatedResponse
from ..schemas.task import (
    CleaningTaskCreate, CleaningTaskUpdate, CleaningTaskComplete, CleaningTaskResponse,
    MaintenanceTaskCreate, MaintenanceTaskUpdate, MaintenanceTaskResolve, MaintenanceTaskResponse
)
from ..services.task_service import TaskService
from ..utils.dependencies import get_current_user, require_admin, require_staff

cleaning_router = APIRouter(prefix="/api/cleaning", tags=["Cleaning"])
maintenance_router = APIRouter(prefix="/api/maintenance", tags=["Maintenance"])


def get_task_service(db: Session = Depends(get_db)) -> TaskService:
    return TaskService(db)


# ==================
# Cleaning
# ==================

@cleaning_router.get("", response_model=PaginatedResponse[CleaningTaskResponse])
@cleaning_router.get("/", response_model=PaginatedResponse[CleaningTaskResponse])
async def list_cleaning_tasks(
    property_id: Optional[str] = None,
    status_filter: Optional[CleaningStatus] = Query(None, alias="status"),
    cleaner_id: Optional[str] = None,
    scheduled_date: Optional[date] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: TaskService = Depends(get_task_service),
    current_user: User = Depends(get_current_user)
):
    items, total = service.list_cleaning(
        property_id=property_id,
        status=status_filter.value if status_filter else None,
        cleaner_id=cleaner_id,
        scheduled_date=scheduled_date,
        limit=limit,
        offset=offset,
    )
    return PaginatedResponse[CleaningTaskResponse](
        items=[CleaningTaskResponse.model_validate(t) for t in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@cleaning_router.get("/{task_id}", response_model=CleaningTaskResponse)
async def get_cleaning_task(
    task_id: str,
    service: TaskService = Depends(get_task_service),
    current_user: User = Depends(get_current_user)
):
    return service.get_cleaning(task_id)


@cleaning_router.post("", response_model=CleaningTaskResponse, status_code=status.HTTP_201_CREATED)
@cleaning_router.post("/", response_model=CleaningTaskResponse, status_code=status.HTTP_201_CREATED)
async def create_cleaning_task(
    task_data: CleaningTaskCreate,
    service: TaskService = Depends(get_task_service),
    current_user: User = Depends(require_staff)
):
    return service.create_cleaning(task_data, current_user)


@cleaning_router.patch("/{task_id}", response_model=CleaningTaskResponse)
async def update_cleaning_task(
    task_id: str,
    task_data: CleaningTaskUpdate,
    service: TaskService = Depends(get_task_service),
    current_user: User = Depends(require_staff)
):
    return service.update_cleaning(task_id, task_data, current_user)


@cleaning_router.post("/{task_id}/complete", response_model=CleaningTaskResponse)
async def complete_cleaning_task(
    task_id: str,
    completion: CleaningTaskComplete,
    service: TaskService = Depends(get_task_service),
    current_user: User = Depends(get_current_user)
):
    """Assigned cleaner, admin or assistant marks the cleaning done"""
    return service.complete_cleaning(task_id, completion, current_user)


@cleaning_router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_cleaning_task(
    task_id: str,
    service: TaskService = Depends(get_task_service),
    current_user: User = Depends(require_admin)
):
    service.delete_cleaning(task_id, current_user)


# ==================
# Maintenance
# ==================

@maintenance_router.get("", response_model=PaginatedResponse[MaintenanceTaskResponse])
@maintenance_router.get("/", response_model=PaginatedResponse[MaintenanceTaskResponse])
async def list_maintenance_tasks(
    property_id: Optional[str] = None,
    status_filter: Optional[MaintenanceStatus] = Query(None, alias="status"),
    priority: Optional[MaintenancePriority] = None,
    assigned_to_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: TaskService = Depends(get_task_service),
    current_user: User = Depends(get_current_user)
):
    items, total = service.list_maintenance(
        property_id=property_id,
        status=status_filter.value if status_filter else None,
        priority=priority.value if priority else None,
        assigned_to_id=assigned_to_id,
        limit=limit,
        offset=offset,
    )
    return PaginatedResponse[MaintenanceTaskResponse](
        items=[MaintenanceTaskResponse.model_validate(t) for t in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@maintenance_router.get("/{task_id}", response_model=MaintenanceTaskResponse)
async def get_maintenance_task(
    task_id: str,
    service: TaskService = Depends(get_task_service),
    current_user: User = Depends(get_current_user)
):
    return service.get_maintenance(task_id)


@maintenance_router.post("", response_model=MaintenanceTaskResponse, status_code=status.HTTP_201_CREATED)
@maintenance_router.post("/", response_model=MaintenanceTaskResponse, status_code=status.HTTP_201_CREATED)
async def create_maintenance_task(
    task_data: MaintenanceTaskCreate,
    service: TaskService = Depends(get_task_service),
    current_user: User = Depends(require_staff)
):
    return service.create_maintenance(task_data, current_user)


@maintenance_router.patch("/{task_id}", response_model=MaintenanceTaskResponse)
async def update_maintenance_task(
    task_id: str,
    task_data: MaintenanceTaskUpdate,
    service: TaskService = Depends(get_task_service),
    current_user: User = Depends(require_staff)
):
    return service.update_maintenance(task_id, task_data, current_user)


@maintenance_router.post("/{task_id}/resolve", response_model=MaintenanceTaskResponse)
async def resolve_maintenance_task(
    task_id: str,
    resolution: MaintenanceTaskResolve,
    service: TaskService = Depends(get_task_service),
    current_user: User = Depends(get_current_user)
):
    return service.resolve_maintenance(task_id, resolution, current_user)


@maintenance_router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_maintenance_task(
    task_id: str,
    service: TaskService = Depends(get_task_service),
    current_user: User = Depends(require_admin)
):
    service.delete_maintenance(task_id, current_user)
