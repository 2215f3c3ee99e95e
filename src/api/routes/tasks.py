"""Follow-up task routes."""
from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Dict, FrozenSet, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import Field
from sqlalchemy.orm import Session

from api.auth_deps import get_current_user
from api.deps import get_db
from api.schemas import CamelModel
from api.serializers import task_to_dict
from core.models import TaskPriority, TaskStatus
from domain.scoping import Principal
from domain.tasks import TaskService

router = APIRouter()


# =============================================================================
# Request Models
# =============================================================================


class TaskCreate(CamelModel):
    """Request body for creating a task."""

    title: str = Field(..., min_length=2)
    description: Optional[str] = None
    due_at: datetime
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    assigned_to: Optional[str] = None
    related_client_id: Optional[str] = None
    related_deal_id: Optional[str] = None
    related_property_id: Optional[str] = None
    reminder_at: Optional[datetime] = None


class TaskUpdate(CamelModel):
    """Partial update; every field optional."""

    nullable: ClassVar[FrozenSet[str]] = frozenset(
        {"description", "related_client_id", "related_deal_id", "related_property_id", "reminder_at"}
    )

    title: Optional[str] = Field(None, min_length=2)
    description: Optional[str] = None
    due_at: Optional[datetime] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    assigned_to: Optional[str] = None
    related_client_id: Optional[str] = None
    related_deal_id: Optional[str] = None
    related_property_id: Optional[str] = None
    reminder_at: Optional[datetime] = None


# =============================================================================
# Routes
# =============================================================================


@router.get("")
async def list_tasks(
    status_filter: Optional[TaskStatus] = Query(default=None, alias="status"),
    priority: Optional[TaskPriority] = Query(default=None),
    assigned_to: Optional[str] = Query(default=None, alias="assignedTo"),
    due: Optional[str] = Query(default=None, description="today, overdue or upcoming"),
    related_client_id: Optional[str] = Query(default=None, alias="relatedClientId"),
    related_deal_id: Optional[str] = Query(default=None, alias="relatedDealId"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """List tasks ordered by status (TODO, IN_PROGRESS, DONE) then due date."""
    result = TaskService(db, current_user).list_tasks(
        status=status_filter.value if status_filter else None,
        priority=priority.value if priority else None,
        assigned_to=assigned_to,
        due=due,
        related_client_id=related_client_id,
        related_deal_id=related_deal_id,
        page=page,
        limit=limit,
    )
    return result.envelope([task_to_dict(t) for t in result.items])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(
    body: TaskCreate,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return task_to_dict(TaskService(db, current_user).create_task(body.provided()))


@router.get("/{task_id}")
async def get_task(
    task_id: str,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return task_to_dict(TaskService(db, current_user).get_task(task_id))


@router.put("/{task_id}")
async def update_task(
    task_id: str,
    body: TaskUpdate,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return task_to_dict(TaskService(db, current_user).update_task(task_id, body.changes()))


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: str,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    """Delete a task. Agents may only delete their own."""
    TaskService(db, current_user).delete_task(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
