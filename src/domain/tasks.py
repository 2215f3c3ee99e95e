"""Task domain service."""
from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy import case
from sqlalchemy.orm import Session, selectinload

from core.exceptions import NotFoundError, ValidationError
from core.logging_config import get_logger
from core.models import Client, Deal, Property, Task, TaskStatus, User
from core.types import Page
from core.utils import start_of_day, utcnow
from domain.activities import ActivityLog
from domain.scoping import Principal, apply_scope, ensure_can_access

LOGGER = get_logger(__name__)

DUE_WINDOWS = ("today", "overdue", "upcoming")

# Workflow order rather than alphabetical: TODO, IN_PROGRESS, DONE
_STATUS_ORDER = case(
    (Task.status == TaskStatus.TODO.value, 0),
    (Task.status == TaskStatus.IN_PROGRESS.value, 1),
    else_=2,
)

# References checked before a task is written
_RELATED = {
    "assigned_to": ("User", User),
    "related_client_id": ("Client", Client),
    "related_deal_id": ("Deal", Deal),
    "related_property_id": ("Property", Property),
}


def due_window_filter(due: str):
    """
    SQL predicate for a named due-date window.

    today: due within the current UTC day. overdue: due before now and not
    DONE. upcoming: due from start of today through start of today + 2 days,
    not DONE.
    """
    now = utcnow()
    today = start_of_day(now)
    if due == "today":
        return (Task.due_at >= today) & (Task.due_at < today + timedelta(days=1))
    if due == "overdue":
        return (Task.due_at < now) & (Task.status != TaskStatus.DONE.value)
    if due == "upcoming":
        return (
            (Task.due_at >= today)
            & (Task.due_at <= today + timedelta(days=2))
            & (Task.status != TaskStatus.DONE.value)
        )
    raise ValidationError(
        "Invalid due filter",
        errors=[{"field": "due", "message": f"must be one of {', '.join(DUE_WINDOWS)}"}],
    )


class TaskService:
    """Service for follow-up tasks."""

    def __init__(self, session: Session, principal: Principal) -> None:
        self.session = session
        self.principal = principal
        self.activities = ActivityLog(session)

    def _load(self, task_id: str, *options: Any) -> Task:
        task = (
            self.session.query(Task)
            .options(*options)
            .filter(Task.id == task_id)
            .one_or_none()
        )
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    def _check_references(self, fields: Dict[str, Any]) -> None:
        for key, (label, model) in _RELATED.items():
            value = fields.get(key)
            if value and self.session.get(model, value) is None:
                raise NotFoundError(label, value)

    def list_tasks(
        self,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to: Optional[str] = None,
        due: Optional[str] = None,
        related_client_id: Optional[str] = None,
        related_deal_id: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Page[Task]:
        """List tasks visible to the caller, ordered by status then due date."""
        query = apply_scope(self.session.query(Task), self.principal, Task)

        if status:
            query = query.filter(Task.status == status)
        if priority:
            query = query.filter(Task.priority == priority)
        if assigned_to:
            query = query.filter(Task.assigned_to == assigned_to)
        if related_client_id:
            query = query.filter(Task.related_client_id == related_client_id)
        if related_deal_id:
            query = query.filter(Task.related_deal_id == related_deal_id)
        if due:
            query = query.filter(due_window_filter(due))

        total = query.count()
        items = (
            query.options(
                selectinload(Task.agent),
                selectinload(Task.related_client),
                selectinload(Task.related_deal).selectinload(Deal.client),
                selectinload(Task.related_property),
            )
            .order_by(_STATUS_ORDER, Task.due_at.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return Page(items=items, total=total, page=page, limit=limit)

    def get_task(self, task_id: str) -> Task:
        task = self._load(task_id)
        ensure_can_access(self.principal, task)
        return task

    def create_task(self, data: Dict[str, Any]) -> Task:
        """
        Create a task assigned to `assigned_to` or the caller.

        A TASK_CREATED activity is logged when the task is linked to a
        client or a deal.
        """
        fields = dict(data)
        fields["assigned_to"] = fields.get("assigned_to") or self.principal.user_id
        self._check_references(fields)

        task = Task(**fields)
        self.session.add(task)
        self.session.flush()

        if task.related_client_id or task.related_deal_id:
            self.activities.log_task_created(task, self.principal.user_id)

        LOGGER.info("Created task %s due %s", task.id, task.due_at)
        return task

    def update_task(self, task_id: str, changes: Dict[str, Any]) -> Task:
        task = self._load(task_id)
        ensure_can_access(self.principal, task)
        self._check_references(changes)

        for key, value in changes.items():
            setattr(task, key, value)
        self.session.flush()
        return task

    def delete_task(self, task_id: str) -> None:
        task = self._load(task_id)
        ensure_can_access(self.principal, task)
        self.session.delete(task)
        self.session.flush()
        LOGGER.info("Deleted task %s", task_id)


__all__ = ["TaskService", "due_window_filter", "DUE_WINDOWS"]
