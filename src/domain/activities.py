"""Activity log for clients and deals.

Entries are append-only: nothing in the application updates or deletes them.
"""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from core.logging_config import get_logger
from core.models import Activity, ActivityType, Client, Deal, Task
from domain.scoping import Principal

LOGGER = get_logger(__name__)


class ActivityLog:
    """Service for appending and reading activity entries."""

    def __init__(self, session: Session):
        """Initialize the activity log."""
        self.session = session

    def add(
        self,
        activity_type: str,
        content: str,
        user_id: Optional[str] = None,
        client_id: Optional[str] = None,
        deal_id: Optional[str] = None,
    ) -> Activity:
        """
        Append an activity entry.

        Args:
            activity_type: One of the ActivityType values.
            content: Human-readable description.
            user_id: Author of the entry.
            client_id: Client the entry belongs to.
            deal_id: Deal the entry belongs to.

        Returns:
            The created Activity.
        """
        activity = Activity(
            type=ActivityType(activity_type).value,
            content=content,
            user_id=user_id,
            client_id=client_id,
            deal_id=deal_id,
        )
        self.session.add(activity)
        self.session.flush()

        LOGGER.debug("Added activity %s for client=%s deal=%s", activity.type, client_id, deal_id)
        return activity

    def for_client(self, client_id: str, limit: Optional[int] = None) -> List[Activity]:
        """Activities of a client, newest first."""
        query = (
            self.session.query(Activity)
            .options(selectinload(Activity.user))
            .filter(Activity.client_id == client_id)
            .order_by(Activity.created_at.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def recent(self, principal: Principal, limit: int = 8) -> List[Activity]:
        """Newest activities overall; an AGENT only sees the ones they authored."""
        query = self.session.query(Activity).options(
            selectinload(Activity.user),
            selectinload(Activity.client),
        )
        if not principal.is_admin:
            query = query.filter(Activity.user_id == principal.user_id)
        return query.order_by(Activity.created_at.desc()).limit(limit).all()

    # ------------------------------------------------------------------
    # Typed helpers
    # ------------------------------------------------------------------

    def log_client_created(self, client: Client, user_id: str) -> Activity:
        return self.add(
            ActivityType.STATUS_CHANGE.value,
            f"Client created with status: {client.status}",
            user_id=user_id,
            client_id=client.id,
        )

    def log_client_status_change(self, client: Client, old_status: str, user_id: str) -> Activity:
        return self.add(
            ActivityType.STATUS_CHANGE.value,
            f"Status changed from {old_status} to {client.status}",
            user_id=user_id,
            client_id=client.id,
        )

    def log_deal_created(self, deal: Deal, user_id: str) -> Activity:
        return self.add(
            ActivityType.DEAL_CREATED.value,
            f"Deal created at stage: {deal.stage}",
            user_id=user_id,
            client_id=deal.client_id,
            deal_id=deal.id,
        )

    def log_stage_change(
        self,
        deal: Deal,
        old_stage: str,
        new_stage: str,
        user_id: str,
        reason: Optional[str] = None,
    ) -> Activity:
        """Log a pipeline move, e.g. `Deal stage changed: VIEWING → CONTRACT`."""
        content = f"Deal stage changed: {old_stage} → {new_stage}"
        if reason:
            content += f". Reason: {reason}"
        return self.add(
            ActivityType.STAGE_CHANGE.value,
            content,
            user_id=user_id,
            client_id=deal.client_id,
            deal_id=deal.id,
        )

    def log_task_created(self, task: Task, user_id: str) -> Activity:
        return self.add(
            ActivityType.TASK_CREATED.value,
            f'Task created: "{task.title}"',
            user_id=user_id,
            client_id=task.related_client_id,
            deal_id=task.related_deal_id,
        )


__all__ = ["ActivityLog"]
