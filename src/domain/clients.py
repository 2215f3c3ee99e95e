"""Client domain service."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from core.exceptions import NotFoundError
from core.logging_config import get_logger
from core.models import Activity, Client, ClientStatus, Deal, User
from core.types import Page
from domain.activities import ActivityLog
from domain.scoping import Principal, apply_scope, ensure_can_access, require_admin

LOGGER = get_logger(__name__)


class ClientService:
    """Service for client-related operations."""

    def __init__(self, session: Session, principal: Principal) -> None:
        """Initialize the client service with a database session and the caller."""
        self.session = session
        self.principal = principal
        self.activities = ActivityLog(session)

    def _load(self, client_id: str, *options: Any) -> Client:
        client = (
            self.session.query(Client)
            .options(*options)
            .filter(Client.id == client_id)
            .one_or_none()
        )
        if client is None:
            raise NotFoundError("Client", client_id)
        return client

    def _check_user(self, user_id: Optional[str]) -> None:
        if user_id and self.session.get(User, user_id) is None:
            raise NotFoundError("User", user_id)

    def list_clients(
        self,
        search: Optional[str] = None,
        status: Optional[str] = None,
        lead_source: Optional[str] = None,
        assigned_to: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page[Client]:
        """
        List clients visible to the caller, newest first.

        Args:
            search: Case-insensitive match on name or email, substring match on phone.
            status: Filter by client status.
            lead_source: Filter by lead source.
            assigned_to: Filter by agent; never widens an AGENT's scope.
            page: 1-based page number.
            limit: Page size.
        """
        query = apply_scope(self.session.query(Client), self.principal, Client)

        if search:
            needle = search.lower()
            query = query.filter(
                or_(
                    func.lower(Client.full_name).contains(needle, autoescape=True),
                    func.lower(Client.email).contains(needle, autoescape=True),
                    Client.phone.contains(search, autoescape=True),
                )
            )
        if status:
            query = query.filter(Client.status == status)
        if lead_source:
            query = query.filter(Client.lead_source == lead_source)
        if assigned_to:
            query = query.filter(Client.assigned_to == assigned_to)

        total = query.count()
        items = (
            query.options(
                selectinload(Client.agent),
                selectinload(Client.deals),
                selectinload(Client.tasks),
            )
            .order_by(Client.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return Page(items=items, total=total, page=page, limit=limit, with_total_pages=True)

    def get_client(self, client_id: str) -> Client:
        """Fetch one client with everything the detail view shows."""
        client = self._load(
            client_id,
            selectinload(Client.agent),
            selectinload(Client.deals).selectinload(Deal.property),
            selectinload(Client.deals).selectinload(Deal.agent),
            selectinload(Client.tasks),
            selectinload(Client.activities).selectinload(Activity.user),
            selectinload(Client.owned_properties),
        )
        ensure_can_access(self.principal, client)
        return client

    def create_client(self, data: Dict[str, Any]) -> Client:
        """Create a client assigned to `assigned_to` or the caller."""
        fields = dict(data)
        fields["assigned_to"] = fields.get("assigned_to") or self.principal.user_id
        fields["email"] = fields.get("email") or None
        fields.setdefault("status", ClientStatus.NEW.value)
        fields["tags"] = list(fields.get("tags") or [])
        self._check_user(fields["assigned_to"])

        client = Client(**fields)
        self.session.add(client)
        self.session.flush()

        self.activities.log_client_created(client, self.principal.user_id)
        LOGGER.info("Created client %s (%s)", client.id, client.status)
        return client

    def update_client(self, client_id: str, changes: Dict[str, Any]) -> Client:
        """Apply a partial update; a status change is written to the activity log."""
        client = self._load(client_id)
        ensure_can_access(self.principal, client)

        if "assigned_to" in changes:
            self._check_user(changes["assigned_to"])
        if "email" in changes:
            changes["email"] = changes["email"] or None
        if "tags" in changes:
            changes["tags"] = list(changes["tags"] or [])

        old_status = client.status
        for key, value in changes.items():
            setattr(client, key, value)
        self.session.flush()

        if changes.get("status") and changes["status"] != old_status:
            self.activities.log_client_status_change(client, old_status, self.principal.user_id)
            LOGGER.info("Client %s status %s -> %s", client.id, old_status, client.status)
        return client

    def delete_client(self, client_id: str) -> None:
        """Delete a client and its deals. ADMIN only; existence is checked first."""
        client = self._load(client_id)
        require_admin(self.principal, "Only admins can delete clients")
        self.session.delete(client)
        self.session.flush()
        LOGGER.info("Deleted client %s", client_id)

    def list_activities(self, client_id: str) -> List[Activity]:
        client = self._load(client_id)
        ensure_can_access(self.principal, client)
        return self.activities.for_client(client_id)

    def add_activity(
        self,
        client_id: str,
        activity_type: str,
        content: str,
        deal_id: Optional[str] = None,
    ) -> Activity:
        """Log a manual note/call/meeting/email against a client, attributed to the caller."""
        client = self._load(client_id)
        ensure_can_access(self.principal, client)
        if deal_id and self.session.get(Deal, deal_id) is None:
            raise NotFoundError("Deal", deal_id)
        return self.activities.add(
            activity_type,
            content,
            user_id=self.principal.user_id,
            client_id=client.id,
            deal_id=deal_id,
        )


__all__ = ["ClientService"]
