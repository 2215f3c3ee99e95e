"""Deal pipeline service.

Stages form an ordered label set (NEW_LEAD, NEGOTIATION, VIEWING, CONTRACT,
CLOSED) with no enforced transitions: deals may move backwards, skip stages
or leave CLOSED.

There are two ways to change a deal's stage:

* `transition_stage` is the pipeline move. It records a STAGE_CHANGE
  activity and, when the target is CLOSED, marks the client CONVERTED.
* `update_deal` is a plain field edit. It writes whatever it is given,
  stage included, without logging and without touching the client.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from core.exceptions import NotFoundError
from core.logging_config import get_context_logger, get_logger
from core.models import (
    STAGES,
    Activity,
    Client,
    ClientStatus,
    Deal,
    DealStage,
    Property,
    User,
)
from core.types import Page
from domain.activities import ActivityLog
from domain.scoping import Principal, apply_scope, ensure_can_access, require_admin

LOGGER = get_logger(__name__)

# Relationships every deal response embeds
_DEAL_INCLUDES = (
    selectinload(Deal.client),
    selectinload(Deal.property).selectinload(Property.photos),
    selectinload(Deal.agent),
)


class DealService:
    """Service for deals and their movement through the pipeline."""

    def __init__(self, session: Session, principal: Principal) -> None:
        self.session = session
        self.principal = principal
        self.activities = ActivityLog(session)

    def _load(self, deal_id: str, *options: Any) -> Deal:
        deal = (
            self.session.query(Deal)
            .options(*options)
            .filter(Deal.id == deal_id)
            .one_or_none()
        )
        if deal is None:
            raise NotFoundError("Deal", deal_id)
        return deal

    def _filtered(
        self,
        stage: Optional[str] = None,
        assigned_to: Optional[str] = None,
        client_id: Optional[str] = None,
    ):
        query = apply_scope(self.session.query(Deal), self.principal, Deal)
        if stage:
            query = query.filter(Deal.stage == stage)
        if assigned_to:
            query = query.filter(Deal.assigned_to == assigned_to)
        if client_id:
            query = query.filter(Deal.client_id == client_id)
        return query

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_deals(
        self,
        stage: Optional[str] = None,
        assigned_to: Optional[str] = None,
        client_id: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Page[Deal]:
        """List deals visible to the caller, most recently updated first."""
        query = self._filtered(stage, assigned_to, client_id)
        total = query.count()
        items = (
            query.options(*_DEAL_INCLUDES)
            .order_by(Deal.updated_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return Page(items=items, total=total, page=page, limit=limit)

    def board(
        self,
        assigned_to: Optional[str] = None,
        client_id: Optional[str] = None,
    ) -> Dict[str, List[Deal]]:
        """
        Deals grouped by stage for the kanban board.

        Every stage key is present; each column is in creation order.
        """
        deals = (
            self._filtered(None, assigned_to, client_id)
            .options(*_DEAL_INCLUDES)
            .order_by(Deal.created_at.asc())
            .all()
        )
        columns: Dict[str, List[Deal]] = {stage: [] for stage in STAGES}
        for deal in deals:
            columns[deal.stage].append(deal)
        return columns

    def get_deal(self, deal_id: str) -> Deal:
        deal = self._load(
            deal_id,
            *_DEAL_INCLUDES,
            selectinload(Deal.tasks),
            selectinload(Deal.activities).selectinload(Activity.user),
        )
        ensure_can_access(self.principal, deal)
        return deal

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_deal(self, data: Dict[str, Any]) -> Deal:
        """
        Create a deal for an existing client.

        Logs DEAL_CREATED and promotes a NEW client to ACTIVE. Any other
        client status is left alone.
        """
        client = self.session.get(Client, data["client_id"])
        if client is None:
            raise NotFoundError("Client", data["client_id"])
        if data.get("property_id") and self.session.get(Property, data["property_id"]) is None:
            raise NotFoundError("Property", data["property_id"])

        fields = dict(data)
        fields["assigned_to"] = fields.get("assigned_to") or self.principal.user_id
        fields.setdefault("stage", DealStage.NEW_LEAD.value)
        if self.session.get(User, fields["assigned_to"]) is None:
            raise NotFoundError("User", fields["assigned_to"])

        deal = Deal(**fields)
        self.session.add(deal)
        self.session.flush()

        self.activities.log_deal_created(deal, self.principal.user_id)
        if client.status == ClientStatus.NEW.value:
            client.status = ClientStatus.ACTIVE.value
            self.session.flush()

        LOGGER.info("Created deal %s for client %s at %s", deal.id, client.id, deal.stage)
        return deal

    def update_deal(self, deal_id: str, changes: Dict[str, Any]) -> Deal:
        """
        Partial field update.

        A stage given here is written as-is: no activity entry and no client
        status change. Use `transition_stage` for pipeline moves.
        """
        deal = self._load(deal_id)
        ensure_can_access(self.principal, deal)

        if changes.get("client_id") and self.session.get(Client, changes["client_id"]) is None:
            raise NotFoundError("Client", changes["client_id"])
        if changes.get("property_id") and self.session.get(Property, changes["property_id"]) is None:
            raise NotFoundError("Property", changes["property_id"])
        if changes.get("assigned_to") and self.session.get(User, changes["assigned_to"]) is None:
            raise NotFoundError("User", changes["assigned_to"])

        for key, value in changes.items():
            setattr(deal, key, value)
        self.session.flush()
        return deal

    def transition_stage(self, deal_id: str, stage: str, lost_reason: Optional[str] = None) -> Deal:
        """
        Move a deal to `stage`.

        Sets lost_reason to the given reason or clears it, appends exactly one
        STAGE_CHANGE activity (even for a same-stage move) and, when the
        target is CLOSED, sets the client to CONVERTED whatever its status.
        """
        deal = self._load(deal_id)
        ensure_can_access(self.principal, deal)

        old_stage = deal.stage
        new_stage = DealStage(stage).value
        deal.stage = new_stage
        deal.lost_reason = lost_reason or None
        self.session.flush()

        self.activities.log_stage_change(
            deal, old_stage, new_stage, user_id=self.principal.user_id, reason=lost_reason
        )

        if new_stage == DealStage.CLOSED.value:
            deal.client.status = ClientStatus.CONVERTED.value
            self.session.flush()

        log = get_context_logger(__name__, user_id=self.principal.user_id, deal_id=deal.id)
        log.info("Deal %s moved %s -> %s", deal.id, old_stage, new_stage)
        return deal

    def delete_deal(self, deal_id: str) -> None:
        """Delete a deal. ADMIN only, checked before existence."""
        require_admin(self.principal, "Only admins can delete deals")
        deal = self._load(deal_id)
        self.session.delete(deal)
        self.session.flush()
        LOGGER.info("Deleted deal %s", deal_id)


__all__ = ["DealService"]
