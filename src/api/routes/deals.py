"""Deal pipeline routes."""
from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Dict, FrozenSet, Literal, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import Field
from sqlalchemy.orm import Session

from api.auth_deps import get_current_user
from api.deps import get_db
from api.schemas import CamelModel
from api.serializers import deal_detail, deal_to_dict
from core.models import DealStage
from domain.deals import DealService
from domain.scoping import Principal

router = APIRouter()


# =============================================================================
# Request Models
# =============================================================================


class DealCreate(CamelModel):
    """Request body for creating a deal."""

    client_id: str = Field(..., min_length=1)
    property_id: Optional[str] = None
    stage: Optional[DealStage] = None
    value: Optional[float] = Field(None, gt=0)
    probability: Optional[int] = Field(None, ge=0, le=100)
    assigned_to: Optional[str] = None
    next_action_at: Optional[datetime] = None
    lost_reason: Optional[str] = None


class DealUpdate(CamelModel):
    """Partial update; every field optional."""

    nullable: ClassVar[FrozenSet[str]] = frozenset(
        {"property_id", "value", "probability", "next_action_at", "lost_reason"}
    )

    client_id: Optional[str] = Field(None, min_length=1)
    property_id: Optional[str] = None
    stage: Optional[DealStage] = None
    value: Optional[float] = Field(None, gt=0)
    probability: Optional[int] = Field(None, ge=0, le=100)
    assigned_to: Optional[str] = None
    next_action_at: Optional[datetime] = None
    lost_reason: Optional[str] = None


class StageTransition(CamelModel):
    """Pipeline move for one deal."""

    stage: DealStage
    lost_reason: Optional[str] = None


# =============================================================================
# Routes
# =============================================================================


@router.get("")
async def list_deals(
    stage: Optional[DealStage] = Query(default=None),
    assigned_to: Optional[str] = Query(default=None, alias="assignedTo"),
    client_id: Optional[str] = Query(default=None, alias="clientId"),
    group_by: Optional[Literal["stage"]] = Query(default=None, alias="groupBy"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    List deals, most recently updated first.

    With `groupBy=stage` the response is the kanban board instead: one key
    per stage, each holding that stage's deals in creation order.
    """
    service = DealService(db, current_user)
    if group_by == "stage":
        columns = service.board(assigned_to=assigned_to, client_id=client_id)
        return {stage_name: [deal_to_dict(d) for d in deals] for stage_name, deals in columns.items()}

    result = service.list_deals(
        stage=stage.value if stage else None,
        assigned_to=assigned_to,
        client_id=client_id,
        page=page,
        limit=limit,
    )
    return result.envelope([deal_to_dict(d) for d in result.items])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_deal(
    body: DealCreate,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Create a deal. A NEW client becomes ACTIVE."""
    return deal_to_dict(DealService(db, current_user).create_deal(body.provided()))


@router.get("/{deal_id}")
async def get_deal(
    deal_id: str,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return deal_detail(DealService(db, current_user).get_deal(deal_id))


@router.put(
    "/{deal_id}",
    description=(
        "Partial field update. A `stage` sent here is stored as-is: no STAGE_CHANGE "
        "activity is written and the client's status is not touched. Use "
        "`PATCH /deals/{id}/stage` to move a deal through the pipeline."
    ),
)
async def update_deal(
    deal_id: str,
    body: DealUpdate,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return deal_to_dict(DealService(db, current_user).update_deal(deal_id, body.changes()))


@router.patch("/{deal_id}/stage")
async def transition_stage(
    deal_id: str,
    body: StageTransition,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    Move a deal to another stage.

    Any stage may follow any other. Logs a STAGE_CHANGE activity; moving to
    CLOSED marks the client CONVERTED.
    """
    deal = DealService(db, current_user).transition_stage(deal_id, body.stage, body.lost_reason)
    return deal_to_dict(deal)


@router.delete("/{deal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_deal(
    deal_id: str,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    """Delete a deal. Admins only."""
    DealService(db, current_user).delete_deal(deal_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
