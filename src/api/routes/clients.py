"""Client routes."""
from __future__ import annotations

from typing import Any, ClassVar, Dict, FrozenSet, List, Literal, Optional, Union

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import EmailStr, Field
from sqlalchemy.orm import Session

from api.auth_deps import get_current_user
from api.deps import get_db
from api.schemas import CamelModel
from api.serializers import activity_to_dict, client_detail, client_list_item, client_to_dict
from core.models import ActivityType, ClientStatus, LeadSource
from domain.clients import ClientService
from domain.scoping import Principal

router = APIRouter()


# =============================================================================
# Request Models
# =============================================================================


class ClientCreate(CamelModel):
    """Request body for creating a client."""

    full_name: str = Field(..., min_length=2)
    phone: str = Field(..., min_length=7)
    email: Optional[Union[EmailStr, Literal[""]]] = None
    lead_source: Optional[LeadSource] = None
    status: Optional[ClientStatus] = None
    assigned_to: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None


class ClientUpdate(CamelModel):
    """Partial update; every field optional."""

    nullable: ClassVar[FrozenSet[str]] = frozenset({"email", "lead_source", "notes"})

    full_name: Optional[str] = Field(None, min_length=2)
    phone: Optional[str] = Field(None, min_length=7)
    email: Optional[Union[EmailStr, Literal[""]]] = None
    lead_source: Optional[LeadSource] = None
    status: Optional[ClientStatus] = None
    assigned_to: Optional[str] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None


class ActivityCreate(CamelModel):
    """Manual activity entry against a client."""

    type: ActivityType
    content: str = Field(..., min_length=1)
    deal_id: Optional[str] = None


# =============================================================================
# Routes
# =============================================================================


@router.get("")
async def list_clients(
    search: Optional[str] = Query(default=None, description="Name, email or phone"),
    status_filter: Optional[ClientStatus] = Query(default=None, alias="status"),
    lead_source: Optional[LeadSource] = Query(default=None, alias="leadSource"),
    assigned_to: Optional[str] = Query(default=None, alias="assignedTo"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=200),
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """List clients, newest first. Agents only see clients assigned to them."""
    result = ClientService(db, current_user).list_clients(
        search=search,
        status=status_filter.value if status_filter else None,
        lead_source=lead_source.value if lead_source else None,
        assigned_to=assigned_to,
        page=page,
        limit=limit,
    )
    return result.envelope([client_list_item(c) for c in result.items])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_client(
    body: ClientCreate,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    client = ClientService(db, current_user).create_client(body.provided())
    return client_to_dict(client)


@router.get("/{client_id}")
async def get_client(
    client_id: str,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Client with deals, open tasks, recent activities and owned properties."""
    return client_detail(ClientService(db, current_user).get_client(client_id))


@router.put("/{client_id}")
async def update_client(
    client_id: str,
    body: ClientUpdate,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    client = ClientService(db, current_user).update_client(client_id, body.changes())
    return client_to_dict(client)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(
    client_id: str,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    """Delete a client and its deals. Admins only."""
    ClientService(db, current_user).delete_client(client_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{client_id}/activities")
async def list_client_activities(
    client_id: str,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    activities = ClientService(db, current_user).list_activities(client_id)
    return [activity_to_dict(a) for a in activities]


@router.post("/{client_id}/activities", status_code=status.HTTP_201_CREATED)
async def add_client_activity(
    client_id: str,
    body: ActivityCreate,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    activity = ClientService(db, current_user).add_activity(
        client_id, body.type, body.content, deal_id=body.deal_id
    )
    return activity_to_dict(activity)
