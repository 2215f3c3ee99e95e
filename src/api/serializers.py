"""JSON rendering of ORM records.

All keys are camelCase. Money columns come back from the database as
Decimal and are rendered as JSON numbers.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.models import Activity, Client, Deal, Property, PropertyPhoto, Task, TaskStatus, User
from core.utils import ensure_aware, isoformat


def money(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _open_tasks(tasks: List[Task]) -> List[Task]:
    return sorted(
        (t for t in tasks if t.status != TaskStatus.DONE.value),
        key=lambda t: ensure_aware(t.due_at),
    )


# =============================================================================
# Users
# =============================================================================


def user_summary(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email}


def user_public(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "createdAt": isoformat(user.created_at),
    }


# =============================================================================
# Activities
# =============================================================================


def activity_to_dict(activity: Activity) -> Dict[str, Any]:
    client = activity.client
    return {
        "id": activity.id,
        "type": activity.type,
        "content": activity.content,
        "userId": activity.user_id,
        "clientId": activity.client_id,
        "dealId": activity.deal_id,
        "createdAt": isoformat(activity.created_at),
        "user": {"id": activity.user.id, "name": activity.user.name} if activity.user else None,
        "client": {"id": client.id, "fullName": client.full_name} if client else None,
    }


# =============================================================================
# Clients
# =============================================================================


def client_summary(client: Optional[Client]) -> Optional[Dict[str, Any]]:
    if client is None:
        return None
    return {
        "id": client.id,
        "fullName": client.full_name,
        "phone": client.phone,
        "email": client.email,
    }


def client_to_dict(client: Client) -> Dict[str, Any]:
    return {
        "id": client.id,
        "fullName": client.full_name,
        "phone": client.phone,
        "email": client.email,
        "leadSource": client.lead_source,
        "status": client.status,
        "assignedTo": client.assigned_to,
        "tags": list(client.tags or []),
        "notes": client.notes,
        "createdAt": isoformat(client.created_at),
        "updatedAt": isoformat(client.updated_at),
        "agent": user_summary(client.agent),
    }


def client_list_item(client: Client) -> Dict[str, Any]:
    body = client_to_dict(client)
    body["_count"] = {"deals": len(client.deals), "tasks": len(client.tasks)}
    return body


def client_detail(client: Client, activity_limit: int = 20) -> Dict[str, Any]:
    body = client_to_dict(client)
    body["deals"] = [
        {**deal_fields(deal), "property": property_fields(deal.property) if deal.property else None,
         "agent": user_summary(deal.agent)}
        for deal in client.deals
    ]
    body["tasks"] = [task_fields(task) for task in _open_tasks(client.tasks)]
    body["activities"] = [activity_to_dict(a) for a in client.activities[:activity_limit]]
    body["ownedProperties"] = [property_fields(p) for p in client.owned_properties]
    return body


# =============================================================================
# Properties
# =============================================================================


def photo_to_dict(photo: PropertyPhoto) -> Dict[str, Any]:
    return {
        "id": photo.id,
        "propertyId": photo.property_id,
        "url": photo.url,
        "createdAt": isoformat(photo.created_at),
    }


def property_fields(prop: Property) -> Dict[str, Any]:
    return {
        "id": prop.id,
        "title": prop.title,
        "address": prop.address,
        "price": money(prop.price),
        "currency": prop.currency,
        "description": prop.description,
        "status": prop.status,
        "rooms": prop.rooms,
        "sizeSqm": prop.size_sqm,
        "floor": prop.floor,
        "ownerClientId": prop.owner_client_id,
        "createdAt": isoformat(prop.created_at),
        "updatedAt": isoformat(prop.updated_at),
    }


def property_summary(prop: Optional[Property]) -> Optional[Dict[str, Any]]:
    """Compact form embedded in deals: first photo only."""
    if prop is None:
        return None
    return {
        "id": prop.id,
        "title": prop.title,
        "address": prop.address,
        "price": money(prop.price),
        "currency": prop.currency,
        "photos": [photo_to_dict(p) for p in prop.photos[:1]],
    }


def property_to_dict(prop: Property) -> Dict[str, Any]:
    body = property_fields(prop)
    body["photos"] = [photo_to_dict(p) for p in prop.photos]
    owner = prop.owner
    body["owner"] = {"id": owner.id, "fullName": owner.full_name, "phone": owner.phone} if owner else None
    return body


def property_list_item(prop: Property) -> Dict[str, Any]:
    body = property_to_dict(prop)
    body["_count"] = {"deals": len(prop.deals)}
    return body


def property_detail(prop: Property) -> Dict[str, Any]:
    body = property_to_dict(prop)
    body["owner"] = client_summary(prop.owner)
    body["deals"] = [
        {
            **deal_fields(deal),
            "client": {"id": deal.client.id, "fullName": deal.client.full_name, "phone": deal.client.phone},
            "agent": user_summary(deal.agent),
        }
        for deal in sorted(prop.deals, key=lambda d: ensure_aware(d.created_at), reverse=True)
    ]
    body["tasks"] = [task_fields(task) for task in _open_tasks(prop.tasks)]
    return body


# =============================================================================
# Deals
# =============================================================================


def deal_fields(deal: Deal) -> Dict[str, Any]:
    return {
        "id": deal.id,
        "clientId": deal.client_id,
        "propertyId": deal.property_id,
        "stage": deal.stage,
        "value": money(deal.value),
        "probability": deal.probability,
        "assignedTo": deal.assigned_to,
        "nextActionAt": isoformat(deal.next_action_at),
        "lostReason": deal.lost_reason,
        "createdAt": isoformat(deal.created_at),
        "updatedAt": isoformat(deal.updated_at),
    }


def deal_to_dict(deal: Deal) -> Dict[str, Any]:
    body = deal_fields(deal)
    body["client"] = client_summary(deal.client)
    body["property"] = property_summary(deal.property)
    body["agent"] = user_summary(deal.agent)
    return body


def deal_detail(deal: Deal, activity_limit: int = 30) -> Dict[str, Any]:
    body = deal_to_dict(deal)
    body["tasks"] = [
        task_fields(task) for task in sorted(deal.tasks, key=lambda t: ensure_aware(t.due_at))
    ]
    body["activities"] = [activity_to_dict(a) for a in deal.activities[:activity_limit]]
    return body


# =============================================================================
# Tasks
# =============================================================================


def task_fields(task: Task) -> Dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "dueAt": isoformat(task.due_at),
        "priority": task.priority,
        "status": task.status,
        "assignedTo": task.assigned_to,
        "relatedClientId": task.related_client_id,
        "relatedDealId": task.related_deal_id,
        "relatedPropertyId": task.related_property_id,
        "reminderAt": isoformat(task.reminder_at),
        "createdAt": isoformat(task.created_at),
        "updatedAt": isoformat(task.updated_at),
    }


def task_to_dict(task: Task) -> Dict[str, Any]:
    body = task_fields(task)
    agent = task.agent
    client = task.related_client
    deal = task.related_deal
    prop = task.related_property
    body["agent"] = {"id": agent.id, "name": agent.name} if agent else None
    body["client"] = {"id": client.id, "fullName": client.full_name, "phone": client.phone} if client else None
    body["deal"] = (
        {"id": deal.id, "stage": deal.stage, "client": {"fullName": deal.client.full_name}} if deal else None
    )
    body["property"] = {"id": prop.id, "title": prop.title} if prop else None
    return body
