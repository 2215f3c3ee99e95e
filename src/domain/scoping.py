"""Row-level authorization policy.

ADMIN sees everything. AGENT sees the Clients, Deals and Tasks assigned to
them. Properties are shared inventory with no row scope.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.orm import Query
from sqlalchemy.sql.elements import ColumnElement

from core.exceptions import ForbiddenError
from core.models import Client, Deal, Role, Task


@dataclass(frozen=True)
class Principal:
    """The authenticated caller of a request."""

    user_id: str
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value


# Models whose rows belong to the agent they are assigned to
_OWNER_COLUMNS = {
    Client: Client.assigned_to,
    Deal: Deal.assigned_to,
    Task: Task.assigned_to,
}


def scope_filter(principal: Principal, model: type) -> Optional[ColumnElement]:
    """
    Return the SQL predicate restricting `model` rows to what the caller may see.

    None means unrestricted.
    """
    if principal.is_admin:
        return None
    column = _OWNER_COLUMNS.get(model)
    if column is None:
        return None
    return column == principal.user_id


def apply_scope(query: Query, principal: Principal, model: type) -> Query:
    predicate = scope_filter(principal, model)
    return query if predicate is None else query.filter(predicate)


def ensure_can_access(principal: Principal, record: Any) -> None:
    """Raise ForbiddenError unless the caller is ADMIN or the record's assignee."""
    if principal.is_admin:
        return
    if type(record) in _OWNER_COLUMNS and record.assigned_to != principal.user_id:
        raise ForbiddenError("Access denied")


def require_admin(principal: Principal, message: str = "Admin access required") -> None:
    if not principal.is_admin:
        raise ForbiddenError(message)


__all__ = [
    "Principal",
    "scope_filter",
    "apply_scope",
    "ensure_can_access",
    "require_admin",
]
