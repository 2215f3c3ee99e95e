"""API route modules."""
from __future__ import annotations

from . import (
    auth,
    clients,
    dashboard,
    deals,
    health,
    properties,
    tasks,
)

__all__ = [
    "auth",
    "clients",
    "dashboard",
    "deals",
    "health",
    "properties",
    "tasks",
]
