"""Domain layer for RE-CRM business logic.

This module provides a clean separation between business logic and
infrastructure (CLI, API, etc.). All core operations should go through
the domain services.
"""
from __future__ import annotations

from .activities import ActivityLog
from .clients import ClientService
from .dashboard import DashboardMetrics, DashboardService
from .deals import DealService
from .properties import PropertyService
from .scoping import Principal, scope_filter
from .tasks import TaskService

__all__ = [
    "ActivityLog",
    "ClientService",
    "DashboardMetrics",
    "DashboardService",
    "DealService",
    "PropertyService",
    "Principal",
    "scope_filter",
    "TaskService",
]
