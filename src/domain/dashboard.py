"""Dashboard metrics.

Read-only aggregation over a rolling window of `period` days. AGENT callers
see only the clients, deals and tasks assigned to them, and only the
activities they authored.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from core.logging_config import get_logger
from core.models import STAGES, Activity, Client, Deal, DealStage, Task, TaskStatus
from core.utils import days_ago, start_of_day, utcnow
from domain.activities import ActivityLog
from domain.scoping import Principal, apply_scope

LOGGER = get_logger(__name__)

DEFAULT_PERIOD_DAYS = 30
MAX_PERIOD_DAYS = 36500
UPCOMING_TASK_LIMIT = 10
RECENT_ACTIVITY_LIMIT = 8


def conversion_rate(closed_in_window: int, created_in_window: int) -> int:
    """
    Deals closed in the window over deals created in the window, as a whole percent.

    The two counts come from different cohorts, so the figure can exceed
    100 when older deals close inside the window.
    """
    if created_in_window <= 0:
        return 0
    # half rounds up
    return math.floor(closed_in_window / created_in_window * 100 + 0.5)


@dataclass
class DashboardMetrics:
    """Aggregated dashboard figures."""

    period: int
    new_leads: int
    deals_by_stage: Dict[str, int]
    conversion_rate: int
    overdue_tasks: int
    upcoming_tasks: List[Task] = field(default_factory=list)
    lead_sources: List[Dict[str, Any]] = field(default_factory=list)
    closed_deals: int = 0
    pipeline_value: float = 0.0
    recent_activities: List[Activity] = field(default_factory=list)

    @property
    def total_deals(self) -> int:
        return sum(self.deals_by_stage.values())


class DashboardService:
    """Computes the dashboard for one caller."""

    def __init__(self, session: Session, principal: Principal) -> None:
        self.session = session
        self.principal = principal

    def _scoped(self, model, *columns):
        query = self.session.query(*columns) if columns else self.session.query(model)
        return apply_scope(query, self.principal, model)

    def metrics(self, period: int = DEFAULT_PERIOD_DAYS) -> DashboardMetrics:
        now = utcnow()
        since = days_ago(period, now)
        today = start_of_day(now)

        new_leads = self._scoped(Client, func.count(Client.id)).filter(Client.created_at >= since).scalar() or 0

        deals_by_stage = {stage: 0 for stage in STAGES}
        rows = self._scoped(Deal, Deal.stage, func.count(Deal.id)).group_by(Deal.stage).all()
        for stage, count in rows:
            deals_by_stage[stage] = count

        created_in_window = self._scoped(Deal, func.count(Deal.id)).filter(Deal.created_at >= since).scalar() or 0
        closed_deals = (
            self._scoped(Deal, func.count(Deal.id))
            .filter(Deal.stage == DealStage.CLOSED.value, Deal.updated_at >= since)
            .scalar()
            or 0
        )

        overdue_tasks = (
            self._scoped(Task, func.count(Task.id))
            .filter(Task.due_at < now, Task.status != TaskStatus.DONE.value)
            .scalar()
            or 0
        )
        upcoming_tasks = (
            self._scoped(Task)
            .options(selectinload(Task.related_client), selectinload(Task.related_deal))
            .filter(
                Task.due_at >= today,
                Task.due_at <= today + timedelta(days=2),
                Task.status != TaskStatus.DONE.value,
            )
            .order_by(Task.due_at.asc())
            .limit(UPCOMING_TASK_LIMIT)
            .all()
        )

        source_rows = (
            self._scoped(Client, Client.lead_source, func.count(Client.id))
            .filter(Client.created_at >= since, Client.lead_source.isnot(None))
            .group_by(Client.lead_source)
            .all()
        )
        lead_sources = sorted(
            ({"source": source, "count": count} for source, count in source_rows),
            key=lambda item: item["count"],
            reverse=True,
        )

        pipeline_total = (
            self._scoped(Deal, func.sum(Deal.value))
            .filter(Deal.stage != DealStage.CLOSED.value)
            .scalar()
        )

        recent = ActivityLog(self.session).recent(self.principal, limit=RECENT_ACTIVITY_LIMIT)

        LOGGER.debug("Dashboard for %s over %d days", self.principal.user_id, period)
        return DashboardMetrics(
            period=period,
            new_leads=new_leads,
            deals_by_stage=deals_by_stage,
            conversion_rate=conversion_rate(closed_deals, created_in_window),
            overdue_tasks=overdue_tasks,
            upcoming_tasks=upcoming_tasks,
            lead_sources=lead_sources,
            closed_deals=closed_deals,
            pipeline_value=float(pipeline_total or 0),
            recent_activities=recent,
        )


__all__ = ["DashboardService", "DashboardMetrics", "conversion_rate", "DEFAULT_PERIOD_DAYS", "MAX_PERIOD_DAYS"]
