"""Dashboard metrics route."""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.auth_deps import get_current_user
from api.deps import get_db
from api.serializers import activity_to_dict, task_to_dict
from domain.dashboard import DEFAULT_PERIOD_DAYS, MAX_PERIOD_DAYS, DashboardService
from domain.scoping import Principal

router = APIRouter()


@router.get("/metrics")
async def get_metrics(
    period: int = Query(default=DEFAULT_PERIOD_DAYS, ge=1, le=MAX_PERIOD_DAYS, description="Window in days"),
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    Pipeline and activity figures for the caller.

    Stage counts, overdue tasks and pipeline value cover all deals and tasks
    in scope; lead, closing and conversion figures cover the last `period` days.
    """
    metrics = DashboardService(db, current_user).metrics(period=period)
    return {
        "period": metrics.period,
        "newLeads": metrics.new_leads,
        "dealsByStage": metrics.deals_by_stage,
        "totalDeals": metrics.total_deals,
        "closedDeals": metrics.closed_deals,
        "conversionRate": metrics.conversion_rate,
        "overdueTasks": metrics.overdue_tasks,
        "upcomingTasks": [task_to_dict(t) for t in metrics.upcoming_tasks],
        "leadSources": metrics.lead_sources,
        "pipelineValue": metrics.pipeline_value,
        "recentActivities": [activity_to_dict(a) for a in metrics.recent_activities],
    }
