"""Health check routes."""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from api.deps import get_db
from core.logging_config import get_logger
from core.utils import utcnow

router = APIRouter()
LOGGER = get_logger(__name__)


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Liveness check with no dependencies."""
    return {"status": "ok", "timestamp": utcnow().isoformat()}


@router.get("/health/detailed")
async def detailed_health_check(db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Liveness plus a database round trip."""
    checks: Dict[str, Any] = {}
    status = "ok"
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = {"status": "ok"}
    except Exception as e:
        LOGGER.error(f"Database health check failed: {e}")
        status = "degraded"
        checks["database"] = {"status": "error", "error": str(e)}

    return {"status": status, "timestamp": utcnow().isoformat(), "checks": checks}
