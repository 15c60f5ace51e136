"""
Live monitoring router.

Wired to:
- SystemMonitor for counters, open alerts and health
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from impact_analytics.auth.dependencies import require_analyst
from impact_analytics.engine.monitoring import SystemMonitor
from impact_analytics.models.enums import Severity
from impact_analytics.storage import get_persistence, get_record_store

router = APIRouter()


def get_monitor() -> SystemMonitor:
    return SystemMonitor(get_record_store(), get_persistence())


@router.get("/current")
async def current_metrics(user_id: str = Depends(require_analyst)):
    return {"success": True, "data": get_monitor().current_metrics()}


@router.get("/alerts")
async def active_alerts(
    user_id: str = Depends(require_analyst),
    severity: Optional[Severity] = Query(None, description="Only alerts of this severity"),
):
    alerts = get_monitor().active_alerts(severity.value if severity else None)
    return {"success": True, "data": alerts}


@router.get("/health")
async def system_health(user_id: str = Depends(require_analyst)):
    """Health score, per-component status and recommendations."""
    return {"success": True, "data": get_monitor().system_health()}
