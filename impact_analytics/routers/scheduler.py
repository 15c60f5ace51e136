"""
Scheduled analytics trigger.

The same run can be started from cron with scripts/run_scheduled_analytics.py.
"""

from fastapi import APIRouter, Depends

from impact_analytics.auth.dependencies import require_admin
from impact_analytics.engine.snapshot_scheduler import SnapshotScheduler
from impact_analytics.storage import get_persistence, get_record_store
from impact_analytics.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.post("/run")
async def run_scheduled_analytics(user_id: str = Depends(require_admin)):
    """Run snapshots, predictions and purges once (admin only)."""
    logger.info("scheduler_triggered", user_id=user_id)
    run = SnapshotScheduler(get_record_store(), get_persistence()).process_scheduled_analytics()
    return {"success": True, "data": run}
