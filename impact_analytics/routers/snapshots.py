"""
Stored daily snapshot router.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from impact_analytics.auth.dependencies import require_analyst
from impact_analytics.errors import ComputationError
from impact_analytics.models.enums import SnapshotDomain
from impact_analytics.storage import get_persistence

router = APIRouter()


@router.get("")
async def read_snapshots(
    user_id: str = Depends(require_analyst),
    domain: Optional[SnapshotDomain] = Query(None, description="Only this domain"),
    start: Optional[date] = Query(None, description="First snapshot date"),
    end: Optional[date] = Query(None, description="Last snapshot date"),
):
    """Daily snapshots ordered by date and domain."""
    if start and end and start > end:
        raise ComputationError("Invalid range: start must not be after end")
    snapshots = get_persistence().read_snapshots(
        domain=domain.value if domain else None, start=start, end=end
    )
    return {"success": True, "data": snapshots}
