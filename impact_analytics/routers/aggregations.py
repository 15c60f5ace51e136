"""
Domain aggregation router.

Wired to:
- DomainAggregator for the projects, users, transactions and impact aggregates
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from impact_analytics.auth.dependencies import require_analyst
from impact_analytics.config import get_settings
from impact_analytics.engine.aggregation import DomainAggregator
from impact_analytics.models.enums import SnapshotDomain
from impact_analytics.models.timeframe import DataFilters, TimeFrame
from impact_analytics.storage import get_record_store
from impact_analytics.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class AggregationRequest(BaseModel):
    timeframe: TimeFrame = Field(description="Window to aggregate")
    filters: Optional[DataFilters] = Field(default=None, description="Record filters")


@router.post("/{domain}")
async def aggregate(
    domain: SnapshotDomain,
    request: AggregationRequest,
    user_id: str = Depends(require_analyst),
):
    """Totals, breakdowns, series, metrics and trends for one domain."""
    logger.info("aggregation_requested", user_id=user_id, domain=domain.value)
    aggregator = DomainAggregator(get_record_store(), week_start=get_settings().week_start)
    result = aggregator.aggregate(domain.value, request.timeframe, request.filters)
    return {"success": True, "data": result}
