"""
On-demand insight generation router.

Wired to:
- InsightGenerator over the RecordStore and Persistence collaborators
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from impact_analytics.auth.dependencies import require_analyst
from impact_analytics.engine.insights import InsightGenerator
from impact_analytics.models.enums import AnalysisType
from impact_analytics.models.timeframe import TimeFrame
from impact_analytics.storage import get_persistence, get_record_store
from impact_analytics.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class InsightRequest(BaseModel):
    analysis_type: AnalysisType = Field(description="Focus area of the analysis")
    timeframe: TimeFrame = Field(description="Analysed window")


@router.post("")
async def generate_insights(
    request: InsightRequest,
    user_id: str = Depends(require_analyst),
):
    """Generate, store and return insights for one focus area."""
    logger.info("insights_requested", user_id=user_id, analysis_type=request.analysis_type.value)
    generator = InsightGenerator(get_record_store(), get_persistence())
    batch = generator.generate_insights(request.analysis_type, request.timeframe)
    return {"success": True, "data": batch}
