"""
Platform metrics router.

Wired to:
- platform_metrics for named metrics and recent trends
- PerformanceAnalyzer for project performance, risk and cohorts
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from impact_analytics.auth.dependencies import require_analyst
from impact_analytics.config import get_settings
from impact_analytics.engine.performance import PerformanceAnalyzer
from impact_analytics.engine.platform_metrics import get_performance_trends, get_platform_metrics
from impact_analytics.models.enums import Granularity
from impact_analytics.models.timeframe import TimeFrame
from impact_analytics.routers.params import timeframe_query
from impact_analytics.storage import get_record_store
from impact_analytics.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/platform")
async def platform_metrics(
    user_id: str = Depends(require_analyst),
    timeframe: TimeFrame = Depends(timeframe_query),
    names: Optional[List[str]] = Query(None, description="Metrics to evaluate (default: all)"),
):
    """Named platform metrics over the records created in the window."""
    logger.info("metrics_platform", user_id=user_id, names=names)
    result = get_platform_metrics(get_record_store(), timeframe, names)
    return {"success": True, "data": result}


@router.get("/trends")
async def performance_trends(
    metric: str = Query(..., description="Metric to trend, e.g. total_revenue"),
    user_id: str = Depends(require_analyst),
    timeframe: TimeFrame = Depends(timeframe_query),
    bucket: Optional[Granularity] = Query(
        None, description="Override the bucket width of the timeframe"
    ),
):
    """Bucketed values of one metric over the most recent periods."""
    logger.info("metrics_trends", user_id=user_id, metric=metric)
    trend = get_performance_trends(
        get_record_store(),
        metric,
        timeframe,
        granularity=bucket,
        week_start=get_settings().week_start,
    )
    return {"success": True, "data": trend}


@router.get("/projects/performance")
async def project_performance(
    user_id: str = Depends(require_analyst),
    timeframe: TimeFrame = Depends(timeframe_query),
    project_id: Optional[str] = Query(None, description="Single project (default: all)"),
):
    """Success, quality and efficiency with benchmark comparisons."""
    analyzer = PerformanceAnalyzer(get_record_store())
    result = analyzer.project_performance(project_id=project_id, timeframe=timeframe)
    return {"success": True, "data": result}


@router.get("/projects/risk")
async def project_risk(user_id: str = Depends(require_analyst)):
    """Risk scores of active projects, highest first."""
    result = PerformanceAnalyzer(get_record_store()).risk_summary()
    return {"success": True, "data": result}


@router.get("/cohorts")
async def cohorts(
    user_id: str = Depends(require_analyst),
    timeframe: TimeFrame = Depends(timeframe_query),
):
    """Users grouped by registration bucket with retention and purchase rates."""
    result = PerformanceAnalyzer(get_record_store()).cohort_analysis(timeframe)
    return {"success": True, "data": result}
