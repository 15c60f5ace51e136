"""
Shared query parameters for analytics endpoints.
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import Query

from impact_analytics.models.enums import Granularity
from impact_analytics.models.timeframe import TimeFrame, utc_now

DEFAULT_WINDOW_DAYS = 30


def timeframe_query(
    start: Optional[datetime] = Query(None, description="Window start (default: 30 days ago)"),
    end: Optional[datetime] = Query(None, description="Window end (default: now)"),
    granularity: Granularity = Query(Granularity.DAILY, description="Bucket width"),
    timezone: Optional[str] = Query(None, description="IANA timezone for bucket boundaries"),
) -> TimeFrame:
    """
    Build a TimeFrame from query parameters.

    Raises:
        ComputationError: If start is after end or the timezone is unknown
    """
    end = end or utc_now()
    start = start or end - timedelta(days=DEFAULT_WINDOW_DAYS)
    return TimeFrame.from_bounds(start, end, granularity=granularity, timezone=timezone)
