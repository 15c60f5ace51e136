"""
Time-Window Grouper.

Partitions records into half-open buckets [start, next_start) of a given
granularity. Naive timestamps are UTC. When a timezone is given, bucket
boundaries are that zone's local midnights/weeks/months and the bucket keys
are timezone-aware.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, TypeVar
from zoneinfo import ZoneInfo

from impact_analytics.models.enums import Granularity

T = TypeVar("T")

QUARTER_START_MONTHS = (1, 4, 7, 10)


def _localize(ts: datetime, tz: Optional[str]) -> datetime:
    if tz is None:
        return ts
    aware = ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)
    return aware.astimezone(ZoneInfo(tz))


def bucket_start(
    ts: datetime,
    granularity: Granularity,
    tz: Optional[str] = None,
    week_start: int = 0,
) -> datetime:
    """
    Start of the bucket containing `ts`.

    Args:
        ts: Timestamp (naive = UTC)
        granularity: Bucket width
        tz: Optional IANA zone defining local boundaries
        week_start: First weekday of a weekly bucket (0 = Monday)
    """
    local = _localize(ts, tz)
    zone = local.tzinfo if tz is not None else None
    wall = local.replace(tzinfo=None)

    if granularity == Granularity.HOURLY:
        floored = wall.replace(minute=0, second=0, microsecond=0)
    elif granularity == Granularity.DAILY:
        floored = wall.replace(hour=0, minute=0, second=0, microsecond=0)
    elif granularity == Granularity.WEEKLY:
        midnight = wall.replace(hour=0, minute=0, second=0, microsecond=0)
        floored = midnight - timedelta(days=(midnight.weekday() - week_start) % 7)
    elif granularity == Granularity.MONTHLY:
        floored = wall.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    elif granularity == Granularity.QUARTERLY:
        month = QUARTER_START_MONTHS[(wall.month - 1) // 3]
        floored = wall.replace(month=month, day=1, hour=0, minute=0, second=0, microsecond=0)
    elif granularity == Granularity.YEARLY:
        floored = wall.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    else:
        raise ValueError(f"Unsupported granularity: {granularity}")

    if zone is None:
        return floored
    if granularity == Granularity.HOURLY:
        # Keep the original offset so repeated wall-clock hours stay distinct
        return local.replace(minute=0, second=0, microsecond=0)
    return floored.replace(tzinfo=zone)


def next_bucket_start(start: datetime, granularity: Granularity) -> datetime:
    """Start of the bucket following the one that begins at `start`."""
    if granularity == Granularity.HOURLY:
        if start.tzinfo is None:
            return start + timedelta(hours=1)
        zone = start.tzinfo
        return (start.astimezone(timezone.utc) + timedelta(hours=1)).astimezone(zone)
    if granularity == Granularity.DAILY:
        return start + timedelta(days=1)
    if granularity == Granularity.WEEKLY:
        return start + timedelta(days=7)

    step = {Granularity.MONTHLY: 1, Granularity.QUARTERLY: 3, Granularity.YEARLY: 12}[granularity]
    month_index = start.month - 1 + step
    return start.replace(year=start.year + month_index // 12, month=month_index % 12 + 1, day=1)


def group_by_period(
    records: list[T],
    granularity: Granularity,
    key: Optional[Callable[[T], datetime]] = None,
    tz: Optional[str] = None,
    week_start: int = 0,
) -> dict[datetime, list[T]]:
    """
    Group records into buckets keyed by bucket start.

    Keys are in ascending order and records within a bucket keep ascending
    timestamp order (ties keep input order). Empty input yields {}.

    Args:
        records: Items to group
        granularity: Bucket width
        key: Timestamp accessor; defaults to the record's ``timestamp``
        tz: Optional IANA zone for local boundaries
        week_start: First weekday of a weekly bucket (0 = Monday)
    """
    if key is None:
        key = _default_key

    groups: dict[datetime, list[T]] = {}
    for record in sorted(records, key=key):
        start = bucket_start(key(record), granularity, tz=tz, week_start=week_start)
        groups.setdefault(start, []).append(record)
    return groups


def bucket_range(
    start: datetime,
    end: datetime,
    granularity: Granularity,
    tz: Optional[str] = None,
    week_start: int = 0,
) -> list[datetime]:
    """Every bucket start whose bucket overlaps [start, end]."""
    current = bucket_start(start, granularity, tz=tz, week_start=week_start)
    limit = _localize(end, tz)
    buckets = []
    while current <= limit:
        buckets.append(current)
        current = next_bucket_start(current, granularity)
    return buckets


def _default_key(record: Any) -> datetime:
    return record.timestamp
