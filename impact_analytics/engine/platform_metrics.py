"""
Named platform metrics and their recent trends.

PLATFORM_METRICS maps each metric name to a function of the platform's
records; unknown names evaluate to 0. Trends group the real records of a
metric's domain over the most recent buckets of the timeframe.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog
from pydantic import BaseModel, Field

from impact_analytics.engine import metrics as m
from impact_analytics.engine.constants import HeuristicConstants, get_constants
from impact_analytics.engine.forecasting import classify_trend
from impact_analytics.engine.grouping import bucket_range, group_by_period, next_bucket_start
from impact_analytics.models.enums import Granularity, ProjectStatus, RecordDomain
from impact_analytics.models.forecast import PerformanceTrend, TrendPoint
from impact_analytics.models.records import ProgressUpdate, Project, Transaction, User
from impact_analytics.models.timeframe import TimeFrame, as_utc_naive
from impact_analytics.storage.record_store import RecordStore

logger = structlog.get_logger()


class PlatformRecords(BaseModel):
    """The records a platform metric is evaluated over."""

    projects: list[Project] = Field(default_factory=list)
    users: list[User] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    updates: list[ProgressUpdate] = Field(default_factory=list)

    @classmethod
    def load(
        cls, record_store: RecordStore, timeframe: Optional[TimeFrame] = None
    ) -> "PlatformRecords":
        return cls(
            projects=record_store.fetch(RecordDomain.PROJECTS, timeframe),
            users=record_store.fetch(RecordDomain.USERS, timeframe),
            transactions=record_store.fetch(RecordDomain.TRANSACTIONS, timeframe),
            updates=record_store.fetch(RecordDomain.PROGRESS_UPDATES, timeframe),
        )

    def within(self, start: datetime, end: datetime) -> "PlatformRecords":
        """Records whose domain timestamp falls in [start, end]."""

        def keep(records: list) -> list:
            return [r for r in records if start <= r.timestamp <= end]

        return PlatformRecords(
            projects=keep(self.projects),
            users=keep(self.users),
            transactions=keep(self.transactions),
            updates=keep(self.updates),
        )

    def projects_by_id(self) -> dict[str, Project]:
        return {p.id: p for p in self.projects}


MetricFn = Callable[[PlatformRecords], float]

PLATFORM_METRICS: dict[str, MetricFn] = {
    "total_projects": lambda r: len(r.projects),
    "total_users": lambda r: len(r.users),
    "total_revenue": lambda r: sum(t.platform_fee for t in r.transactions),
    "total_volume": lambda r: sum(t.total_amount for t in r.transactions),
    "total_transactions": lambda r: len(r.transactions),
    "active_projects": lambda r: m.count_where(
        r.projects, lambda p: p.status == ProjectStatus.ACTIVE
    ),
    "completed_projects": lambda r: m.count_where(
        r.projects, lambda p: p.status == ProjectStatus.COMPLETED
    ),
    "success_rate": lambda r: m.success_rate(r.projects),
    "average_transaction_value": lambda r: m.safe_divide(
        sum(t.total_amount for t in r.transactions), len(r.transactions)
    ),
    "total_carbon_offset": lambda r: sum(u.carbon_impact_to_date for u in r.updates),
}

# Domain and per-record value of each trendable metric (None = count)
TREND_SERIES: dict[str, tuple[RecordDomain, Optional[Callable]]] = {
    "total_projects": (RecordDomain.PROJECTS, None),
    "total_users": (RecordDomain.USERS, None),
    "total_transactions": (RecordDomain.TRANSACTIONS, None),
    "total_revenue": (RecordDomain.TRANSACTIONS, lambda t: t.platform_fee),
    "total_volume": (RecordDomain.TRANSACTIONS, lambda t: t.total_amount),
    "total_carbon_offset": (RecordDomain.PROGRESS_UPDATES, lambda u: u.carbon_impact_to_date),
}

# Most recent buckets reported per granularity
TREND_PERIODS = {
    Granularity.HOURLY: 24,
    Granularity.DAILY: 30,
    Granularity.WEEKLY: 12,
    Granularity.MONTHLY: 6,
    Granularity.QUARTERLY: 4,
    Granularity.YEARLY: 3,
}


def evaluate_metrics(records: PlatformRecords, names: list[str]) -> dict[str, float]:
    """Evaluate the named metrics; unknown names give 0."""
    results = {}
    for name in names:
        fn = PLATFORM_METRICS.get(name)
        results[name] = float(fn(records)) if fn is not None else 0.0
    return results


def get_platform_metrics(
    record_store: RecordStore,
    timeframe: Optional[TimeFrame],
    names: Optional[list[str]] = None,
) -> dict[str, float]:
    """
    Named metrics over the records created within the timeframe.

    Args:
        record_store: Record source
        timeframe: Window to scope the records to (None = all records)
        names: Metrics to evaluate (defaults to every known metric)
    """
    names = names or list(PLATFORM_METRICS)
    results = evaluate_metrics(PlatformRecords.load(record_store, timeframe), names)
    logger.info("platform_metrics_computed", metrics=len(results))
    return results


def get_performance_trends(
    record_store: RecordStore,
    metric: str,
    timeframe: TimeFrame,
    granularity: Optional[Granularity] = None,
    constants: Optional[HeuristicConstants] = None,
    week_start: int = 0,
) -> PerformanceTrend:
    """
    Bucketed values of a metric over the most recent periods of the timeframe.

    Each point carries its percent change from the previous point. An unknown
    metric yields an empty, stable trend.
    """
    constants = constants or get_constants()
    granularity = Granularity(granularity or timeframe.granularity)

    if metric not in TREND_SERIES:
        logger.warning("performance_trend_unknown_metric", metric=metric)
        return PerformanceTrend(metric=metric, granularity=granularity)

    buckets = bucket_range(
        timeframe.start, timeframe.end, granularity, tz=timeframe.timezone, week_start=week_start
    )[-TREND_PERIODS[granularity]:]
    window = TimeFrame(
        start=max(timeframe.start, as_utc_naive(buckets[0])),
        end=min(timeframe.end, as_utc_naive(next_bucket_start(buckets[-1], granularity))),
        granularity=granularity,
        timezone=timeframe.timezone,
    )

    domain, value = TREND_SERIES[metric]
    records = record_store.fetch(domain, window)
    groups = group_by_period(records, granularity, tz=timeframe.timezone, week_start=week_start)

    data = []
    previous = None
    for start in buckets:
        members = groups.get(start, [])
        total = float(len(members)) if value is None else float(sum(value(r) for r in members))
        change = m.pct_change(total, previous) if previous is not None else 0.0
        data.append(TrendPoint(period=start, value=total, change=change))
        previous = total

    values = [p.value for p in data]
    changes = [p.change for p in data[1:]]
    return PerformanceTrend(
        metric=metric,
        granularity=granularity,
        data=data,
        trend=classify_trend(values, constants),
        average_growth=m.mean(changes),
    )


def trailing_monthly_series(
    records: list,
    end: datetime,
    value: Optional[Callable] = None,
    months: int = 12,
) -> list[float]:
    """
    Monthly totals of the `months` buckets ending with the one holding `end`.

    Each bucket is the record count, or the sum of `value` over its records.
    """
    buckets = bucket_range(end - timedelta(days=31 * months), end, Granularity.MONTHLY)[-months:]
    groups = group_by_period([r for r in records if r.timestamp <= end], Granularity.MONTHLY)
    series = []
    for start in buckets:
        members = groups.get(start, [])
        series.append(float(len(members)) if value is None else float(sum(value(r) for r in members)))
    return series
