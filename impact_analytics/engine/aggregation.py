"""
Dimensional Aggregator.

One generic breakdown function partitions any record list by any dimension;
DomainAggregator builds the projects, users, transactions and impact
aggregates from it, each compared against the preceding window of equal
length.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Union

import structlog

from impact_analytics.config import get_settings
from impact_analytics.engine.constants import HeuristicConstants, get_constants
from impact_analytics.engine.forecasting import analyze_series
from impact_analytics.engine.grouping import bucket_range, group_by_period
from impact_analytics.engine import metrics as m
from impact_analytics.models.analytics import AggregatedResult, Breakdown, TimeSeriesPoint
from impact_analytics.models.enums import Granularity, PaymentStatus, ProjectStatus, RecordDomain
from impact_analytics.models.records import Project
from impact_analytics.models.timeframe import DataFilters, TimeFrame, ensure_timeframe
from impact_analytics.storage.record_store import RecordStore

logger = structlog.get_logger()

Dimension = Union[str, Callable[[Any], Any]]
Measure = Union[str, Callable[[Any], float]]


def _resolve(record: Any, accessor: Union[str, Callable]) -> Any:
    value = accessor(record) if callable(accessor) else getattr(record, accessor, None)
    return getattr(value, "value", value)


def _partition(records: list, dimension: Dimension, measure: Optional[Measure]):
    counts: dict[str, int] = {}
    sums: dict[str, float] = {}
    for record in records:
        category = _resolve(record, dimension)
        if category is None:
            continue
        category = str(category)
        counts[category] = counts.get(category, 0) + 1
        if measure is not None:
            sums[category] = sums.get(category, 0.0) + float(_resolve(record, measure) or 0.0)
    return counts, sums


def breakdown_by(
    records: list,
    dimension: Dimension,
    measure: Optional[Measure] = None,
    previous: Optional[list] = None,
) -> list[Breakdown]:
    """
    Partition records by a dimension.

    Records whose dimension is None are left out. Percentages are shares of
    the counted records and sum to 100 (or are all 0 when nothing counted).
    Growth compares each category's aggregate (measure sum when a measure is
    given, count otherwise) with `previous`; it is 0 without prior data.

    Args:
        records: Current-window records
        dimension: Attribute name or accessor giving the category
        measure: Optional attribute name or accessor summed per category
        previous: Records of the preceding window of equal length

    Returns:
        Breakdowns ordered by count descending, then category
    """
    counts, sums = _partition(records, dimension, measure)
    prev_counts, prev_sums = _partition(previous or [], dimension, measure)
    total = sum(counts.values())

    results = []
    for category, count in counts.items():
        if measure is not None:
            current_agg, previous_agg = sums.get(category, 0.0), prev_sums.get(category, 0.0)
        else:
            current_agg, previous_agg = count, prev_counts.get(category, 0)
        results.append(
            Breakdown(
                category=category,
                count=count,
                percentage=m.safe_ratio(count, total),
                measure_sum=sums.get(category, 0.0),
                growth=m.pct_change(current_agg, previous_agg) if previous is not None else 0.0,
            )
        )
    return sorted(results, key=lambda b: (-b.count, b.category))


def time_series(
    records: list,
    timeframe: TimeFrame,
    metric: str,
    value: Optional[Callable[[Any], float]] = None,
    key: Optional[Callable[[Any], datetime]] = None,
    week_start: int = 0,
) -> list[TimeSeriesPoint]:
    """
    Zero-filled bucketed series over the timeframe.

    Each point is the record count of its bucket, or the sum of `value`.
    """
    groups = group_by_period(
        records, timeframe.granularity, key=key, tz=timeframe.timezone, week_start=week_start
    )
    points = []
    for start in bucket_range(
        timeframe.start, timeframe.end, timeframe.granularity,
        tz=timeframe.timezone, week_start=week_start,
    ):
        members = groups.get(start, [])
        total = float(len(members)) if value is None else float(sum(value(r) for r in members))
        points.append(TimeSeriesPoint(timestamp=start, metric=metric, value=total))
    return points


def window_growth(current: float, previous: float) -> float:
    return m.pct_change(current, previous)


class DomainAggregator:
    """
    Builds the four domain aggregates for a timeframe.

    Each aggregate fetches its domain for the timeframe and for the
    immediately preceding window, then derives totals, breakdowns, a zero
    filled series, metrics and trend analyses.
    """

    def __init__(
        self,
        record_store: RecordStore,
        constants: Optional[HeuristicConstants] = None,
        week_start: Optional[int] = None,
    ):
        self.record_store = record_store
        self.constants = constants or get_constants()
        self.week_start = get_settings().week_start if week_start is None else week_start

    def aggregate(
        self,
        domain: str,
        timeframe: TimeFrame,
        filters: Optional[DataFilters] = None,
        now: Optional[datetime] = None,
    ) -> AggregatedResult:
        """Dispatch to the aggregate for `domain` (projects, users, transactions, impact)."""
        handlers = {
            "projects": self.aggregate_projects,
            "users": self.aggregate_users,
            "transactions": self.aggregate_transactions,
            "impact": self.aggregate_impact,
        }
        return handlers[str(getattr(domain, "value", domain))](timeframe, filters, now=now)

    def _fetch_windows(self, domain: RecordDomain, timeframe: TimeFrame, filters):
        ensure_timeframe(timeframe)
        current = self.record_store.fetch(domain, timeframe, filters)
        previous = self.record_store.fetch(domain, timeframe.previous(), filters)
        return current, previous

    def _trend(self, result: AggregatedResult, metric: str, series: str) -> None:
        result.trends.append(
            analyze_series(
                metric,
                result.series(metric),
                result.timeframe.granularity,
                self.constants,
                series=series,
            )
        )

    def aggregate_projects(
        self,
        timeframe: TimeFrame,
        filters: Optional[DataFilters] = None,
        now: Optional[datetime] = None,
    ) -> AggregatedResult:
        """Project totals, status/type/region breakdowns, averages and quality."""
        now = now or timeframe.end
        projects, previous = self._fetch_windows(RecordDomain.PROJECTS, timeframe, filters)
        updates = self.record_store.fetch(RecordDomain.PROGRESS_UPDATES, timeframe, filters)

        total_funding = sum(p.funding_required for p in projects)
        total_impact = sum(p.target_carbon_impact for p in projects)

        result = AggregatedResult(
            domain="projects",
            timeframe=timeframe,
            totals={
                "total_projects": len(projects),
                "active_projects": m.count_where(projects, lambda p: p.status == ProjectStatus.ACTIVE),
                "completed_projects": m.count_where(
                    projects, lambda p: p.status == ProjectStatus.COMPLETED
                ),
                "total_funding": total_funding,
                "total_target_impact": total_impact,
                "total_credits_generated": sum(p.credits_generated for p in projects),
            },
            breakdowns={
                "status": breakdown_by(projects, "status", previous=previous),
                "type": breakdown_by(
                    projects, "project_type", measure="target_carbon_impact", previous=previous
                ),
                "region": breakdown_by(projects, "region", previous=previous),
            },
            time_series=time_series(
                projects, timeframe, "project_count", week_start=self.week_start
            ),
            metrics={
                "success_rate": m.success_rate(projects),
                "approval_rate": m.approval_rate(projects),
                "average_carbon_impact": m.safe_divide(total_impact, len(projects)),
                "average_funding": m.safe_divide(total_funding, len(projects)),
                "average_completion_days": m.average_completion_days(projects),
                "quality_score": m.quality_score(updates),
                "timeline_adherence": m.timeline_adherence(projects, now),
                "growth": window_growth(len(projects), len(previous)),
            },
        )
        self._trend(result, "project_count", "projects")

        logger.info(
            "projects_aggregated",
            total=len(projects),
            previous=len(previous),
            buckets=len(result.time_series),
        )
        return result

    def aggregate_users(
        self,
        timeframe: TimeFrame,
        filters: Optional[DataFilters] = None,
        now: Optional[datetime] = None,
    ) -> AggregatedResult:
        """User role breakdown, active-user counts and registrations."""
        now = now or timeframe.end
        users, previous = self._fetch_windows(RecordDomain.USERS, timeframe, filters)

        def active_within(days: int) -> int:
            cutoff = now - timedelta(days=days)
            return m.count_where(
                users, lambda u: u.last_login_at is not None and cutoff <= u.last_login_at <= now
            )

        mau = active_within(30)
        result = AggregatedResult(
            domain="users",
            timeframe=timeframe,
            totals={
                "total_users": len(users),
                "active_accounts": m.count_where(users, lambda u: u.is_active),
            },
            breakdowns={
                "role": breakdown_by(users, "role", previous=previous),
                "country": breakdown_by(users, "country", previous=previous),
                "organization_type": breakdown_by(users, "organization_type", previous=previous),
            },
            time_series=time_series(
                users, timeframe, "user_registrations", week_start=self.week_start
            ),
            metrics={
                "daily_active_users": active_within(1),
                "weekly_active_users": active_within(7),
                "monthly_active_users": mau,
                "activity_rate": m.safe_ratio(mau, len(users)),
                "login_frequency": m.mean(u.login_count for u in users),
                "growth": window_growth(len(users), len(previous)),
            },
        )
        self._trend(result, "user_registrations", "users")

        logger.info("users_aggregated", total=len(users), previous=len(previous))
        return result

    def aggregate_transactions(
        self,
        timeframe: TimeFrame,
        filters: Optional[DataFilters] = None,
        now: Optional[datetime] = None,
    ) -> AggregatedResult:
        """Volume, revenue (platform fees), status/category breakdowns and pricing."""
        transactions, previous = self._fetch_windows(RecordDomain.TRANSACTIONS, timeframe, filters)

        volume = sum(t.total_amount for t in transactions)
        credits = sum(t.credit_amount for t in transactions)
        revenue = sum(t.platform_fee for t in transactions)
        previous_volume = sum(t.total_amount for t in previous)

        series = time_series(
            transactions, timeframe, "transaction_volume",
            value=lambda t: t.total_amount, week_start=self.week_start,
        ) + time_series(
            transactions, timeframe, "transaction_count", week_start=self.week_start
        )

        result = AggregatedResult(
            domain="transactions",
            timeframe=timeframe,
            totals={
                "total_volume": volume,
                "transaction_count": len(transactions),
                "total_credits": credits,
                "total_revenue": revenue,
                "completed_transactions": m.count_where(
                    transactions, lambda t: t.payment_status == PaymentStatus.COMPLETED
                ),
            },
            breakdowns={
                "payment_status": breakdown_by(
                    transactions, "payment_status", measure="total_amount", previous=previous
                ),
                "category": breakdown_by(
                    transactions, "category", measure="total_amount", previous=previous
                ),
            },
            time_series=series,
            metrics={
                "average_transaction_size": m.safe_divide(volume, len(transactions)),
                "average_credit_price": m.safe_divide(volume, credits),
                "average_platform_fee": m.safe_divide(revenue, len(transactions)),
                "volume_growth": window_growth(volume, previous_volume),
            },
        )
        self._trend(result, "transaction_volume", "revenue")
        self._trend(result, "transaction_count", "revenue")

        logger.info(
            "transactions_aggregated",
            total=len(transactions),
            volume=round(volume, 2),
        )
        return result

    def aggregate_impact(
        self,
        timeframe: TimeFrame,
        filters: Optional[DataFilters] = None,
        now: Optional[datetime] = None,
    ) -> AggregatedResult:
        """Environmental totals, equivalents and impact by project type and region."""
        updates, previous = self._fetch_windows(RecordDomain.PROGRESS_UPDATES, timeframe, filters)
        projects_by_id: dict[str, Project] = {
            p.id: p for p in self.record_store.fetch(RecordDomain.PROJECTS)
        }

        def owner(attribute: str):
            def accessor(update):
                project = projects_by_id.get(update.project_id)
                return getattr(project, attribute, None) if project else None
            return accessor

        carbon = sum(u.carbon_impact_to_date for u in updates)
        energy = sum(u.energy_generated for u in updates)

        series = []
        for metric, attribute in (
            ("carbon_impact", "carbon_impact_to_date"),
            ("trees_planted", "trees_planted"),
            ("energy_generated", "energy_generated"),
        ):
            series += time_series(
                updates, timeframe, metric,
                value=lambda u, a=attribute: getattr(u, a), week_start=self.week_start,
            )

        result = AggregatedResult(
            domain="impact",
            timeframe=timeframe,
            totals={
                "total_carbon_offset": carbon,
                "total_trees_planted": sum(u.trees_planted for u in updates),
                "total_energy_generated": energy,
                "total_waste_processed": sum(u.waste_processed for u in updates),
                "total_area_restored": sum(u.area_restored for u in updates),
                "update_count": len(updates),
            },
            breakdowns={
                "project_type": breakdown_by(
                    updates, owner("project_type"), measure="carbon_impact_to_date",
                    previous=previous,
                ),
                "region": breakdown_by(
                    updates, owner("region"), measure="carbon_impact_to_date", previous=previous
                ),
            },
            time_series=series,
            metrics={
                "equivalents": m.equivalent_metrics(carbon, energy).model_dump(),
                "verification_rate": m.verification_rate(updates),
                "quality_score": m.quality_score(updates),
                "impact_growth": window_growth(
                    carbon, sum(u.carbon_impact_to_date for u in previous)
                ),
            },
        )
        self._trend(result, "carbon_impact", "impact")
        self._trend(result, "trees_planted", "impact")
        self._trend(result, "energy_generated", "impact")

        logger.info("impact_aggregated", updates=len(updates), carbon_offset=round(carbon, 2))
        return result
