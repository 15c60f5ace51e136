"""
Unit tests for dimensional breakdowns, zero-filled series and the domain
aggregator.
"""

from datetime import datetime, timedelta

import pytest

from impact_analytics.engine.aggregation import DomainAggregator, breakdown_by, time_series
from impact_analytics.errors import ComputationError, DataFetchError
from impact_analytics.models.enums import (
    Granularity,
    ProjectStatus,
    ProjectType,
    RecordDomain,
    UserRole,
)
from impact_analytics.models.timeframe import DataFilters, TimeFrame
from tests.conftest import NOW, make_project, make_transaction, make_update, make_user


def window(days: int = 30, granularity: Granularity = Granularity.DAILY) -> TimeFrame:
    return TimeFrame(start=NOW - timedelta(days=days), end=NOW, granularity=granularity)


# ============================================================================
# breakdown_by
# ============================================================================


class TestBreakdownBy:
    """Generic partitioning by a dimension."""

    def test_breakdown_by_shares(self):
        projects = [make_project(project_type="solar") for _ in range(3)] + [
            make_project(project_type="wind")
        ]

        result = breakdown_by(projects, "project_type")

        assert [(b.category, b.count, b.percentage) for b in result] == [
            ("solar", 3, 75.0),
            ("wind", 1, 25.0),
        ]

    def test_breakdown_by_empty(self):
        assert breakdown_by([], "project_type") == []

    def test_breakdown_by_excludes_missing_category(self):
        projects = [make_project(project_type=None), make_project(project_type="solar")]

        result = breakdown_by(projects, "project_type")

        assert [b.category for b in result] == ["solar"]
        assert result[0].percentage == 100.0

    def test_breakdown_by_enum_uses_value(self):
        projects = [make_project(status=ProjectStatus.ACTIVE)]

        result = breakdown_by(projects, "status")

        assert result[0].category == "active"

    def test_breakdown_by_ties_sorted_by_category(self):
        projects = [make_project(project_type="wind"), make_project(project_type="biogas")]

        result = breakdown_by(projects, "project_type")

        assert [b.category for b in result] == ["biogas", "wind"]

    def test_breakdown_by_measure_sum_and_growth(self):
        current = [make_transaction(category="waste", total_amount=300.0)]
        previous = [make_transaction(category="waste", total_amount=200.0)]

        result = breakdown_by(current, "category", measure="total_amount", previous=previous)

        assert result[0].measure_sum == 300.0
        assert result[0].growth == pytest.approx(50.0)

    def test_breakdown_by_growth_zero_without_previous(self):
        result = breakdown_by([make_project(project_type="solar")], "project_type")
        assert result[0].growth == 0.0

    def test_breakdown_by_growth_zero_for_new_category(self):
        """A category absent from the previous window has no growth baseline."""
        result = breakdown_by(
            [make_project(project_type="solar")], "project_type", previous=[]
        )
        assert result[0].growth == 0.0

    def test_breakdown_by_callable_dimension(self):
        users = [make_user(country="Kenya"), make_user(country="India"), make_user(country="Kenya")]

        result = breakdown_by(users, lambda u: u.country.upper())

        assert result[0].category == "KENYA"
        assert result[0].count == 2


# ============================================================================
# time_series
# ============================================================================


class TestTimeSeries:
    def test_time_series_zero_fills_empty_buckets(self):
        timeframe = TimeFrame(
            start=datetime(2024, 1, 1), end=datetime(2024, 1, 5, 12), granularity=Granularity.DAILY
        )
        records = [
            make_transaction(created_at=datetime(2024, 1, 1, 9)),
            make_transaction(created_at=datetime(2024, 1, 4, 9)),
        ]

        points = time_series(records, timeframe, "transaction_count")

        assert [p.value for p in points] == [1.0, 0.0, 0.0, 1.0, 0.0]

    def test_time_series_sums_value(self):
        timeframe = TimeFrame(
            start=datetime(2024, 1, 1), end=datetime(2024, 1, 1, 23), granularity=Granularity.DAILY
        )
        records = [
            make_transaction(total_amount=10.0, created_at=datetime(2024, 1, 1, 9)),
            make_transaction(total_amount=15.0, created_at=datetime(2024, 1, 1, 10)),
        ]

        points = time_series(records, timeframe, "volume", value=lambda t: t.total_amount)

        assert points[0].value == 25.0


# ============================================================================
# DomainAggregator
# ============================================================================


class TestDomainAggregator:
    """Domain aggregates over the in-memory record store."""

    def test_aggregate_projects_totals_and_breakdowns(self, record_store, seed, constants):
        seed(
            RecordDomain.PROJECTS,
            [
                make_project(project_type="solar", created_at=NOW - timedelta(days=3)),
                make_project(project_type="solar", created_at=NOW - timedelta(days=2)),
                make_project(project_type="solar", created_at=NOW - timedelta(days=2)),
                make_project(
                    project_type="wind",
                    status=ProjectStatus.COMPLETED,
                    created_at=NOW - timedelta(days=1),
                    completed_at=NOW - timedelta(hours=1),
                ),
                # preceding window
                make_project(project_type="solar", created_at=NOW - timedelta(days=40)),
            ],
        )
        aggregator = DomainAggregator(record_store, constants, week_start=0)

        result = aggregator.aggregate("projects", window(), now=NOW)

        assert result.totals["total_projects"] == 4
        assert result.totals["completed_projects"] == 1
        assert result.metrics["success_rate"] == 25.0
        assert result.metrics["growth"] == pytest.approx(300.0)
        types = {b.category: b for b in result.breakdowns["type"]}
        assert types["solar"].percentage == 75.0
        assert types["wind"].percentage == 25.0
        assert len(result.series("project_count")) == 31
        assert result.trends[0].metric == "project_count"

    def test_aggregate_record_at_window_start_counts_once(self, record_store, seed, constants):
        """A midnight record belongs to the current day, not to the day before."""
        seed(
            RecordDomain.PROJECTS,
            [
                make_project(created_at=datetime(2024, 1, 1, 12)),
                make_project(created_at=datetime(2024, 1, 2)),
                make_project(created_at=datetime(2024, 1, 2, 12)),
            ],
        )
        aggregator = DomainAggregator(record_store, constants, week_start=0)
        timeframe = TimeFrame(start=datetime(2024, 1, 2), end=datetime(2024, 1, 3))

        result = aggregator.aggregate("projects", timeframe, now=NOW)

        assert result.totals["total_projects"] == 2
        assert result.metrics["growth"] == pytest.approx(100.0)

    def test_aggregate_empty_domain_returns_zeros(self, record_store, constants):
        aggregator = DomainAggregator(record_store, constants, week_start=0)

        result = aggregator.aggregate("transactions", window(), now=NOW)

        assert result.totals["total_volume"] == 0
        assert result.totals["transaction_count"] == 0
        assert result.metrics["average_transaction_size"] == 0.0
        assert result.breakdowns["category"] == []
        assert all(v == 0.0 for v in result.series("transaction_volume"))

    def test_aggregate_users_active_counts(self, record_store, seed, constants):
        seed(
            RecordDomain.USERS,
            [
                make_user(
                    role=UserRole.CREDIT_BUYER,
                    created_at=NOW - timedelta(days=5),
                    last_login_at=NOW - timedelta(hours=2),
                ),
                make_user(
                    role=UserRole.PROJECT_CREATOR,
                    created_at=NOW - timedelta(days=6),
                    last_login_at=NOW - timedelta(days=10),
                ),
                make_user(role=UserRole.CREDIT_BUYER, created_at=NOW - timedelta(days=7)),
            ],
        )
        aggregator = DomainAggregator(record_store, constants, week_start=0)

        result = aggregator.aggregate("users", window(), now=NOW)

        assert result.metrics["daily_active_users"] == 1
        assert result.metrics["weekly_active_users"] == 1
        assert result.metrics["monthly_active_users"] == 2
        roles = {b.category: b.count for b in result.breakdowns["role"]}
        assert roles == {"credit_buyer": 2, "project_creator": 1}

    def test_aggregate_impact_uses_owning_project(self, record_store, seed, constants):
        project = make_project(id="p-1", project_type=ProjectType.WIND.value)
        seed(RecordDomain.PROJECTS, [project])
        seed(
            RecordDomain.PROGRESS_UPDATES,
            [
                make_update("p-1", reporting_date=NOW - timedelta(days=2), carbon_impact_to_date=46.0),
                make_update("missing", reporting_date=NOW - timedelta(days=1)),
            ],
        )
        aggregator = DomainAggregator(record_store, constants, week_start=0)

        result = aggregator.aggregate("impact", window(), now=NOW)

        by_type = result.breakdowns["project_type"]
        assert [b.category for b in by_type] == ["wind"]
        assert by_type[0].measure_sum == 46.0
        assert result.totals["update_count"] == 2

    def test_aggregate_applies_filters(self, record_store, seed, constants):
        seed(
            RecordDomain.TRANSACTIONS,
            [
                make_transaction(total_amount=50.0, category="waste"),
                make_transaction(total_amount=5000.0, category="waste"),
                make_transaction(total_amount=500.0, category="nature_based"),
            ],
        )
        aggregator = DomainAggregator(record_store, constants, week_start=0)

        result = aggregator.aggregate(
            "transactions", window(), DataFilters(min_value=100.0, categories=["waste"]), now=NOW
        )

        assert result.totals["transaction_count"] == 1
        assert result.totals["total_volume"] == 5000.0

    def test_aggregate_inverted_timeframe_rejected_before_fetch(
        self, record_store, mock_storage, constants
    ):
        timeframe = TimeFrame.model_construct(
            start=NOW, end=NOW - timedelta(days=1), granularity=Granularity.DAILY, timezone=None
        )
        aggregator = DomainAggregator(record_store, constants, week_start=0)

        with pytest.raises(ComputationError):
            aggregator.aggregate("projects", timeframe, now=NOW)
        assert mock_storage.calls == []

    def test_aggregate_fetch_failure_raises_data_fetch_error(
        self, record_store, mock_storage, constants
    ):
        mock_storage.failing.add("read_records")
        aggregator = DomainAggregator(record_store, constants, week_start=0)

        with pytest.raises(DataFetchError):
            aggregator.aggregate("users", window(), now=NOW)
