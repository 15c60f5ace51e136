"""
Unit tests for portfolio performance, risk scoring, cohorts, platform
metrics and insight generation.
"""

from datetime import datetime, timedelta

import pytest

from impact_analytics.engine.insights import (
    INSIGHTS_COLLECTION,
    InsightGenerator,
    InsightInputs,
    performance_insights,
    recommend,
    risk_insights,
)
from impact_analytics.engine.performance import (
    PerformanceAnalyzer,
    project_risk_score,
    risk_level,
)
from impact_analytics.engine.platform_metrics import (
    PlatformRecords,
    evaluate_metrics,
    get_performance_trends,
    get_platform_metrics,
    trailing_monthly_series,
)
from impact_analytics.errors import NotFound
from impact_analytics.models.enums import (
    AnalysisType,
    Granularity,
    InsightType,
    ProjectStatus,
    ProjectType,
    RecordDomain,
    TrendDirection,
)
from impact_analytics.models.reports import PerformanceSection, PlatformSummary
from impact_analytics.models.timeframe import TimeFrame
from tests.conftest import NOW, make_project, make_transaction, make_user


# ============================================================================
# Risk scoring
# ============================================================================


class TestProjectRiskScore:
    def test_risk_score_components(self, constants):
        project = make_project(
            project_type=ProjectType.BIOGAS.value,
            status=ProjectStatus.UNDER_REVIEW,
            funding_required=200000.0,
            estimated_completion_date=NOW - timedelta(days=1),
        )

        # 30 overdue + 20 funding + 15 review + 25 biogas
        assert project_risk_score(project, NOW, constants) == 90.0

    def test_risk_score_unknown_type_uses_default(self, constants):
        project = make_project(project_type="geothermal")
        assert project_risk_score(project, NOW, constants) == 10.0

    @pytest.mark.parametrize("score,level", [(10, "low"), (40, "medium"), (70, "high")])
    def test_risk_level(self, score, level):
        assert risk_level(score) == level


class TestPerformanceAnalyzer:
    def test_portfolio_performance(self, record_store, platform, constants):
        analyzer = PerformanceAnalyzer(record_store, constants=constants)

        result = analyzer.project_performance(now=NOW)

        assert result.total_projects == 2
        assert result.success_rate == 50.0
        assert {p.category for p in result.performance_by_type} == {"reforestation", "solar"}
        assert [b.metric for b in result.benchmarks] == [
            "success_rate",
            "quality_score",
            "impact_efficiency",
        ]

    def test_single_project_performance(self, record_store, platform, constants):
        result = PerformanceAnalyzer(record_store, constants=constants).project_performance(
            project_id="proj-solar", now=NOW
        )

        assert result.project_id == "proj-solar"
        assert result.total_projects == 1
        assert result.quality_score == 100.0

    def test_unknown_project(self, record_store, constants):
        with pytest.raises(NotFound):
            PerformanceAnalyzer(record_store, constants=constants).project_performance(
                project_id="missing", now=NOW
            )

    def test_risk_summary_highest_first(self, record_store, seed, constants):
        seed(
            RecordDomain.PROJECTS,
            [
                make_project(id="calm", project_type=ProjectType.REFORESTATION.value),
                make_project(
                    id="risky",
                    project_type=ProjectType.BIOGAS.value,
                    funding_required=500000.0,
                    estimated_completion_date=NOW - timedelta(days=3),
                ),
                make_project(id="done", status=ProjectStatus.COMPLETED),
            ],
        )

        summary = PerformanceAnalyzer(record_store, constants=constants).risk_summary(now=NOW)

        assert summary.total_active == 2
        assert [p.project_id for p in summary.projects] == ["risky", "calm"]
        assert summary.distribution == {"low": 1, "medium": 0, "high": 1}
        assert summary.high_risk_count == 1

    def test_cohort_analysis(self, record_store, seed, constants):
        seed(
            RecordDomain.USERS,
            [
                make_user(
                    external_id="a",
                    created_at=datetime(2024, 1, 5),
                    last_login_at=NOW - timedelta(days=2),
                ),
                make_user(external_id="b", created_at=datetime(2024, 1, 20)),
                make_user(external_id="c", created_at=datetime(2024, 2, 10)),
            ],
        )
        seed(RecordDomain.TRANSACTIONS, [make_transaction(buyer_id="b")])
        timeframe = TimeFrame(
            start=datetime(2024, 1, 1), end=datetime(2024, 2, 28), granularity=Granularity.MONTHLY
        )

        analysis = PerformanceAnalyzer(record_store, constants=constants).cohort_analysis(
            timeframe, now=NOW
        )

        january, february = analysis.cohorts
        assert january.cohort_start == datetime(2024, 1, 1)
        assert (january.size, january.retained, january.purchasers) == (2, 1, 1)
        assert january.retention_rate == 50.0
        assert february.size == 1


# ============================================================================
# Platform metrics
# ============================================================================


class TestPlatformMetrics:
    def test_evaluate_unknown_metric_is_zero(self):
        assert evaluate_metrics(PlatformRecords(), ["nonsense"]) == {"nonsense": 0.0}

    def test_platform_metrics_all_records(self, record_store, platform):
        metrics = get_platform_metrics(record_store, None)

        assert metrics["total_projects"] == 2
        assert metrics["total_users"] == 3
        assert metrics["total_transactions"] == 3
        assert metrics["total_carbon_offset"] == 400.0
        assert metrics["success_rate"] == 50.0

    def test_platform_metrics_named_subset(self, record_store, platform):
        metrics = get_platform_metrics(record_store, None, ["total_volume"])
        assert metrics == {"total_volume": 5000.0}

    def test_performance_trend_buckets(self, record_store, platform, constants):
        timeframe = TimeFrame(
            start=NOW - timedelta(days=6), end=NOW, granularity=Granularity.DAILY
        )

        trend = get_performance_trends(
            record_store, "total_transactions", timeframe, constants=constants
        )

        assert len(trend.data) == 7
        assert sum(p.value for p in trend.data) == 3.0

    def test_performance_trend_unknown_metric(self, record_store, constants):
        timeframe = TimeFrame(start=NOW - timedelta(days=6), end=NOW)

        trend = get_performance_trends(record_store, "nonsense", timeframe, constants=constants)

        assert trend.data == []
        assert trend.trend == TrendDirection.STABLE

    def test_trailing_monthly_series_length(self):
        records = [make_transaction(created_at=datetime(2024, 3, 2))]

        series = trailing_monthly_series(records, NOW)

        assert len(series) == 12
        assert series[-1] == 1.0
        assert sum(series) == 1.0


# ============================================================================
# Insights
# ============================================================================


def inputs_for(everything: PlatformRecords, constants, days: int = 30) -> InsightInputs:
    return InsightInputs.for_window(
        everything, NOW - timedelta(days=days), NOW, "last 30 days", NOW, constants
    )


class TestInsights:
    def test_performance_insight_improving(self, constants):
        everything = PlatformRecords(
            projects=[
                make_project(status=ProjectStatus.COMPLETED, created_at=NOW - timedelta(days=5)),
                make_project(status=ProjectStatus.COMPLETED, created_at=NOW - timedelta(days=6)),
                make_project(status=ProjectStatus.ACTIVE, created_at=NOW - timedelta(days=45)),
            ]
        )

        insights = performance_insights(inputs_for(everything, constants))

        assert len(insights) == 1
        assert insights[0].type == InsightType.PERFORMANCE
        assert insights[0].title == "Project Completion Rate Improving"
        assert insights[0].data["change"] == pytest.approx(100.0)

    def test_performance_insight_silent_without_projects(self, constants):
        assert performance_insights(inputs_for(PlatformRecords(), constants)) == []

    def test_risk_insight_lists_high_risk_projects(self, constants):
        risky = make_project(
            project_type=ProjectType.BIOGAS.value,
            funding_required=500000.0,
            estimated_completion_date=NOW - timedelta(days=1),
        )
        everything = PlatformRecords(projects=[risky, make_project()])

        insights = risk_insights(inputs_for(everything, constants))

        assert insights[0].data["high_risk_projects"] == [risky.id]

    def test_recommend_below_benchmark(self):
        summary = PlatformSummary(total_projects=10, success_rate=40.0)
        performance = PerformanceSection(quality_score=60.0)

        recommendations = recommend(summary, performance, [], benchmark_average=75.0)

        assert [r.category for r in recommendations] == ["performance", "quality"]

    def test_generator_persists_batch(self, record_store, persistence, mock_storage, platform, constants):
        timeframe = TimeFrame(start=NOW - timedelta(days=30), end=NOW)

        batch = InsightGenerator(record_store, persistence, constants).generate_insights(
            AnalysisType.PERFORMANCE, timeframe, now=NOW
        )

        stored = mock_storage.documents(INSIGHTS_COLLECTION)
        assert [d["_id"] for d in stored] == [batch.insight_id]
        assert stored[0]["analysis_type"] == "performance"
        assert len(batch.insights) == 1
