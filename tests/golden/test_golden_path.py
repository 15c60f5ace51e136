"""
Golden Path (End-to-End) Tests for the Impact Analytics engine.

Each test runs a full workflow over one fixed quarter of platform activity:
records are loaded through the record store, then reports, scheduled
snapshots, insights and health checks are produced from them exactly as the
API and the cron entry point would.
"""

from datetime import date, datetime, timedelta

import pytest

from impact_analytics.engine.aggregation import DomainAggregator
from impact_analytics.engine.constants import HeuristicConstants
from impact_analytics.engine.insights import InsightGenerator
from impact_analytics.engine.monitoring import SystemMonitor
from impact_analytics.engine.report_assembler import ReportAssembler
from impact_analytics.engine.snapshot_scheduler import SnapshotScheduler, day_timeframe
from impact_analytics.models.enums import (
    AnalysisType,
    HealthState,
    ProjectStatus,
    RecordDomain,
    ReportType,
    RunStatus,
    UserRole,
)
from impact_analytics.models.reports import ReportOptions, ReportPeriod
from impact_analytics.models.timeframe import TimeFrame
from impact_analytics.storage import Persistence, RecordStore
from tests.conftest import (
    MockStorage,
    make_project,
    make_transaction,
    make_update,
    make_user,
)

pytestmark = pytest.mark.golden

Q1_2024 = ReportPeriod(
    start=datetime(2024, 1, 1), end=datetime(2024, 3, 31, 23, 59, 59), label="Q1 2024"
)
AFTER_Q1 = datetime(2024, 4, 1, 6, 0)


@pytest.fixture
def quarter():
    """
    Q1 2024: two projects created in January (both completed), three in
    February (active), four in March (two active, one under review, one
    rejected); purchases growing month on month at rising prices.
    """
    storage = MockStorage()
    record_store = RecordStore(storage, chunk_size=4, timeout=5.0)
    persistence = Persistence(storage, timeout=5.0)

    projects = [
        make_project(
            id=f"jan-{i}",
            status=ProjectStatus.COMPLETED,
            created_at=datetime(2024, 1, 5 + i),
            completed_at=datetime(2024, 3, 1 + i),
        )
        for i in range(2)
    ]
    projects += [
        make_project(id=f"feb-{i}", project_type="solar", created_at=datetime(2024, 2, 3 + i))
        for i in range(3)
    ]
    projects += [
        make_project(id="mar-0", project_type="wind", created_at=datetime(2024, 3, 2)),
        make_project(id="mar-1", project_type="wind", created_at=datetime(2024, 3, 4)),
        make_project(
            id="mar-2",
            project_type="biogas",
            status=ProjectStatus.UNDER_REVIEW,
            created_at=datetime(2024, 3, 6),
        ),
        make_project(
            id="mar-3",
            project_type="waste_management",
            status=ProjectStatus.REJECTED,
            created_at=datetime(2024, 3, 8),
        ),
    ]

    users = [
        make_user(external_id="admin-1", role=UserRole.ADMIN, created_at=datetime(2023, 12, 1)),
        make_user(external_id="buyer-a", created_at=datetime(2024, 1, 2)),
        make_user(
            external_id="buyer-b",
            created_at=datetime(2024, 2, 2),
            last_login_at=datetime(2024, 3, 31, 20, 0),
        ),
    ]

    transactions = [
        make_transaction("buyer-a", "jan-0", unit_price=20.0, created_at=datetime(2024, 1, 20)),
        make_transaction("buyer-a", "jan-1", unit_price=22.0, created_at=datetime(2024, 2, 10)),
        make_transaction("buyer-b", "jan-0", unit_price=22.0, created_at=datetime(2024, 2, 20)),
        make_transaction("buyer-b", "feb-0", unit_price=25.0, created_at=datetime(2024, 3, 10)),
        make_transaction("buyer-a", "feb-1", unit_price=25.0, created_at=datetime(2024, 3, 30, 10)),
    ]

    updates = [
        make_update("jan-0", reporting_date=datetime(2024, 2, 1), carbon_impact_to_date=400.0),
        make_update("jan-1", reporting_date=datetime(2024, 2, 15), carbon_impact_to_date=300.0),
        make_update("feb-0", reporting_date=datetime(2024, 3, 20), carbon_impact_to_date=150.0),
    ]

    record_store.write(RecordDomain.PROJECTS, projects)
    record_store.write(RecordDomain.USERS, users)
    record_store.write(RecordDomain.TRANSACTIONS, transactions)
    record_store.write(RecordDomain.PROGRESS_UPDATES, updates)

    return {
        "storage": storage,
        "record_store": record_store,
        "persistence": persistence,
        "constants": HeuristicConstants(),
        "transactions": transactions,
    }


# ============================================================================
# Scenario 1: Seed Quarter → Generate Report → Retrieve
# ============================================================================


def test_golden_quarterly_report(quarter):
    """
    Golden path: a platform overview for Q1 with benchmarks and forecasts.

    Verifies the headline totals, growth computed from observed history,
    the completion recommendation, and that the stored report reads back.
    """
    assembler = ReportAssembler(
        quarter["record_store"], quarter["persistence"], constants=quarter["constants"]
    )

    summary = assembler.generate_report(
        ReportType.PLATFORM_OVERVIEW,
        Q1_2024,
        ReportOptions(include_benchmarks=True, include_forecasting=True),
        generated_by="admin-1",
        now=AFTER_Q1,
    )
    report = assembler.get_report(summary.report_id, now=AFTER_Q1)

    assert report is not None
    assert report.title == "Platform Analytics - Platform Overview (Q1 2024)"

    overview = report.sections.summary
    assert overview.total_projects == 9
    assert overview.completed_projects == 2
    assert overview.success_rate == pytest.approx(200 / 9)
    # Projects per month 2, 3, 4: mean of +50% and +33.3%
    assert overview.project_growth.source == "history"
    assert overview.project_growth.month_over_month == pytest.approx(41.6667, abs=1e-3)

    expected_revenue = sum(t.platform_fee for t in quarter["transactions"])
    assert report.sections.financial.total_revenue == pytest.approx(expected_revenue)
    assert summary.metadata["total_revenue"] == pytest.approx(expected_revenue)

    assert report.sections.environmental.total_carbon_offset == pytest.approx(850.0)
    assert report.sections.market.max_price == 25.0
    assert report.sections.users.active_last_30_days == 1

    assert "performance" in [r.category for r in report.recommendations]
    assert {b.metric for b in report.benchmarks} == {
        "project_success_rate",
        "quality_score",
        "impact_efficiency",
    }
    assert set(report.forecasts) == {"projects", "users", "revenue", "impact"}


# ============================================================================
# Scenario 2: Nightly Scheduler → Snapshots → Idempotent Re-run
# ============================================================================


def test_golden_nightly_snapshots(quarter):
    """
    Golden path: three nightly runs, then a repeat of the last one.

    Every night writes one snapshot per domain; the repeat writes none, and
    each stored transaction snapshot matches a direct aggregate of its day.
    """
    scheduler = SnapshotScheduler(
        quarter["record_store"], quarter["persistence"], constants=quarter["constants"]
    )

    runs = [
        scheduler.process_scheduled_analytics(now=datetime(2024, 3, day, 1, 0) + timedelta(days=1))
        for day in (29, 30, 31)
    ]
    repeat = scheduler.process_scheduled_analytics(now=datetime(2024, 4, 1, 3, 0))

    assert [r.status for r in runs] == [RunStatus.COMPLETED] * 3
    assert [r.snapshots_written for r in runs] == [4, 4, 4]
    assert repeat.snapshots_written == 0
    assert runs[0].predictions_written == 5

    persistence = quarter["persistence"]
    assert len(persistence.read_snapshots()) == 12
    stored = {
        s.snapshot_date: s
        for s in persistence.read_snapshots(domain="transactions", start=date(2024, 3, 29))
    }
    assert sorted(stored) == [date(2024, 3, 29), date(2024, 3, 30), date(2024, 3, 31)]

    aggregator = DomainAggregator(quarter["record_store"], quarter["constants"])
    for day, snapshot in stored.items():
        direct = aggregator.aggregate("transactions", day_timeframe(day))
        assert snapshot.data["totals"] == direct.model_dump(mode="json")["totals"]
    assert stored[date(2024, 3, 30)].data["totals"]["transaction_count"] == 1

    manifests = quarter["storage"].documents("scheduler_runs")
    assert len(manifests) == 4

    health = SystemMonitor(
        quarter["record_store"], persistence, quarter["constants"]
    ).system_health(now=AFTER_Q1)
    scheduler_component = next(c for c in health.components if c.component == "scheduler")
    assert scheduler_component.status.status == HealthState.HEALTHY
    assert health.overall.status == HealthState.HEALTHY


# ============================================================================
# Scenario 3: Insights Across Windows
# ============================================================================


def test_golden_insights_per_analysis(quarter):
    """
    Golden path: March against February for every analysis type.

    March completes nothing while February's window holds no completions
    either, prices rise, and the under-review biogas project is not active
    so no project crosses the high-risk threshold.
    """
    generator = InsightGenerator(
        quarter["record_store"], quarter["persistence"], quarter["constants"]
    )
    march = TimeFrame(start=datetime(2024, 3, 1), end=datetime(2024, 3, 31, 23, 59, 59))

    batches = {
        analysis: generator.generate_insights(analysis, march, now=AFTER_Q1)
        for analysis in AnalysisType
    }

    performance = batches[AnalysisType.PERFORMANCE].insights
    assert [i.title for i in performance] == ["Project Completion Rate Steady"]

    market = batches[AnalysisType.MARKET].insights
    assert market[0].title == "Credit Prices Rising"
    assert market[0].data["average_price"] == pytest.approx(25.0)

    assert batches[AnalysisType.RISK].insights == []
    assert len(quarter["storage"].documents("insights")) == len(AnalysisType)
