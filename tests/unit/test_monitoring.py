"""
Unit tests for live counters, the open alert list and system health.
"""

from datetime import timedelta

import pytest

from impact_analytics.engine.monitoring import (
    SCHEDULER_RUNS_COLLECTION,
    SystemMonitor,
    alert_score,
    health_state,
)
from impact_analytics.errors import DataFetchError
from impact_analytics.models.enums import HealthState, RecordDomain, Severity
from impact_analytics.models.system import SchedulerRun
from tests.conftest import NOW, make_alert


@pytest.fixture
def monitor(record_store, persistence, constants):
    return SystemMonitor(record_store, persistence, constants)


def component(health, name):
    return next(c for c in health.components if c.component == name)


class TestScoring:
    @pytest.mark.parametrize(
        "score,state",
        [
            (100.0, HealthState.HEALTHY),
            (90.0, HealthState.HEALTHY),
            (89.9, HealthState.WARNING),
            (70.0, HealthState.WARNING),
            (40.0, HealthState.CRITICAL),
            (39.9, HealthState.MAINTENANCE),
        ],
    )
    def test_health_state(self, score, state):
        assert health_state(score) == state

    def test_alert_score_weights(self, constants):
        alerts = [
            make_alert(Severity.CRITICAL),
            make_alert(Severity.HIGH),
            make_alert(Severity.MEDIUM),
        ]
        # 100 - 20 - 10 - 3 * 2
        assert alert_score(alerts, constants) == 64.0

    def test_alert_score_floor(self, constants):
        alerts = [make_alert(Severity.CRITICAL) for _ in range(10)]
        assert alert_score(alerts, constants) == 0.0

    def test_alert_score_no_alerts(self, constants):
        assert alert_score([], constants) == 100.0


class TestCurrentMetrics:
    def test_current_metrics_counters(self, monitor, seed, platform):
        seed(
            RecordDomain.ALERTS,
            [make_alert(), make_alert(is_resolved=True)],
        )

        metrics = monitor.current_metrics(now=NOW)

        assert metrics.active_users == 1
        assert metrics.active_projects == 1
        assert metrics.unresolved_alerts == 1
        assert metrics.timestamp == NOW

    def test_current_metrics_recent_transactions(self, monitor, platform):
        metrics = monitor.current_metrics(now=NOW - timedelta(hours=12))

        # Only the purchase made a day before NOW falls in the previous 24 hours
        assert metrics.recent_transactions == 1


class TestActiveAlerts:
    def test_active_alerts_newest_first(self, monitor, seed):
        older = make_alert(Severity.HIGH, created_at=NOW - timedelta(hours=5))
        newer = make_alert(Severity.LOW, created_at=NOW - timedelta(hours=1))
        resolved = make_alert(Severity.CRITICAL, is_resolved=True)
        seed(RecordDomain.ALERTS, [older, newer, resolved])

        alerts = monitor.active_alerts()

        assert [a.id for a in alerts] == [newer.id, older.id]
        assert alerts[0].resolution == "Pending investigation"
        assert alerts[0].affected_projects == ["project-1"]

    def test_active_alerts_by_severity(self, monitor, seed):
        seed(RecordDomain.ALERTS, [make_alert(Severity.HIGH), make_alert(Severity.LOW)])

        alerts = monitor.active_alerts(severity="high")

        assert [a.severity for a in alerts] == ["high"]


class TestSystemHealth:
    def test_healthy_without_alerts(self, monitor):
        health = monitor.system_health(now=NOW)

        assert health.overall.score == 100.0
        assert health.overall.status == HealthState.HEALTHY
        assert health.recommendations == []
        assert component(health, "database").status.status == HealthState.HEALTHY

    def test_no_scheduler_run_is_warning(self, monitor):
        scheduler = component(monitor.system_health(now=NOW), "scheduler")

        assert scheduler.status.status == HealthState.WARNING
        assert scheduler.message == "No scheduler run recorded"

    def test_recent_scheduler_run_is_healthy(self, monitor, persistence):
        run = SchedulerRun(started_at=NOW - timedelta(hours=2))
        persistence.insert(SCHEDULER_RUNS_COLLECTION, run, doc_id=run.run_id)

        scheduler = component(monitor.system_health(now=NOW), "scheduler")

        assert scheduler.status.status == HealthState.HEALTHY
        assert scheduler.details["age_hours"] == pytest.approx(2.0)

    def test_stale_scheduler_run_is_warning(self, monitor, persistence):
        run = SchedulerRun(started_at=NOW - timedelta(hours=30))
        persistence.insert(SCHEDULER_RUNS_COLLECTION, run, doc_id=run.run_id)

        scheduler = component(monitor.system_health(now=NOW), "scheduler")

        assert scheduler.status.status == HealthState.WARNING

    def test_critical_alerts_drive_recommendations(self, monitor, seed):
        seed(
            RecordDomain.ALERTS,
            [make_alert(Severity.CRITICAL), make_alert(Severity.CRITICAL)],
        )

        health = monitor.system_health(now=NOW)

        # 100 - 2 * 20 - 2 * 2
        assert health.overall.score == 56.0
        assert health.overall.status == HealthState.CRITICAL
        assert [r.type for r in health.recommendations] == [
            "immediate_action",
            "performance_optimization",
        ]
        assert len(health.alerts) == 2

    def test_alerts_older_than_a_day_do_not_count(self, monitor, seed):
        seed(RecordDomain.ALERTS, [make_alert(Severity.CRITICAL, created_at=NOW - timedelta(days=2))])

        assert monitor.system_health(now=NOW).overall.score == 100.0

    def test_storage_outage_raises(self, monitor, mock_storage):
        mock_storage.failing = {"read_records"}

        with pytest.raises(DataFetchError):
            monitor.system_health(now=NOW)
