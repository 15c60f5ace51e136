"""
Unit tests for the scheduled analytics run: daily snapshots, idempotent
re-runs, deferred steps and the run manifest.
"""

import time
from datetime import date, datetime, timedelta

import pytest

from impact_analytics.engine.monitoring import SCHEDULER_RUNS_COLLECTION
from impact_analytics.engine.snapshot_scheduler import (
    PERFORMANCE_COLLECTION,
    PREDICTIONS_COLLECTION,
    REALTIME_COLLECTION,
    SnapshotScheduler,
    day_timeframe,
    previous_utc_day,
    run_status,
)
from impact_analytics.models.enums import RunStatus
from impact_analytics.models.system import StepOutcome
from impact_analytics.storage import Persistence
from tests.conftest import NOW


@pytest.fixture
def scheduler(record_store, persistence, constants):
    return SnapshotScheduler(record_store, persistence, constants=constants)


class TestHelpers:
    def test_previous_utc_day(self):
        assert previous_utc_day(datetime(2024, 3, 1, 0, 30)) == date(2024, 2, 29)

    def test_day_timeframe_covers_whole_day(self):
        timeframe = day_timeframe(date(2024, 3, 14))

        assert timeframe.start == datetime(2024, 3, 14)
        assert timeframe.end.date() == date(2024, 3, 14)
        assert timeframe.end.hour == 23

    @pytest.mark.parametrize(
        "statuses,expected",
        [
            (["completed", "completed"], RunStatus.COMPLETED),
            (["completed", "deferred"], RunStatus.PARTIAL),
            (["deferred", "deferred"], RunStatus.FAILED),
        ],
    )
    def test_run_status(self, statuses, expected):
        steps = [StepOutcome(step=str(i), status=s) for i, s in enumerate(statuses)]
        assert run_status(steps) == expected


class TestProcessScheduledAnalytics:
    def test_run_writes_every_step(self, scheduler, persistence, mock_storage, platform):
        run = scheduler.process_scheduled_analytics(now=NOW)

        assert run.status == RunStatus.COMPLETED
        assert run.snapshot_date == "2024-03-14"
        assert run.snapshots_written == 4
        assert run.predictions_written == 1
        assert [s.step for s in run.steps] == [
            "daily_snapshots",
            "performance_metrics",
            "project_predictions",
            "realtime_metrics",
            "purge_expired",
        ]

        snapshots = persistence.read_snapshots()
        assert sorted(s.domain for s in snapshots) == ["impact", "projects", "transactions", "users"]
        assert all(s.snapshot_date == date(2024, 3, 14) for s in snapshots)

        assert len(mock_storage.documents(PERFORMANCE_COLLECTION)) == 1
        prediction = mock_storage.documents(PREDICTIONS_COLLECTION)[0]
        assert prediction["project_id"] == "proj-solar"
        assert len(mock_storage.documents(REALTIME_COLLECTION)) == 1

    def test_rerun_same_day_writes_no_snapshots(self, scheduler, persistence, platform):
        first = scheduler.process_scheduled_analytics(now=NOW)
        second = scheduler.process_scheduled_analytics(now=NOW + timedelta(hours=1))

        assert first.snapshots_written == 4
        assert second.snapshots_written == 0
        assert second.status == RunStatus.COMPLETED
        assert len(persistence.read_snapshots(domain="transactions")) == 1

    def test_transaction_snapshot_holds_previous_day(self, scheduler, persistence, platform):
        scheduler.process_scheduled_analytics(now=NOW)

        snapshot = persistence.read_snapshots(domain="transactions")[0]

        # Only the solar purchase falls on 2024-03-14
        assert snapshot.data["totals"]["transaction_count"] == 1.0

    def test_manifest_recorded(self, scheduler, mock_storage, platform):
        run = scheduler.process_scheduled_analytics(now=NOW)

        manifests = mock_storage.documents(SCHEDULER_RUNS_COLLECTION)
        assert [m["_id"] for m in manifests] == [run.run_id]
        assert manifests[0]["status"] == "completed"

    def test_deferred_step_leaves_others_running(self, scheduler, mock_storage, platform):
        mock_storage.failing = {"insert_snapshots"}

        run = scheduler.process_scheduled_analytics(now=NOW)

        assert run.status == RunStatus.PARTIAL
        assert run.deferred_steps == ["daily_snapshots"]
        assert run.snapshots_written == 0
        assert run.predictions_written == 1
        assert mock_storage.documents(SCHEDULER_RUNS_COLLECTION)[0]["status"] == "partial"

    def test_storage_outage_fails_run_without_raising(self, scheduler, mock_storage, platform):
        mock_storage.failing = {
            "read_records",
            "insert_document",
            "insert_snapshots",
            "purge_expired",
        }

        run = scheduler.process_scheduled_analytics(now=NOW)

        assert run.status == RunStatus.FAILED
        assert len(run.deferred_steps) == 5
        assert all(s.error for s in run.steps)

    def test_purge_removes_expired_documents(self, scheduler, persistence, mock_storage, platform):
        persistence.insert("reports", {"title": "old"}, expires_at=NOW - timedelta(days=1))
        persistence.insert("reports", {"title": "fresh"}, expires_at=NOW + timedelta(days=1))

        run = scheduler.process_scheduled_analytics(now=NOW)

        assert run.documents_purged == 1
        assert [d["title"] for d in mock_storage.documents("reports")] == ["fresh"]

    def test_timed_out_snapshot_step_is_deferred(self, record_store, mock_storage, platform):
        """A snapshot batch that outlives its deadline is rolled back, not written late."""
        mock_storage.delays = {"insert_snapshots": 0.6}
        scheduler = SnapshotScheduler(record_store, Persistence(mock_storage, timeout=0.2))

        run = scheduler.process_scheduled_analytics(now=NOW)
        time.sleep(0.8)

        assert run.status == RunStatus.PARTIAL
        assert run.deferred_steps == ["daily_snapshots"]
        assert "timed out" in run.steps[0].error
        assert mock_storage.read_snapshots() == []
