"""
Snapshot Scheduler.

One scheduled tick writes the previous UTC day's domain snapshots, the
platform performance metrics, a batch of project predictions and a live
counter sample, then purges expired documents. A step whose collaborator
call fails is logged and deferred to the next tick; the remaining steps
still run.
"""

import time
from datetime import date, datetime, timedelta
from datetime import time as day_time
from typing import Callable, Optional

import structlog

from impact_analytics.config import Settings, get_settings
from impact_analytics.engine.aggregation import DomainAggregator
from impact_analytics.engine.constants import HeuristicConstants, get_constants
from impact_analytics.engine.monitoring import SCHEDULER_RUNS_COLLECTION, SystemMonitor
from impact_analytics.engine.platform_metrics import get_platform_metrics
from impact_analytics.engine.prediction import PredictiveScorer, score_project
from impact_analytics.errors import DataFetchError
from impact_analytics.models.enums import (
    Granularity,
    ProjectStatus,
    RecordDomain,
    RunStatus,
    SnapshotDomain,
)
from impact_analytics.models.reports import Snapshot
from impact_analytics.models.system import SchedulerRun, StepOutcome
from impact_analytics.models.timeframe import TimeFrame, utc_now
from impact_analytics.storage.persistence import Persistence
from impact_analytics.storage.record_store import RecordStore

logger = structlog.get_logger()

PERFORMANCE_COLLECTION = "performance_metrics"
PREDICTIONS_COLLECTION = "project_predictions"
REALTIME_COLLECTION = "realtime_metrics"
PREDICTION_VERSION = "1.0"


def previous_utc_day(now: datetime) -> date:
    return (now - timedelta(days=1)).date()


def day_timeframe(day: date) -> TimeFrame:
    """The whole UTC day as a single daily bucket."""
    return TimeFrame(
        start=datetime.combine(day, day_time.min),
        end=datetime.combine(day, day_time.max),
        granularity=Granularity.DAILY,
    )


def run_status(steps: list[StepOutcome]) -> RunStatus:
    completed = sum(1 for s in steps if s.status == "completed")
    if completed == len(steps):
        return RunStatus.COMPLETED
    if completed == 0:
        return RunStatus.FAILED
    return RunStatus.PARTIAL


class SnapshotScheduler:
    """
    Scheduled analytics processing.

    Args:
        record_store: Record source for aggregates, metrics and predictions
        persistence: Destination of snapshots, documents and the run manifest
        aggregator: Domain aggregate builder (defaults over record_store)
        scorer: Project prediction source (defaults over record_store)
        monitor: Live counter source (defaults over record_store)
        constants: Heuristic constants
        settings: Batch limit and retention periods
    """

    def __init__(
        self,
        record_store: RecordStore,
        persistence: Persistence,
        aggregator: Optional[DomainAggregator] = None,
        scorer: Optional[PredictiveScorer] = None,
        monitor: Optional[SystemMonitor] = None,
        constants: Optional[HeuristicConstants] = None,
        settings: Optional[Settings] = None,
    ):
        self.record_store = record_store
        self.persistence = persistence
        self.constants = constants or get_constants()
        self.settings = settings or get_settings()
        self.aggregator = aggregator or DomainAggregator(
            record_store, self.constants, week_start=self.settings.week_start
        )
        self.scorer = scorer or PredictiveScorer(record_store, self.constants)
        self.monitor = monitor or SystemMonitor(record_store, persistence, self.constants)

    def process_scheduled_analytics(self, now: Optional[datetime] = None) -> SchedulerRun:
        """
        Run every step once and record the run manifest.

        Re-running for the same day writes no new snapshot rows.
        """
        now = now or utc_now()
        started = time.perf_counter()
        day = previous_utc_day(now)
        run = SchedulerRun(started_at=now, snapshot_date=day.isoformat())

        logger.info("scheduled_analytics_started", run_id=run.run_id, snapshot_date=run.snapshot_date)

        steps: list[tuple[str, Callable[[date, datetime], int]]] = [
            ("daily_snapshots", self.write_snapshots),
            ("performance_metrics", self.write_performance_metrics),
            ("project_predictions", self.write_predictions),
            ("realtime_metrics", self.write_realtime_metrics),
            ("purge_expired", self.purge_expired),
        ]
        for name, step in steps:
            run.steps.append(self._run_step(name, step, day, now))

        written = {s.step: s.written for s in run.steps}
        run.snapshots_written = written["daily_snapshots"]
        run.predictions_written = written["project_predictions"]
        run.documents_purged = written["purge_expired"]
        run.status = run_status(run.steps)
        run.completed_at = now + timedelta(seconds=time.perf_counter() - started)

        try:
            self.persistence.insert(SCHEDULER_RUNS_COLLECTION, run, doc_id=run.run_id)
        except DataFetchError as e:
            logger.warning("scheduler_manifest_deferred", run_id=run.run_id, error=e.message)

        logger.info(
            "scheduled_analytics_finished",
            run_id=run.run_id,
            status=run.status.value,
            snapshots_written=run.snapshots_written,
            predictions_written=run.predictions_written,
            deferred=run.deferred_steps,
        )
        return run

    def _run_step(
        self, name: str, step: Callable[[date, datetime], int], day: date, now: datetime
    ) -> StepOutcome:
        try:
            written = step(day, now)
        except DataFetchError as e:
            logger.warning("scheduler_step_deferred", step=name, error=e.message)
            return StepOutcome(step=name, status="deferred", error=e.message)
        logger.debug("scheduler_step_completed", step=name, written=written)
        return StepOutcome(step=name, status="completed", written=written)

    # =========================================================================
    # Steps
    # =========================================================================

    def write_snapshots(self, day: date, now: datetime) -> int:
        """All four domain aggregates for `day`, inserted in one atomic batch."""
        timeframe = day_timeframe(day)
        expires_at = now + timedelta(days=self.settings.snapshot_retention_days)
        snapshots = [
            Snapshot(
                snapshot_date=day,
                domain=domain.value,
                data=self.aggregator.aggregate(domain.value, timeframe, now=now).model_dump(
                    mode="json"
                ),
                created_at=now,
                expires_at=expires_at,
            )
            for domain in SnapshotDomain
        ]
        return self.persistence.insert_snapshots(snapshots)

    def write_performance_metrics(self, day: date, now: datetime) -> int:
        metrics = get_platform_metrics(self.record_store, None)
        self.persistence.insert(
            PERFORMANCE_COLLECTION,
            {"date": day.isoformat(), "metrics": metrics, "computed_at": now.isoformat()},
            expires_at=now + timedelta(days=self.settings.snapshot_retention_days),
        )
        return 1

    def write_predictions(self, day: date, now: datetime) -> int:
        """Predictions for the oldest active projects, up to the batch limit."""
        active = sorted(
            (
                p for p in self.record_store.fetch(RecordDomain.PROJECTS)
                if p.status == ProjectStatus.ACTIVE
            ),
            key=lambda p: (p.created_at, p.id),
        )[: self.settings.prediction_batch_limit]

        written = 0
        for project in active:
            prediction = score_project(
                self.scorer.project_snapshot(project.id), now, self.constants
            )
            self.persistence.insert(
                PREDICTIONS_COLLECTION,
                {
                    "project_id": project.id,
                    "version": PREDICTION_VERSION,
                    "prediction": prediction.model_dump(mode="json"),
                },
                expires_at=now + timedelta(days=self.settings.snapshot_retention_days),
            )
            written += 1
        return written

    def write_realtime_metrics(self, day: date, now: datetime) -> int:
        self.persistence.insert(REALTIME_COLLECTION, self.monitor.current_metrics(now))
        return 1

    def purge_expired(self, day: date, now: datetime) -> int:
        return self.persistence.purge(now)
