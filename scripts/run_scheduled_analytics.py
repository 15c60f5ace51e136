#!/usr/bin/env python3
"""
Scheduled analytics runner.

Writes the previous UTC day's snapshots, platform metrics, project
predictions and a live counter sample, then purges expired documents.
Intended to be run once a day from cron; re-running for the same day writes
no duplicate snapshots.

Usage:
    python scripts/run_scheduled_analytics.py
    python scripts/run_scheduled_analytics.py --now 2024-03-02T00:05:00
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path

import structlog

sys.path.insert(0, str(Path(__file__).parent.parent))

from impact_analytics.engine.snapshot_scheduler import SnapshotScheduler
from impact_analytics.models.enums import RunStatus
from impact_analytics.models.timeframe import as_utc_naive
from impact_analytics.storage import get_persistence, get_record_store
from impact_analytics.utils.logging import configure_logging

logger = structlog.get_logger()


def main() -> int:
    parser = argparse.ArgumentParser(description="Run scheduled impact analytics once")
    parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="Override the run time (ISO 8601); the snapshot covers the day before it",
    )
    args = parser.parse_args()

    configure_logging()
    now = as_utc_naive(args.now) if args.now else None

    scheduler = SnapshotScheduler(get_record_store(), get_persistence())
    run = scheduler.process_scheduled_analytics(now=now)

    print(f"Run {run.run_id}: {run.status.value}")
    print(f"  Snapshot date:       {run.snapshot_date}")
    print(f"  Snapshots written:   {run.snapshots_written}")
    print(f"  Predictions written: {run.predictions_written}")
    print(f"  Documents purged:    {run.documents_purged}")
    if run.deferred_steps:
        print(f"  Deferred steps:      {', '.join(run.deferred_steps)}")

    return 0 if run.status == RunStatus.COMPLETED else 1


if __name__ == "__main__":
    sys.exit(main())
