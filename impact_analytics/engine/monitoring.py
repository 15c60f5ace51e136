"""
Live Monitoring.

Counters over the most recent activity, the open alert list, and a health
assessment scored from the unresolved alerts of the last 24 hours.
"""

from datetime import datetime, timedelta
from typing import Optional

import structlog

from impact_analytics.engine.constants import HeuristicConstants, get_constants
from impact_analytics.models.enums import (
    HealthState,
    Priority,
    ProjectStatus,
    RecordDomain,
    Severity,
)
from impact_analytics.models.records import Alert
from impact_analytics.models.system import (
    ActiveAlert,
    ComponentHealth,
    CurrentMetrics,
    HealthRecommendation,
    HealthStatus,
    SystemHealth,
)
from impact_analytics.models.timeframe import TimeFrame, as_utc_naive, utc_now
from impact_analytics.storage.persistence import Persistence
from impact_analytics.storage.record_store import RecordStore

logger = structlog.get_logger()

SCHEDULER_RUNS_COLLECTION = "scheduler_runs"

# Score at or above each floor maps to the state (checked in order)
HEALTH_STATES = (
    (90.0, HealthState.HEALTHY),
    (70.0, HealthState.WARNING),
    (40.0, HealthState.CRITICAL),
)

# Storage probe latency bounds in milliseconds
LATENCY_HEALTHY_MS = 100.0
LATENCY_WARNING_MS = 500.0

PENDING_RESOLUTION = "Pending investigation"


def health_state(score: float) -> HealthState:
    for floor, state in HEALTH_STATES:
        if score >= floor:
            return state
    return HealthState.MAINTENANCE


def alert_score(alerts: list[Alert], constants: HeuristicConstants) -> float:
    """100 minus weighted critical, high and total alert counts, clamped to 0..100."""
    critical = sum(1 for a in alerts if a.severity == Severity.CRITICAL)
    high = sum(1 for a in alerts if a.severity == Severity.HIGH)
    score = (
        100.0
        - constants.health_critical_weight * critical
        - constants.health_high_weight * high
        - constants.health_alert_weight * len(alerts)
    )
    return max(0.0, min(100.0, score))


def to_active_alert(alert: Alert) -> ActiveAlert:
    return ActiveAlert(
        id=alert.id,
        type=alert.alert_type,
        severity=alert.severity.value,
        message=alert.message,
        affected_projects=[alert.project_id] if alert.project_id else [],
        timestamp=alert.created_at,
        resolution=alert.resolution or PENDING_RESOLUTION,
    )


class SystemMonitor:
    """
    Live platform counters and health.

    Args:
        record_store: Source of users, projects, transactions and alerts
        persistence: Probed for latency and read for the last scheduler run
        constants: Health weights and the scheduler staleness bound
    """

    def __init__(
        self,
        record_store: RecordStore,
        persistence: Persistence,
        constants: Optional[HeuristicConstants] = None,
    ):
        self.record_store = record_store
        self.persistence = persistence
        self.constants = constants or get_constants()

    def _unresolved_alerts(self, timeframe: Optional[TimeFrame] = None) -> list[Alert]:
        alerts = self.record_store.fetch(RecordDomain.ALERTS, timeframe)
        return [a for a in alerts if not a.is_resolved]

    def current_metrics(self, now: Optional[datetime] = None) -> CurrentMetrics:
        now = now or utc_now()
        last_hour = now - timedelta(hours=1)

        users = self.record_store.fetch(RecordDomain.USERS)
        projects = self.record_store.fetch(RecordDomain.PROJECTS)
        transactions = self.record_store.fetch(
            RecordDomain.TRANSACTIONS, TimeFrame(start=now - timedelta(hours=24), end=now)
        )

        return CurrentMetrics(
            active_users=sum(
                1 for u in users if u.last_login_at is not None and u.last_login_at >= last_hour
            ),
            active_projects=sum(1 for p in projects if p.status == ProjectStatus.ACTIVE),
            recent_transactions=len(transactions),
            unresolved_alerts=len(self._unresolved_alerts()),
            timestamp=now,
        )

    def active_alerts(self, severity: Optional[str] = None) -> list[ActiveAlert]:
        """Unresolved alerts, newest first, optionally of one severity."""
        alerts = self._unresolved_alerts()
        if severity is not None:
            alerts = [a for a in alerts if a.severity == Severity(severity)]
        alerts.sort(key=lambda a: a.created_at, reverse=True)
        return [to_active_alert(a) for a in alerts]

    def system_health(self, now: Optional[datetime] = None) -> SystemHealth:
        """
        Overall health scored from the last 24 hours of unresolved alerts.

        The database component reports the storage probe latency and the
        scheduler component the age of the most recent scheduler run.
        """
        now = now or utc_now()
        alerts = self._unresolved_alerts(TimeFrame(start=now - timedelta(hours=24), end=now))
        score = alert_score(alerts, self.constants)
        critical = sum(1 for a in alerts if a.severity == Severity.CRITICAL)

        components = [
            self._database_health(now),
            ComponentHealth(
                component="alerting",
                status=HealthStatus(status=health_state(score), score=score, last_checked=now),
                details={
                    "critical": float(critical),
                    "high": float(sum(1 for a in alerts if a.severity == Severity.HIGH)),
                    "total": float(len(alerts)),
                },
            ),
            self._scheduler_health(now),
        ]

        recommendations = []
        if critical:
            recommendations.append(
                HealthRecommendation(
                    type="immediate_action",
                    priority=Priority.CRITICAL,
                    description=f"{critical} critical alerts require immediate attention",
                    action="Investigate and resolve critical alerts",
                )
            )
        if score < 80:
            recommendations.append(
                HealthRecommendation(
                    type="performance_optimization",
                    priority=Priority.HIGH,
                    description="System performance below optimal levels",
                    action="Review system resources and optimize performance",
                )
            )

        health = SystemHealth(
            overall=HealthStatus(status=health_state(score), score=score, last_checked=now),
            components=components,
            alerts=[to_active_alert(a) for a in alerts],
            recommendations=recommendations,
        )
        logger.info(
            "system_health_checked",
            score=score,
            status=health.overall.status.value,
            alerts=len(alerts),
        )
        return health

    def _database_health(self, now: datetime) -> ComponentHealth:
        latency = self.persistence.ping()
        if latency < LATENCY_HEALTHY_MS:
            status, score = HealthState.HEALTHY, 100.0
        elif latency < LATENCY_WARNING_MS:
            status, score = HealthState.WARNING, 75.0
        else:
            status, score = HealthState.CRITICAL, 40.0
        return ComponentHealth(
            component="database",
            status=HealthStatus(status=status, score=score, last_checked=now),
            details={"latency_ms": round(latency, 3)},
            message=f"Storage responded in {latency:.1f}ms",
        )

    def _scheduler_health(self, now: datetime) -> ComponentHealth:
        runs = self.persistence.query(SCHEDULER_RUNS_COLLECTION, limit=1)
        if not runs:
            return ComponentHealth(
                component="scheduler",
                status=HealthStatus(status=HealthState.WARNING, score=70.0, last_checked=now),
                message="No scheduler run recorded",
            )

        started_at = as_utc_naive(datetime.fromisoformat(runs[0]["started_at"]))
        age_hours = max(0.0, (now - started_at).total_seconds() / 3600.0)
        if age_hours <= self.constants.scheduler_stale_hours:
            status, score = HealthState.HEALTHY, 100.0
            message = f"Last run {age_hours:.1f}h ago"
        else:
            status, score = HealthState.WARNING, 70.0
            message = f"Last run {age_hours:.1f}h ago, older than {self.constants.scheduler_stale_hours}h"
        return ComponentHealth(
            component="scheduler",
            status=HealthStatus(status=status, score=score, last_checked=now),
            details={"age_hours": round(age_hours, 2)},
            message=message,
        )
