"""API routers for all endpoints."""

from impact_analytics.routers import (
    aggregations,
    insights,
    metrics,
    monitoring,
    predictions,
    records,
    reports,
    scheduler,
    snapshots,
)

__all__ = [
    "reports",
    "metrics",
    "insights",
    "monitoring",
    "scheduler",
    "aggregations",
    "predictions",
    "snapshots",
    "records",
]
