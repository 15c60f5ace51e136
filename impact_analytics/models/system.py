"""
System-level models: scheduler run manifests and live monitoring.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from impact_analytics.models.enums import HealthState, Priority, RunStatus
from impact_analytics.models.timeframe import utc_now


class StepOutcome(BaseModel):
    """Result of one scheduler step."""

    step: str
    status: str = Field(description="completed, deferred or failed")
    written: int = 0
    error: Optional[str] = None


class SchedulerRun(BaseModel):
    """
    Manifest of one scheduled analytics run.

    Tracks each step's outcome so a deferred step can be spotted and the
    run replayed on the next tick.

    Attributes:
        run_id: Unique identifier for this run
        started_at: When the run began
        completed_at: When the run finished (None while running)
        snapshot_date: Day the snapshot step aggregated
        snapshots_written: New snapshot rows (0 on a re-run of the same day)
        predictions_written: Project predictions stored
        documents_purged: Expired documents and snapshots removed
        steps: Per-step outcomes
        status: running, completed, partial or failed
    """

    run_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique identifier for this run",
    )
    started_at: datetime = Field(default_factory=utc_now, description="When the run began")
    completed_at: Optional[datetime] = Field(
        default=None, description="When the run finished (None if in progress)"
    )
    snapshot_date: Optional[str] = None
    snapshots_written: int = Field(default=0, ge=0)
    predictions_written: int = Field(default=0, ge=0)
    documents_purged: int = Field(default=0, ge=0)
    steps: list[StepOutcome] = Field(default_factory=list)
    status: RunStatus = RunStatus.RUNNING

    @field_validator("completed_at")
    @classmethod
    def validate_completion_time(cls, v: Optional[datetime], info) -> Optional[datetime]:
        """Ensure completion time is after start time."""
        if v is not None and "started_at" in info.data:
            if v < info.data["started_at"]:
                raise ValueError("completed_at must be after started_at")
        return v

    @property
    def deferred_steps(self) -> list[str]:
        return [s.step for s in self.steps if s.status != "completed"]


class CurrentMetrics(BaseModel):
    """Live platform counters."""

    active_users: int = 0
    active_projects: int = 0
    recent_transactions: int = 0
    unresolved_alerts: int = 0
    timestamp: datetime


class ActiveAlert(BaseModel):
    id: str
    type: str
    severity: str
    message: str
    affected_projects: list[str] = Field(default_factory=list)
    timestamp: datetime
    resolution: str = "Pending investigation"


class HealthStatus(BaseModel):
    status: HealthState
    score: float = Field(ge=0.0, le=100.0)
    last_checked: datetime


class ComponentHealth(BaseModel):
    component: str
    status: HealthStatus
    details: dict[str, float] = Field(default_factory=dict)
    message: str = ""


class HealthRecommendation(BaseModel):
    type: str
    priority: Priority
    description: str
    action: str


class SystemHealth(BaseModel):
    """Overall health, its components and the alerts behind the score."""

    overall: HealthStatus
    components: list[ComponentHealth] = Field(default_factory=list)
    alerts: list[ActiveAlert] = Field(default_factory=list)
    recommendations: list[HealthRecommendation] = Field(default_factory=list)
