"""
Operational record models read by the analytics engine.

Records are owned by the operational platform and are read-only here. Each
model exposes a ``timestamp`` property giving its domain time: ``created_at``
for everything except progress updates, which are placed on the timeline by
their ``reporting_date``.
"""

from datetime import datetime
from typing import Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from impact_analytics.models.enums import (
    MilestoneStatus,
    PaymentStatus,
    ProjectStatus,
    RecordDomain,
    Severity,
    UserRole,
)
from impact_analytics.models.timeframe import as_utc_naive, utc_now


def _normalize(v: Optional[datetime]) -> Optional[datetime]:
    return as_utc_naive(v) if v is not None else None


class Location(BaseModel):
    """Where a project is sited."""

    country: Optional[str] = Field(default=None, description="Country name")
    region: Optional[str] = Field(default=None, description="Region within the country")
    name: Optional[str] = Field(default=None, description="Site name")

    @property
    def label(self) -> Optional[str]:
        """``country-region`` key used by regional breakdowns."""
        if not self.country and not self.region:
            return None
        return f"{self.country or 'Unknown'}-{self.region or 'Unknown'}"


class Milestone(BaseModel):
    """A planned deliverable on a project timeline."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str = Field(default="", description="Milestone title")
    planned_date: Optional[datetime] = Field(default=None, description="Planned completion")
    actual_date: Optional[datetime] = Field(default=None, description="Actual completion")
    status: MilestoneStatus = Field(default=MilestoneStatus.PENDING)

    @field_validator("planned_date", "actual_date")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _normalize(v)

    def is_overdue(self, now: datetime) -> bool:
        """Past its planned date without having been completed."""
        return (
            self.planned_date is not None
            and self.planned_date < now
            and self.status != MilestoneStatus.COMPLETED
        )


class Project(BaseModel):
    """
    A carbon project registered on the platform.

    Attributes:
        id: Project identifier
        creator_id: External id of the creating user
        project_type: Category (reforestation, solar, ...)
        status: Lifecycle status
        location: Site location
        target_carbon_impact: Planned tCO2e offset
        funding_required: Requested funding in USD
        credits_generated: Credits minted so far
        progress_percentage: Declared progress, 0-100
        estimated_completion_date: Declared completion estimate
        completed_at: When the project completed, if it has
        milestones: Embedded milestone plan
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    creator_id: Optional[str] = Field(default=None, description="Creator external id")
    title: str = Field(default="", description="Project title")
    project_type: Optional[str] = Field(default=None, description="Project category")
    status: ProjectStatus = Field(default=ProjectStatus.DRAFT)
    location: Location = Field(default_factory=Location)
    target_carbon_impact: float = Field(default=0.0, ge=0.0)
    funding_required: float = Field(default=0.0, ge=0.0)
    credits_generated: float = Field(default=0.0, ge=0.0)
    progress_percentage: float = Field(default=0.0, ge=0.0, le=100.0)
    estimated_completion_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    milestones: list[Milestone] = Field(default_factory=list)

    @field_validator("estimated_completion_date", "completed_at", "created_at")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _normalize(v)

    @property
    def timestamp(self) -> datetime:
        return self.created_at

    @property
    def region(self) -> Optional[str]:
        return self.location.label


class User(BaseModel):
    """A platform account."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    external_id: str = Field(description="Identity provider subject")
    role: UserRole = Field(default=UserRole.CREDIT_BUYER)
    email: Optional[str] = None
    country: Optional[str] = None
    organization_type: Optional[str] = None
    is_active: bool = True
    login_count: int = Field(default=0, ge=0)
    last_login_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("last_login_at", "created_at")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _normalize(v)

    @property
    def timestamp(self) -> datetime:
        return self.created_at


class Transaction(BaseModel):
    """A credit purchase."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    buyer_id: str = Field(description="Buyer external id")
    project_id: Optional[str] = None
    credit_amount: float = Field(default=0.0, ge=0.0)
    unit_price: float = Field(default=0.0, ge=0.0)
    total_amount: float = Field(default=0.0, ge=0.0)
    platform_fee: float = Field(default=0.0, ge=0.0)
    payment_status: PaymentStatus = Field(default=PaymentStatus.COMPLETED)
    category: Optional[str] = Field(default=None, description="Credit category")
    purchase_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("purchase_date", "created_at")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _normalize(v)

    @property
    def timestamp(self) -> datetime:
        return self.created_at

    @property
    def purchased_at(self) -> datetime:
        return self.purchase_date or self.created_at


class ProgressUpdate(BaseModel):
    """A progress report submitted against a project."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    project_id: str
    reported_by: Optional[str] = None
    update_type: str = Field(default="progress")
    description: str = Field(default="")
    progress_percentage: float = Field(default=0.0, ge=0.0, le=100.0)
    photos: list[str] = Field(default_factory=list)
    reporting_date: datetime = Field(default_factory=utc_now)
    submitted_at: Optional[datetime] = None
    carbon_impact_to_date: float = Field(default=0.0, ge=0.0)
    trees_planted: float = Field(default=0.0, ge=0.0)
    energy_generated: float = Field(default=0.0, ge=0.0)
    waste_processed: float = Field(default=0.0, ge=0.0)
    area_restored: float = Field(default=0.0, ge=0.0)
    is_verified: bool = False
    submitted_on_time: Optional[bool] = None
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("reporting_date", "submitted_at", "created_at")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _normalize(v)

    @property
    def timestamp(self) -> datetime:
        return self.reporting_date

    @property
    def submitted(self) -> datetime:
        """Submission time, falling back to the reporting date."""
        return self.submitted_at or self.reporting_date


class Alert(BaseModel):
    """An operational alert raised against a project or the platform."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    project_id: Optional[str] = None
    alert_type: str = Field(default="system")
    severity: Severity = Field(default=Severity.MEDIUM)
    message: str = Field(default="")
    category: Optional[str] = None
    is_resolved: bool = False
    resolution: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at")
    @classmethod
    def normalize_dates(cls, v: datetime) -> datetime:
        return as_utc_naive(v)

    @property
    def timestamp(self) -> datetime:
        return self.created_at


Record = Union[Project, User, Transaction, ProgressUpdate, Alert]

RECORD_MODELS: dict[RecordDomain, type[BaseModel]] = {
    RecordDomain.PROJECTS: Project,
    RecordDomain.USERS: User,
    RecordDomain.TRANSACTIONS: Transaction,
    RecordDomain.PROGRESS_UPDATES: ProgressUpdate,
    RecordDomain.ALERTS: Alert,
}


def parent_key(domain: RecordDomain, record: BaseModel) -> Optional[str]:
    """Secondary lookup key stored alongside each record."""
    if domain == RecordDomain.PROJECTS:
        return record.creator_id
    if domain == RecordDomain.USERS:
        return record.external_id
    if domain == RecordDomain.TRANSACTIONS:
        return record.buyer_id
    return record.project_id


class ProjectSnapshot(BaseModel):
    """A project together with its progress history, as scored by the predictors."""

    project: Project
    updates: list[ProgressUpdate] = Field(default_factory=list)

    @property
    def updates_by_submission(self) -> list[ProgressUpdate]:
        return sorted(self.updates, key=lambda u: u.submitted)

    @property
    def current_progress(self) -> float:
        """Progress from the latest submitted update, else the declared value."""
        ordered = self.updates_by_submission
        if ordered:
            return ordered[-1].progress_percentage
        return self.project.progress_percentage

    @property
    def latest_update_at(self) -> Optional[datetime]:
        ordered = self.updates_by_submission
        return ordered[-1].submitted if ordered else None

    @property
    def current_impact(self) -> float:
        return max((u.carbon_impact_to_date for u in self.updates), default=0.0)


class UserActivity(BaseModel):
    """A user with their purchases and created projects."""

    user: User
    purchases: list[Transaction] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)

    @property
    def last_purchase_at(self) -> Optional[datetime]:
        return max((t.purchased_at for t in self.purchases), default=None)

    @property
    def total_spent(self) -> float:
        return sum(t.total_amount for t in self.purchases)
