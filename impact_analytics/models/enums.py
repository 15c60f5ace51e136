"""
Enumeration types for the analytics engine.

All enums inherit from str to ensure JSON serialization compatibility and
so that plain string filter values compare equal to members.
"""

from enum import Enum


class Granularity(str, Enum):
    """Bucket width used when grouping records over time."""

    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class RecordDomain(str, Enum):
    """Record collections owned by the operational platform."""

    PROJECTS = "projects"
    USERS = "users"
    TRANSACTIONS = "transactions"
    PROGRESS_UPDATES = "progress_updates"
    ALERTS = "alerts"


class SnapshotDomain(str, Enum):
    """Aggregation domains captured by the snapshot scheduler."""

    PROJECTS = "projects"
    USERS = "users"
    TRANSACTIONS = "transactions"
    IMPACT = "impact"


class ProjectStatus(str, Enum):
    """Lifecycle status of a carbon project."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACTIVE = "active"
    COMPLETED = "completed"
    SUSPENDED = "suspended"


class ProjectType(str, Enum):
    """Category of carbon project."""

    REFORESTATION = "reforestation"
    SOLAR = "solar"
    WIND = "wind"
    BIOGAS = "biogas"
    WASTE_MANAGEMENT = "waste_management"
    MANGROVE_RESTORATION = "mangrove_restoration"


class UserRole(str, Enum):
    """Platform role of a user account."""

    PROJECT_CREATOR = "project_creator"
    CREDIT_BUYER = "credit_buyer"
    VERIFIER = "verifier"
    ADMIN = "admin"


class PaymentStatus(str, Enum):
    """Payment state of a credit purchase."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    EXPIRED = "expired"


class MilestoneStatus(str, Enum):
    """Status of a project milestone."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DELAYED = "delayed"
    SKIPPED = "skipped"


class Severity(str, Enum):
    """Severity shared by alerts and predicted risk factors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Priority(str, Enum):
    """Priority attached to insights and recommendations."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TrendDirection(str, Enum):
    """Classified direction of a time series."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    VOLATILE = "volatile"


class ForecastHorizon(str, Enum):
    """Forecast horizons, ordered from shortest to longest."""

    NEXT_PERIOD = "next_period"
    NEXT_QUARTER = "next_quarter"
    NEXT_YEAR = "next_year"


class BenchmarkStatus(str, Enum):
    """Position of a metric relative to reference values."""

    LEADING = "leading"
    COMPETITIVE = "competitive"
    LAGGING = "lagging"


class ReportType(str, Enum):
    """Kinds of analytics report the assembler can build."""

    PLATFORM_OVERVIEW = "platform_overview"
    PERFORMANCE_ANALYTICS = "performance_analytics"
    FINANCIAL_SUMMARY = "financial_summary"
    ENVIRONMENTAL_IMPACT = "environmental_impact"
    MARKET_TRENDS = "market_trends"


class ReportStatus(str, Enum):
    """Report document lifecycle."""

    DRAFT = "draft"
    FINAL = "final"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class AnalysisType(str, Enum):
    """Focus areas for on-demand insight generation."""

    PERFORMANCE = "performance"
    GROWTH = "growth"
    QUALITY = "quality"
    MARKET = "market"
    RISK = "risk"


class InsightType(str, Enum):
    """Classification of a generated insight."""

    PERFORMANCE = "performance"
    OPPORTUNITY = "opportunity"
    QUALITY = "quality"
    MARKET = "market"
    RISK = "risk"


class HealthState(str, Enum):
    """Overall or per-component health classification."""

    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    MAINTENANCE = "maintenance"


class RunStatus(str, Enum):
    """Outcome of a scheduler run."""

    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
