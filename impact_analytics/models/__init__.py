"""
Pydantic v2 data models for the impact analytics engine.

Model Organization:
    - enums: Enumeration types for consistent classification
    - timeframe: Query window and record filters
    - records: Operational records read from the platform
    - analytics: Aggregation results, breakdowns and benchmarks
    - forecast: Trend analyses and multi-horizon forecasts
    - predictions: Project, user and market predictions
    - reports: Report documents, sections, insights and snapshots
    - system: Scheduler run manifests and live monitoring

Usage:
    >>> from impact_analytics.models import TimeFrame, Granularity
    >>> tf = TimeFrame(
    ...     start=datetime(2024, 1, 1),
    ...     end=datetime(2024, 3, 31),
    ...     granularity=Granularity.MONTHLY,
    ... )
"""

# Enumerations
from .enums import (
    AnalysisType,
    BenchmarkStatus,
    ForecastHorizon,
    Granularity,
    HealthState,
    InsightType,
    MilestoneStatus,
    PaymentStatus,
    Priority,
    ProjectStatus,
    ProjectType,
    RecordDomain,
    ReportStatus,
    ReportType,
    RunStatus,
    Severity,
    SnapshotDomain,
    TrendDirection,
    UserRole,
)

# Query scoping
from .timeframe import DataFilters, TimeFrame, ensure_timeframe, utc_now

# Records
from .records import (
    Alert,
    Location,
    Milestone,
    ProgressUpdate,
    Project,
    ProjectSnapshot,
    Transaction,
    User,
    UserActivity,
)

# Aggregation and forecasting
from .analytics import AggregatedResult, BenchmarkComparison, Breakdown, TimeSeriesPoint
from .forecast import Forecast, PerformanceTrend, Scenario, TrendAnalysis

# Predictions
from .predictions import MarketPrediction, ProjectPrediction, RiskFactor, UserPrediction

# Reports
from .reports import (
    Insight,
    InsightBatch,
    Report,
    ReportOptions,
    ReportPeriod,
    ReportSummary,
    Snapshot,
)

# System
from .system import CurrentMetrics, SchedulerRun, SystemHealth

__all__ = [
    # Enums
    "AnalysisType",
    "BenchmarkStatus",
    "ForecastHorizon",
    "Granularity",
    "HealthState",
    "InsightType",
    "MilestoneStatus",
    "PaymentStatus",
    "Priority",
    "ProjectStatus",
    "ProjectType",
    "RecordDomain",
    "ReportStatus",
    "ReportType",
    "RunStatus",
    "Severity",
    "SnapshotDomain",
    "TrendDirection",
    "UserRole",
    # Query scoping
    "DataFilters",
    "TimeFrame",
    "ensure_timeframe",
    "utc_now",
    # Records
    "Alert",
    "Location",
    "Milestone",
    "ProgressUpdate",
    "Project",
    "ProjectSnapshot",
    "Transaction",
    "User",
    "UserActivity",
    # Aggregation and forecasting
    "AggregatedResult",
    "BenchmarkComparison",
    "Breakdown",
    "TimeSeriesPoint",
    "Forecast",
    "PerformanceTrend",
    "Scenario",
    "TrendAnalysis",
    # Predictions
    "MarketPrediction",
    "ProjectPrediction",
    "RiskFactor",
    "UserPrediction",
    # Reports
    "Insight",
    "InsightBatch",
    "Report",
    "ReportOptions",
    "ReportPeriod",
    "ReportSummary",
    "Snapshot",
    # System
    "CurrentMetrics",
    "SchedulerRun",
    "SystemHealth",
]
