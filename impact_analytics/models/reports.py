"""
Report document models.

A Report is assembled once from a single fetch of the period's records,
persisted append-only, and read back by id until it expires.
"""

from datetime import date, datetime
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from impact_analytics.models.analytics import (
    BenchmarkComparison,
    Breakdown,
    EquivalentMetrics,
    TypePerformance,
)
from impact_analytics.models.enums import (
    InsightType,
    Priority,
    ReportStatus,
    ReportType,
)
from impact_analytics.models.forecast import Forecast, TrendAnalysis
from impact_analytics.models.timeframe import as_utc_naive


class ReportPeriod(BaseModel):
    """Reporting window with a display label (e.g. "Q1 2024")."""

    start: datetime
    end: datetime
    label: str = Field(min_length=1)

    @field_validator("start", "end")
    @classmethod
    def normalize_bounds(cls, v: datetime) -> datetime:
        return as_utc_naive(v)

    @model_validator(mode="after")
    def validate_bounds(self) -> "ReportPeriod":
        if self.start > self.end:
            raise ValueError("period start must not be after end")
        return self


class ReportOptions(BaseModel):
    include_forecasting: bool = False
    include_benchmarks: bool = False
    custom_metrics: list[str] = Field(default_factory=list)


class GrowthMetric(BaseModel):
    """Growth of one quantity at three horizons, in percent."""

    month_over_month: float = 0.0
    quarter_over_quarter: float = 0.0
    year_over_year: float = 0.0
    source: str = Field(default="history", description="history or default")


class PlatformSummary(BaseModel):
    total_projects: int = 0
    active_projects: int = 0
    completed_projects: int = 0
    total_users: int = 0
    total_credits_generated: float = 0.0
    total_credits_traded: float = 0.0
    total_transaction_value: float = 0.0
    average_project_size: float = 0.0
    success_rate: float = 0.0
    project_growth: GrowthMetric = Field(default_factory=GrowthMetric)
    user_growth: GrowthMetric = Field(default_factory=GrowthMetric)
    revenue_growth: GrowthMetric = Field(default_factory=GrowthMetric)
    impact_growth: GrowthMetric = Field(default_factory=GrowthMetric)
    period_growth: dict[str, float] = Field(
        default_factory=dict,
        description="Percent change of each quantity against the preceding window of equal length",
    )
    key_highlights: list[str] = Field(default_factory=list)


class PerformanceSection(BaseModel):
    approval_rate: float = 0.0
    completion_rate: float = 0.0
    average_completion_days: float = 0.0
    verification_rate: float = 0.0
    on_time_submission_rate: float = 0.0
    quality_score: float = 0.0
    timeline_adherence: float = 100.0
    cost_per_project: float = 0.0
    cost_per_credit: float = 0.0
    impact_efficiency: float = 0.0
    type_performance: list[TypePerformance] = Field(default_factory=list)


class FinancialSection(BaseModel):
    total_revenue: float = 0.0
    total_volume: float = 0.0
    transaction_count: int = 0
    average_transaction_value: float = 0.0
    revenue_per_user: float = 0.0
    cost_per_project: float = 0.0
    revenue_by_category: list[Breakdown] = Field(default_factory=list)
    forecast: Optional[Forecast] = None


class ImpactShare(BaseModel):
    category: str
    carbon_offset: float = 0.0
    project_count: int = 0
    percentage: float = 0.0
    efficiency: float = 0.0


class EnvironmentalSection(BaseModel):
    total_carbon_offset: float = 0.0
    total_trees_planted: float = 0.0
    total_energy_generated: float = 0.0
    total_waste_processed: float = 0.0
    total_area_restored: float = 0.0
    equivalents: EquivalentMetrics = Field(default_factory=EquivalentMetrics)
    impact_by_type: list[ImpactShare] = Field(default_factory=list)
    impact_by_region: list[ImpactShare] = Field(default_factory=list)


class MarketSection(BaseModel):
    total_demand: float = 0.0
    total_supply: float = 0.0
    demand_by_type: list[Breakdown] = Field(default_factory=list)
    supply_by_type: list[Breakdown] = Field(default_factory=list)
    average_price: float = 0.0
    min_price: float = 0.0
    max_price: float = 0.0
    pricing_trend: Optional[TrendAnalysis] = None


class UserSection(BaseModel):
    total_users: int = 0
    new_users: int = 0
    roles: list[Breakdown] = Field(default_factory=list)
    organization_types: list[Breakdown] = Field(default_factory=list)
    countries: list[Breakdown] = Field(default_factory=list)
    active_last_30_days: int = 0
    activity_rate: float = 0.0


class ProjectSection(BaseModel):
    total_projects: int = 0
    by_status: list[Breakdown] = Field(default_factory=list)
    by_type: list[Breakdown] = Field(default_factory=list)
    by_region: list[Breakdown] = Field(default_factory=list)
    total_funding: float = 0.0
    average_target_impact: float = 0.0
    average_completion_days: float = 0.0
    on_time_delivery: float = 100.0
    overdue_projects: int = 0


class ReportSections(BaseModel):
    """Computed sections; only those the report type asks for are set."""

    summary: Optional[PlatformSummary] = None
    performance: Optional[PerformanceSection] = None
    financial: Optional[FinancialSection] = None
    environmental: Optional[EnvironmentalSection] = None
    market: Optional[MarketSection] = None
    users: Optional[UserSection] = None
    projects: Optional[ProjectSection] = None
    trends: Optional[list[TrendAnalysis]] = None


class Insight(BaseModel):
    """
    A data-driven observation.

    Attributes:
        type: Insight classification
        priority: How urgently it should be read
        data: The figures the insight was derived from
        implications: What the figures mean for the platform
        recommendations: Suggested responses
        confidence: 0-1
        timeframe: Period the insight speaks to
        impact: Estimated effect by dimension
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    type: InsightType
    priority: Priority
    title: str
    description: str
    data: dict[str, Any] = Field(default_factory=dict)
    implications: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    timeframe: str
    impact: dict[str, float] = Field(default_factory=dict)


class InsightBatch(BaseModel):
    """Insights generated in one on-demand run."""

    insight_id: str
    analysis_type: str
    insights: list[Insight] = Field(default_factory=list)
    generated_at: datetime


class Recommendation(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    category: str
    priority: Priority
    title: str
    description: str
    rationale: str
    timeline: str = ""


class Report(BaseModel):
    """A generated analytics report."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    report_type: ReportType
    title: str
    description: str = ""
    period: ReportPeriod
    status: ReportStatus = ReportStatus.DRAFT
    generated_at: Optional[datetime] = None
    generated_by: str = "system"
    sections: ReportSections = Field(default_factory=ReportSections)
    insights: list[Insight] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    benchmarks: list[BenchmarkComparison] = Field(default_factory=list)
    forecasts: dict[str, Forecast] = Field(default_factory=dict)
    custom_metrics: dict[str, float] = Field(default_factory=dict)
    metadata: dict[str, float] = Field(default_factory=dict)
    expires_at: Optional[datetime] = None


class ReportSummary(BaseModel):
    """What generate_report hands back to the caller."""

    report_id: str
    title: str
    status: ReportStatus
    metadata: dict[str, float]


class Snapshot(BaseModel):
    """
    One day's aggregate of a domain.

    Keyed by (snapshot_date, domain); written once and never updated.
    """

    snapshot_date: date
    domain: str
    period_type: str = "daily"
    data: dict[str, Any]
    created_at: datetime
    expires_at: Optional[datetime] = None
