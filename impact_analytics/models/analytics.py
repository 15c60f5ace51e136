"""
Aggregation result models.

An AggregatedResult is the common envelope for every domain aggregation:
totals, per-dimension breakdowns, a bucketed time series, derived metrics
and trend analyses of the main series.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from impact_analytics.models.enums import BenchmarkStatus
from impact_analytics.models.forecast import TrendAnalysis
from impact_analytics.models.timeframe import TimeFrame


class Breakdown(BaseModel):
    """
    One category's share of a dimension.

    Attributes:
        category: Category label
        count: Records in the category
        percentage: Share of counted records, 0-100
        measure_sum: Sum of the measured attribute (0 when no measure)
        growth: Percent change against the preceding window of equal length
    """

    category: str
    count: int = Field(ge=0)
    percentage: float = Field(ge=0.0, le=100.0)
    measure_sum: float = 0.0
    growth: float = 0.0


class TimeSeriesPoint(BaseModel):
    """A metric value at a bucket start."""

    timestamp: datetime
    metric: str
    value: float


class AggregatedResult(BaseModel):
    """Output of a domain aggregation."""

    domain: str
    timeframe: TimeFrame
    totals: dict[str, float] = Field(default_factory=dict)
    breakdowns: dict[str, list[Breakdown]] = Field(default_factory=dict)
    time_series: list[TimeSeriesPoint] = Field(default_factory=list)
    metrics: dict[str, Any] = Field(default_factory=dict)
    trends: list[TrendAnalysis] = Field(default_factory=list)

    def series(self, metric: str) -> list[float]:
        """Values of one metric's series in bucket order."""
        return [p.value for p in self.time_series if p.metric == metric]


class TypePerformance(BaseModel):
    """Success rate and completion time for one project type or region."""

    category: str
    total: int = 0
    completed: int = 0
    success_rate: float = 0.0
    average_completion_days: float = 0.0


class EquivalentMetrics(BaseModel):
    """Carbon and energy figures restated as everyday equivalents."""

    cars_off_road: int = 0
    homes_powered: int = 0
    trees_equivalent: int = 0
    fuel_saved_liters: int = 0
    flights_offset: int = 0


class BenchmarkComparison(BaseModel):
    """
    A metric placed against reference figures.

    Attributes:
        metric: Metric name
        our_value: Platform value
        reference_average: Industry average
        top_performer: Best-in-class value
        percentile: Estimated percentile, 0-100
        status: leading, competitive or lagging
        gap_analysis: One-sentence reading of the gaps
    """

    metric: str
    our_value: float
    reference_average: float
    top_performer: float
    percentile: float = Field(ge=0.0, le=100.0)
    status: BenchmarkStatus
    gap_analysis: str


class ProjectPerformanceMetrics(BaseModel):
    """Performance figures for one project or the whole portfolio."""

    project_id: Optional[str] = None
    total_projects: int = 0
    success_rate: float = 0.0
    average_completion_days: float = 0.0
    quality_score: float = 0.0
    impact_efficiency: float = 0.0
    cost_efficiency: float = 0.0
    timeline_adherence: float = 100.0
    performance_by_type: list[TypePerformance] = Field(default_factory=list)
    performance_by_region: list[TypePerformance] = Field(default_factory=list)
    benchmarks: list[BenchmarkComparison] = Field(default_factory=list)


class ProjectRisk(BaseModel):
    """Heuristic risk score of one active project."""

    project_id: str
    title: str = ""
    risk_score: float = Field(ge=0.0, le=100.0)
    risk_level: str


class RiskSummary(BaseModel):
    """Risk across active projects."""

    total_active: int = 0
    average_risk_score: float = 0.0
    high_risk_count: int = 0
    distribution: dict[str, int] = Field(
        default_factory=lambda: {"low": 0, "medium": 0, "high": 0}
    )
    projects: list[ProjectRisk] = Field(default_factory=list)


class Cohort(BaseModel):
    """Users registered in one bucket."""

    cohort_start: datetime
    size: int = 0
    retained: int = 0
    retention_rate: float = 0.0
    purchasers: int = 0
    purchase_rate: float = 0.0


class CohortAnalysis(BaseModel):
    timeframe: TimeFrame
    cohorts: list[Cohort] = Field(default_factory=list)
