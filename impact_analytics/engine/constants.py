"""
Heuristic constants for trend, forecast, prediction and health scoring.

Every figure the heuristics depend on lives here so that it can be
inspected, overridden per instance and validated in one place.
"""

from functools import lru_cache

from pydantic import BaseModel, Field, model_validator

from impact_analytics.config import get_settings
from impact_analytics.models.enums import Granularity, ProjectType


class HeuristicConstants(BaseModel):
    """
    Tunable parameters for the deterministic heuristics.

    Scenario probabilities must sum to 1 and horizon confidences must
    strictly decrease; both are checked at construction.
    """

    # Trend classification
    trend_threshold_pct: float = Field(default=5.0, gt=0.0)
    volatility_cv_threshold: float = Field(default=0.5, gt=0.0)

    # Forecast horizons
    confidence_next_period: float = Field(default=0.9, gt=0.0, le=1.0)
    confidence_next_quarter: float = Field(default=0.8, gt=0.0, le=1.0)
    confidence_next_year: float = Field(default=0.65, gt=0.0, le=1.0)
    max_forecast_multiple: float = Field(default=1000.0, gt=1.0)

    # Scenarios (name -> probability, multiplier)
    scenario_probabilities: dict[str, float] = Field(
        default_factory=lambda: {"conservative": 0.3, "expected": 0.5, "optimistic": 0.2}
    )
    scenario_multipliers: dict[str, float] = Field(
        default_factory=lambda: {"conservative": 0.8, "expected": 1.0, "optimistic": 1.25}
    )

    # Fallback monthly growth in percent, used when a series has no usable growth step
    fallback_monthly_growth: dict[str, float] = Field(
        default_factory=lambda: {
            "projects": 15.2,
            "users": 15.2,
            "revenue": 12.8,
            "impact": 18.5,
        }
    )

    # Completion
    completion_base: float = 50.0
    completion_progress_weight: float = 0.5
    completion_recent_update_bonus: float = 20.0
    completion_recent_update_days: int = 30
    completion_milestone_weight: float = 30.0
    completion_min: float = 5.0
    completion_max: float = 95.0
    default_completion_days: int = 90
    stalled_completion_days: int = 180
    max_completion_horizon_days: int = 3650

    # Risk rules
    funding_risk_threshold: float = Field(default=100000.0, ge=0.0)
    communication_gap_days: int = 60

    # Churn and purchase behaviour
    churn_base: float = 0.2
    churn_inactive_days: tuple[int, int] = (30, 90)
    churn_inactive_step: float = 0.3
    churn_missing_login_days: int = 365
    churn_engaged_credit: float = 0.2
    churn_idle_penalty: float = 0.4
    churn_recent_credit: float = 0.2
    churn_recent_days: int = 30
    churn_min: float = 0.05
    churn_max: float = 0.95
    ltv_frequency_weight: float = 0.5
    retention_churn_threshold: float = 0.6
    upsell_churn_threshold: float = 0.3

    # Market
    fallback_annual_demand_growth: float = 0.15
    annual_price_growth: float = 0.05
    default_credit_price: float = 25.0

    # Risk score complexity by project type
    type_complexity: dict[str, float] = Field(
        default_factory=lambda: {
            ProjectType.REFORESTATION.value: 10,
            ProjectType.SOLAR.value: 15,
            ProjectType.WIND.value: 20,
            ProjectType.BIOGAS.value: 25,
            ProjectType.WASTE_MANAGEMENT.value: 15,
            ProjectType.MANGROVE_RESTORATION.value: 20,
        }
    )
    default_type_complexity: float = 10.0
    high_risk_score: float = 70.0

    # Health
    health_critical_weight: float = 20.0
    health_high_weight: float = 10.0
    health_alert_weight: float = 2.0
    scheduler_stale_hours: int = 26

    @model_validator(mode="after")
    def validate_scenarios(self) -> "HeuristicConstants":
        """Scenario names must match and probabilities must sum to 1."""
        if set(self.scenario_probabilities) != set(self.scenario_multipliers):
            raise ValueError("scenario probabilities and multipliers must name the same scenarios")
        total = sum(self.scenario_probabilities.values())
        if abs(total - 1.0) > 1e-3:
            raise ValueError(f"scenario probabilities must sum to 1.0, got {total}")
        return self

    @model_validator(mode="after")
    def validate_confidence_order(self) -> "HeuristicConstants":
        """Confidence must strictly decrease with horizon length."""
        if not (
            self.confidence_next_period
            > self.confidence_next_quarter
            > self.confidence_next_year
        ):
            raise ValueError("horizon confidence must strictly decrease")
        return self

    def fallback_growth_rate(self, series: str, granularity: Granularity) -> float:
        """
        Per-bucket growth rate (fraction) from the monthly default for a series.

        Unknown series use the projects default.
        """
        monthly_pct = self.fallback_monthly_growth.get(
            series, self.fallback_monthly_growth["projects"]
        )
        monthly = monthly_pct / 100.0
        buckets_per_month = BUCKETS_PER_MONTH[granularity]
        return (1.0 + monthly) ** (1.0 / buckets_per_month) - 1.0


# Buckets of each granularity in one month
BUCKETS_PER_MONTH = {
    Granularity.HOURLY: 730.0,
    Granularity.DAILY: 365.0 / 12.0,
    Granularity.WEEKLY: 52.0 / 12.0,
    Granularity.MONTHLY: 1.0,
    Granularity.QUARTERLY: 1.0 / 3.0,
    Granularity.YEARLY: 1.0 / 12.0,
}


class BenchmarkReference(BaseModel):
    average: float
    top_performer: float

    @model_validator(mode="after")
    def validate_order(self) -> "BenchmarkReference":
        if self.top_performer < self.average:
            raise ValueError("top performer must not be below the average")
        return self


class BenchmarkTable(BaseModel):
    """Reference values per metric for the Benchmark Engine."""

    references: dict[str, BenchmarkReference] = Field(
        default_factory=lambda: {
            "success_rate": BenchmarkReference(average=75.5, top_performer=92.3),
            "quality_score": BenchmarkReference(average=78.2, top_performer=94.1),
            "impact_efficiency": BenchmarkReference(average=0.45, top_performer=0.78),
            "project_success_rate": BenchmarkReference(average=75.0, top_performer=92.0),
        }
    )

    def get(self, metric: str) -> BenchmarkReference:
        return self.references[metric]


@lru_cache
def get_constants() -> HeuristicConstants:
    """Defaults overlaid with the engine settings."""
    settings = get_settings()
    return HeuristicConstants(
        volatility_cv_threshold=settings.volatility_cv_threshold,
        funding_risk_threshold=settings.funding_risk_threshold,
    )
