"""
Trend and forecast models.

Forecasts are deterministic heuristics: a per-bucket growth rate compounded
over each horizon, with fixed scenario multipliers around the expected value.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from impact_analytics.models.enums import ForecastHorizon, Granularity, TrendDirection


class Scenario(BaseModel):
    """One named outcome for a horizon."""

    name: str = Field(description="conservative, expected or optimistic")
    horizon: ForecastHorizon
    probability: float = Field(ge=0.0, le=1.0)
    value: float
    assumptions: list[str] = Field(default_factory=list)


class Forecast(BaseModel):
    """
    Multi-horizon projection of a series.

    Attributes:
        next_period: Value one bucket ahead
        next_quarter: Value one quarter ahead
        next_year: Value one year ahead
        confidence: Confidence per horizon, strictly decreasing
        growth_rate: Per-bucket growth rate used (fraction, 0.05 = 5%)
        rate_source: "history" or "default"
        scenarios: Conservative/expected/optimistic per horizon
    """

    next_period: float
    next_quarter: float
    next_year: float
    confidence: dict[ForecastHorizon, float]
    growth_rate: float
    rate_source: str = Field(default="history")
    scenarios: list[Scenario] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_confidence_order(self) -> "Forecast":
        """Longer horizons must carry strictly lower confidence."""
        ordered = [self.confidence.get(h) for h in ForecastHorizon]
        if any(c is None for c in ordered):
            raise ValueError("confidence must cover every horizon")
        if not all(a > b for a, b in zip(ordered, ordered[1:])):
            raise ValueError("confidence must strictly decrease with horizon length")
        return self

    def value_for(self, horizon: ForecastHorizon) -> float:
        return {
            ForecastHorizon.NEXT_PERIOD: self.next_period,
            ForecastHorizon.NEXT_QUARTER: self.next_quarter,
            ForecastHorizon.NEXT_YEAR: self.next_year,
        }[horizon]


class TrendAnalysis(BaseModel):
    """
    Direction and strength of a metric series.

    Attributes:
        metric: Series name
        granularity: Bucket width of the series
        direction: increasing, decreasing, stable or volatile
        delta_pct: Percent change from first to last value
        coefficient_of_variation: Population std / |mean|
        slope: Least-squares slope per bucket
        r_squared: Fit quality of the linear slope
        forecast: Projection of the series, when computed
    """

    metric: str
    granularity: Granularity
    direction: TrendDirection
    delta_pct: float = 0.0
    coefficient_of_variation: float = 0.0
    slope: float = 0.0
    r_squared: float = 0.0
    points: int = 0
    forecast: Optional[Forecast] = None


class TrendPoint(BaseModel):
    period: datetime
    value: float
    change: float = 0.0


class PerformanceTrend(BaseModel):
    """Recent bucketed values of one platform metric."""

    metric: str
    granularity: Granularity
    data: list[TrendPoint] = Field(default_factory=list)
    trend: TrendDirection = TrendDirection.STABLE
    average_growth: float = 0.0
