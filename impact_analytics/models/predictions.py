"""
Per-entity prediction models: project outcomes, user behaviour and the
credit market.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from impact_analytics.models.enums import Priority, Severity


class RiskFactor(BaseModel):
    """
    A fired risk rule.

    Attributes:
        type: Rule name (timeline_delay, communication_gap, funding_risk)
        probability: Likelihood the risk materializes, 0-1
        impact: Qualitative impact (High, Medium, Critical)
        severity: Severity bucket
        mitigation: Suggested mitigation
        timeline_days: Days within which the risk is expected to bite
    """

    type: str
    probability: float = Field(ge=0.0, le=1.0)
    impact: str
    severity: Severity
    mitigation: str
    timeline_days: int = Field(ge=0)


class ConfidenceInterval(BaseModel):
    lower: float
    upper: float
    confidence: float = Field(ge=0.0, le=1.0)


class ImpactForecast(BaseModel):
    expected_carbon_impact: float
    confidence_interval: ConfidenceInterval
    variance_factors: list[str] = Field(default_factory=list)


class BudgetForecast(BaseModel):
    expected_cost: float
    cost_variance: float = 0.15
    budget_utilization: float = Field(ge=0.0, le=1.0)
    overrun_probability: float = Field(default=0.25, ge=0.0, le=1.0)


class QualityPrediction(BaseModel):
    expected_quality_score: float = Field(ge=0.0, le=100.0)
    current_quality_score: float = Field(ge=0.0, le=100.0)
    improvement_opportunities: list[str] = Field(default_factory=list)


class PredictiveRecommendation(BaseModel):
    """An action suggested by the fired risk rules or progress state."""

    type: str = Field(description="timeline_adjustment, optimization or resource_allocation")
    priority: Priority
    description: str
    expected_impact: str
    implementation: str
    timeline_days: int
    confidence: float = Field(ge=0.0, le=1.0)


class ProjectPrediction(BaseModel):
    """Scored outlook for one project."""

    project_id: str
    completion_probability: float = Field(ge=5.0, le=95.0)
    expected_completion_date: datetime
    risk_factors: list[RiskFactor] = Field(default_factory=list)
    impact_forecast: ImpactForecast
    budget_forecast: BudgetForecast
    quality_prediction: QualityPrediction
    recommendations: list[PredictiveRecommendation] = Field(default_factory=list)
    generated_at: Optional[datetime] = None


class NextAction(BaseModel):
    action: str
    probability: float = Field(ge=0.0, le=1.0)
    timeframe_days: float = Field(ge=0.0)
    value: float = 0.0
    influencing_factors: list[str] = Field(default_factory=list)


class UserIntervention(BaseModel):
    type: str
    timing_days: int
    channel: str
    message: str
    expected_impact: float


class UserPrediction(BaseModel):
    """Scored outlook for one user."""

    user_id: str
    churn_probability: float = Field(ge=0.05, le=0.95)
    lifetime_value: float = Field(ge=0.0)
    purchase_probability: float = Field(ge=0.05, le=0.95)
    next_actions: list[NextAction] = Field(default_factory=list)
    recommended_interventions: list[UserIntervention] = Field(default_factory=list)


class DemandForecast(BaseModel):
    current_demand: float = Field(ge=0.0)
    total_demand: float = Field(ge=0.0)
    annual_growth_rate: float
    rate_source: str = "history"


class PriceRange(BaseModel):
    low: float
    high: float
    most_likely: float
    confidence: float = 0.75


class PriceForecast(BaseModel):
    current_price: float
    average_price: float
    price_range: PriceRange


class MarketPrediction(BaseModel):
    """Credit demand and price projected over a horizon."""

    time_horizon_days: int = Field(ge=1)
    demand_forecast: DemandForecast
    price_forecast: PriceForecast
    generated_at: datetime
