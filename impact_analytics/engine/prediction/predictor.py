"""
Predictive Scorer.

Loads the records an entity's rules need, then evaluates the pure rule
functions against them with an explicit `now`.
"""

from datetime import datetime
from typing import Optional

import structlog

from impact_analytics.engine.constants import HeuristicConstants, get_constants
from impact_analytics.engine.forecasting import average_growth_rate
from impact_analytics.engine.grouping import group_by_period
from impact_analytics.engine.metrics import safe_divide
from impact_analytics.errors import NotFound
from impact_analytics.models.enums import Granularity, RecordDomain
from impact_analytics.models.predictions import (
    DemandForecast,
    MarketPrediction,
    PriceForecast,
    PriceRange,
    ProjectPrediction,
    UserPrediction,
)
from impact_analytics.models.records import ProjectSnapshot, Transaction, UserActivity
from impact_analytics.models.timeframe import utc_now
from impact_analytics.storage.record_store import RecordStore

from . import churn, completion, outlook, risk

logger = structlog.get_logger()

DAYS_PER_YEAR = 365.0


def score_project(
    snapshot: ProjectSnapshot,
    now: datetime,
    constants: Optional[HeuristicConstants] = None,
) -> ProjectPrediction:
    """Full prediction for a project from its snapshot."""
    constants = constants or get_constants()
    risks = risk.risk_factors(snapshot, now, constants)
    return ProjectPrediction(
        project_id=snapshot.project.id,
        completion_probability=completion.completion_probability(snapshot, now, constants),
        expected_completion_date=completion.expected_completion_date(snapshot, now, constants),
        risk_factors=risks,
        impact_forecast=outlook.impact_forecast(snapshot),
        budget_forecast=outlook.budget_forecast(snapshot),
        quality_prediction=outlook.quality_prediction(snapshot),
        recommendations=outlook.recommendations(snapshot, risks),
        generated_at=now,
    )


def score_user(
    activity: UserActivity,
    now: datetime,
    constants: Optional[HeuristicConstants] = None,
) -> UserPrediction:
    constants = constants or get_constants()
    churn_probability = churn.churn_probability(activity, now, constants)
    return UserPrediction(
        user_id=activity.user.external_id,
        churn_probability=churn_probability,
        lifetime_value=churn.lifetime_value(activity, constants),
        purchase_probability=churn.purchase_probability(activity, now),
        next_actions=churn.next_actions(activity),
        recommended_interventions=churn.user_interventions(activity, churn_probability, constants),
    )


def annual_demand_growth(
    transactions: list[Transaction], constants: HeuristicConstants
) -> tuple[float, str]:
    """
    Annualized growth of monthly credits traded.

    Falls back to the configured annual rate when no month-over-month rate
    can be observed.
    """
    monthly = group_by_period(transactions, Granularity.MONTHLY)
    series = [sum(t.credit_amount for t in members) for members in monthly.values()]
    rate = average_growth_rate(series)
    if rate is None or rate <= -1.0:
        return constants.fallback_annual_demand_growth, "default"
    return (1.0 + rate) ** 12 - 1.0, "history"


def forecast_market(
    transactions: list[Transaction],
    time_horizon_days: int,
    now: datetime,
    constants: Optional[HeuristicConstants] = None,
) -> MarketPrediction:
    """Credit demand and price compounded over the horizon."""
    constants = constants or get_constants()
    years = time_horizon_days / DAYS_PER_YEAR

    current_demand = sum(t.credit_amount for t in transactions)
    growth, source = annual_demand_growth(transactions, constants)

    volume = sum(t.total_amount for t in transactions)
    average_price = safe_divide(volume, current_demand) or constants.default_credit_price
    price_growth = 1.0 + constants.annual_price_growth

    return MarketPrediction(
        time_horizon_days=time_horizon_days,
        demand_forecast=DemandForecast(
            current_demand=current_demand,
            total_demand=current_demand * (1.0 + growth) ** years,
            annual_growth_rate=growth,
            rate_source=source,
        ),
        price_forecast=PriceForecast(
            current_price=average_price,
            average_price=average_price * price_growth ** years,
            price_range=PriceRange(
                low=average_price * 0.8,
                high=average_price * 1.3,
                most_likely=average_price * price_growth,
                confidence=0.75,
            ),
        ),
        generated_at=now,
    )


class PredictiveScorer:
    """
    Project, user and market predictions over the record store.

    Args:
        record_store: Source of the records each prediction needs
        constants: Heuristic constants (defaults from settings)
    """

    def __init__(self, record_store: RecordStore, constants: Optional[HeuristicConstants] = None):
        self.record_store = record_store
        self.constants = constants or get_constants()

    def project_snapshot(self, project_id: str) -> ProjectSnapshot:
        project = self.record_store.get(RecordDomain.PROJECTS, project_id)
        if project is None:
            raise NotFound(f"Project {project_id} not found")
        updates = self.record_store.fetch_for_parent(RecordDomain.PROGRESS_UPDATES, project_id)
        return ProjectSnapshot(project=project, updates=updates)

    def predict_project(self, project_id: str, now: Optional[datetime] = None) -> ProjectPrediction:
        """
        Raises:
            NotFound: If the project does not exist
        """
        now = now or utc_now()
        prediction = score_project(self.project_snapshot(project_id), now, self.constants)
        logger.info(
            "project_prediction_generated",
            project_id=project_id,
            completion_probability=prediction.completion_probability,
            risks=len(prediction.risk_factors),
        )
        return prediction

    def predict_user(self, user_id: str, now: Optional[datetime] = None) -> UserPrediction:
        """
        Predict behaviour of a user identified by external id.

        Raises:
            NotFound: If the user does not exist
        """
        now = now or utc_now()
        user = self.record_store.user_by_external_id(user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")

        activity = UserActivity(
            user=user,
            purchases=self.record_store.fetch_for_parent(RecordDomain.TRANSACTIONS, user_id),
            projects=self.record_store.fetch_for_parent(RecordDomain.PROJECTS, user_id),
        )
        prediction = score_user(activity, now, self.constants)
        logger.info(
            "user_prediction_generated",
            user_id=user_id,
            churn_probability=round(prediction.churn_probability, 3),
        )
        return prediction

    def predict_market(
        self, time_horizon_days: int = 365, now: Optional[datetime] = None
    ) -> MarketPrediction:
        now = now or utc_now()
        transactions = self.record_store.fetch(RecordDomain.TRANSACTIONS)
        prediction = forecast_market(transactions, time_horizon_days, now, self.constants)
        logger.info(
            "market_prediction_generated",
            horizon_days=time_horizon_days,
            transactions=len(transactions),
            rate_source=prediction.demand_forecast.rate_source,
        )
        return prediction
