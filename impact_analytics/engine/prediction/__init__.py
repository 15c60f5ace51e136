"""
Predictive Scorer: rule-based project, user and market predictions.
"""

from .churn import (
    churn_probability,
    lifetime_value,
    next_actions,
    purchase_probability,
    user_interventions,
)
from .completion import completion_probability, expected_completion_date
from .predictor import PredictiveScorer, forecast_market, score_project, score_user
from .risk import RISK_RULES, risk_factors

__all__ = [
    "PredictiveScorer",
    "RISK_RULES",
    "churn_probability",
    "completion_probability",
    "expected_completion_date",
    "forecast_market",
    "lifetime_value",
    "next_actions",
    "purchase_probability",
    "risk_factors",
    "score_project",
    "score_user",
    "user_interventions",
]
