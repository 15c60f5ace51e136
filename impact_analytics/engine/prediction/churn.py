"""
User behaviour rules: churn, purchase likelihood, lifetime value, next
actions and interventions. All pure functions of (activity, now).
"""

from datetime import datetime, timedelta
from typing import Optional

from impact_analytics.engine.constants import HeuristicConstants, get_constants
from impact_analytics.models.enums import ProjectStatus, UserRole
from impact_analytics.models.predictions import NextAction, UserIntervention
from impact_analytics.models.records import UserActivity

SECONDS_PER_DAY = 86400.0

DEFAULT_PURCHASE_INTERVAL_DAYS = 90.0
DEFAULT_ORDER_VALUE = 100.0


def _days_since(ts: Optional[datetime], now: datetime, default: float) -> float:
    if ts is None:
        return default
    return (now - ts).total_seconds() / SECONDS_PER_DAY


def churn_probability(
    activity: UserActivity,
    now: datetime,
    constants: Optional[HeuristicConstants] = None,
) -> float:
    """
    Likelihood the user leaves the platform, clamped to [0.05, 0.95].

    base 0.2; +0.3 inactive > 30 days and +0.3 more > 90 days (a missing
    login counts as 365 days); +0.4 with neither purchases nor projects,
    otherwise -0.2 with > 5 purchases or > 2 projects; -0.2 with a purchase
    or created project in the last 30 days.
    """
    constants = constants or get_constants()
    probability = constants.churn_base

    inactive = _days_since(
        activity.user.last_login_at, now, float(constants.churn_missing_login_days)
    )
    for threshold in constants.churn_inactive_days:
        if inactive > threshold:
            probability += constants.churn_inactive_step

    purchases, projects = len(activity.purchases), len(activity.projects)
    if purchases == 0 and projects == 0:
        probability += constants.churn_idle_penalty
    elif purchases > 5 or projects > 2:
        probability -= constants.churn_engaged_credit

    cutoff = now - timedelta(days=constants.churn_recent_days)
    recent = any(t.purchased_at > cutoff for t in activity.purchases) or any(
        p.created_at > cutoff for p in activity.projects
    )
    if recent:
        probability -= constants.churn_recent_credit

    return min(constants.churn_max, max(constants.churn_min, probability))


def lifetime_value(activity: UserActivity, constants: Optional[HeuristicConstants] = None) -> float:
    """Total spent plus half the average order repeated per past purchase."""
    constants = constants or get_constants()
    count = len(activity.purchases)
    if count == 0:
        return 0.0
    total = activity.total_spent
    average_order = total / count
    return total + average_order * count * constants.ltv_frequency_weight


def purchase_probability(activity: UserActivity, now: datetime) -> float:
    """Likelihood of a purchase soon; buyers only, clamped to [0.05, 0.95]."""
    if activity.user.role != UserRole.CREDIT_BUYER:
        return 0.1

    probability = 0.3
    if activity.purchases:
        probability += 0.4
        since_last = _days_since(activity.last_purchase_at, now, 365.0)
        if since_last < 30:
            probability += 0.2
        if since_last > 180:
            probability -= 0.3
        if len(activity.purchases) > 5:
            probability += 0.1

    return min(0.95, max(0.05, probability))


def purchase_interval_days(activity: UserActivity) -> float:
    """Span of the purchase history divided by its size, or 90 days."""
    if len(activity.purchases) < 2:
        return DEFAULT_PURCHASE_INTERVAL_DAYS
    dates = sorted(t.purchased_at for t in activity.purchases)
    span = (dates[-1] - dates[0]).total_seconds() / SECONDS_PER_DAY
    return span / len(dates)


def next_actions(activity: UserActivity) -> list[NextAction]:
    actions = []
    role = activity.user.role

    if role == UserRole.CREDIT_BUYER:
        count = len(activity.purchases)
        actions.append(
            NextAction(
                action="Purchase carbon credits",
                probability=0.7,
                timeframe_days=purchase_interval_days(activity),
                value=activity.total_spent / count if count else DEFAULT_ORDER_VALUE,
                influencing_factors=[
                    "Past purchase behavior",
                    "Seasonal patterns",
                    "New project availability",
                ],
            )
        )

    if role == UserRole.PROJECT_CREATOR:
        actions.append(
            NextAction(
                action="Submit progress update",
                probability=0.8,
                timeframe_days=30,
                value=50,
                influencing_factors=["Project deadlines", "Reporting schedule", "Milestone completion"],
            )
        )
        if any(p.status == ProjectStatus.COMPLETED for p in activity.projects):
            actions.append(
                NextAction(
                    action="Create new project",
                    probability=0.4,
                    timeframe_days=180,
                    value=1000,
                    influencing_factors=[
                        "Success of previous projects",
                        "Market demand",
                        "Funding availability",
                    ],
                )
            )

    return actions


def user_interventions(
    activity: UserActivity,
    churn: float,
    constants: Optional[HeuristicConstants] = None,
) -> list[UserIntervention]:
    constants = constants or get_constants()
    interventions = []

    if churn > constants.retention_churn_threshold:
        interventions.append(
            UserIntervention(
                type="retention_campaign",
                timing_days=3,
                channel="email",
                message="We miss you! Check out these new sustainable projects",
                expected_impact=0.3,
            )
        )

    if activity.user.role == UserRole.CREDIT_BUYER and churn < constants.upsell_churn_threshold:
        interventions.append(
            UserIntervention(
                type="upsell_opportunity",
                timing_days=14,
                channel="in_app",
                message="Double your impact with premium carbon credits",
                expected_impact=0.4,
            )
        )

    return interventions
