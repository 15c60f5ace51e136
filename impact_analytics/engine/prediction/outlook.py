"""
Impact, budget and quality outlook of a project, plus the recommendations
that follow from its fired risk rules.
"""

from impact_analytics.engine.metrics import quality_score
from impact_analytics.models.enums import Priority
from impact_analytics.models.predictions import (
    BudgetForecast,
    ConfidenceInterval,
    ImpactForecast,
    PredictiveRecommendation,
    QualityPrediction,
    RiskFactor,
)
from impact_analytics.models.records import ProjectSnapshot

IMPACT_VARIANCE_FACTORS = ["Weather conditions", "Resource availability", "Regulatory changes"]
QUALITY_IMPROVEMENTS = [
    "Enhanced photo documentation",
    "More detailed progress descriptions",
    "Regular third-party verification",
]

REMAINING_WORK_BUFFER = 0.1
NEW_PROJECT_BUFFER = 0.15
EXPECTED_QUALITY_GAIN = 5.0


def impact_forecast(snapshot: ProjectSnapshot) -> ImpactForecast:
    """Current impact scaled to 100% progress, or the target before any progress."""
    progress = snapshot.current_progress
    if progress > 0:
        expected = snapshot.current_impact / progress * 100.0
    else:
        expected = snapshot.project.target_carbon_impact
    return ImpactForecast(
        expected_carbon_impact=expected,
        confidence_interval=ConfidenceInterval(
            lower=expected * 0.8, upper=expected * 1.2, confidence=0.85
        ),
        variance_factors=list(IMPACT_VARIANCE_FACTORS),
    )


def budget_forecast(snapshot: ProjectSnapshot) -> BudgetForecast:
    funding = snapshot.project.funding_required
    progress = snapshot.current_progress
    if progress > 0:
        expected = funding * (1 + (100.0 - progress) / 100.0 * REMAINING_WORK_BUFFER)
    else:
        expected = funding * (1 + NEW_PROJECT_BUFFER)
    return BudgetForecast(expected_cost=expected, budget_utilization=progress / 100.0)


def quality_prediction(snapshot: ProjectSnapshot) -> QualityPrediction:
    current = quality_score(snapshot.updates)
    return QualityPrediction(
        expected_quality_score=min(100.0, current + EXPECTED_QUALITY_GAIN),
        current_quality_score=current,
        improvement_opportunities=list(QUALITY_IMPROVEMENTS),
    )


def recommendations(
    snapshot: ProjectSnapshot, risks: list[RiskFactor]
) -> list[PredictiveRecommendation]:
    fired = {r.type for r in risks}
    result = []

    if "timeline_delay" in fired:
        result.append(
            PredictiveRecommendation(
                type="timeline_adjustment",
                priority=Priority.HIGH,
                description="Adjust project timeline to account for identified delays",
                expected_impact="Improved delivery predictability",
                implementation="Revise milestone dates and resource allocation",
                timeline_days=7,
                confidence=0.85,
            )
        )

    if "communication_gap" in fired:
        result.append(
            PredictiveRecommendation(
                type="optimization",
                priority=Priority.MEDIUM,
                description="Establish regular progress reporting schedule",
                expected_impact="Better stakeholder engagement and early issue detection",
                implementation="Set up automated reminders and reporting templates",
                timeline_days=14,
                confidence=0.9,
            )
        )

    if snapshot.current_progress < 50:
        result.append(
            PredictiveRecommendation(
                type="resource_allocation",
                priority=Priority.MEDIUM,
                description="Optimize resource allocation for current project phase",
                expected_impact="Accelerated progress and cost efficiency",
                implementation="Reallocate resources based on current needs",
                timeline_days=21,
                confidence=0.75,
            )
        )

    return result
