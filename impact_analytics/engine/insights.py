"""
Insight and recommendation generation.

Insights are derived from the records of a window compared with the
preceding window of equal length. Each analysis type has one builder;
builders return no insight when the data says nothing worth reporting.
"""

from datetime import datetime
from typing import Callable, Optional
from uuid import uuid4

import structlog

from impact_analytics.engine import metrics as m
from impact_analytics.engine.constants import HeuristicConstants, get_constants
from impact_analytics.engine.performance import project_risk_score
from impact_analytics.engine.platform_metrics import PlatformRecords
from impact_analytics.models.enums import AnalysisType, InsightType, Priority, ProjectStatus
from impact_analytics.models.reports import (
    InsightBatch,
    Insight,
    PerformanceSection,
    PlatformSummary,
    Recommendation,
)
from impact_analytics.models.timeframe import RESOLUTION, TimeFrame, utc_now
from impact_analytics.storage.persistence import Persistence
from impact_analytics.storage.record_store import RecordStore

logger = structlog.get_logger()

INSIGHTS_COLLECTION = "insights"

# Change (percentage points or percent) above which a movement is notable
NOTABLE_CHANGE = 10.0
QUALITY_TARGET = 70.0
ON_TIME_TARGET = 80.0


class InsightInputs:
    """Records of the analysed window, the preceding window, and everything."""

    def __init__(
        self,
        current: PlatformRecords,
        previous: PlatformRecords,
        everything: PlatformRecords,
        label: str,
        now: datetime,
        constants: HeuristicConstants,
    ):
        self.current = current
        self.previous = previous
        self.everything = everything
        self.label = label
        self.now = now
        self.constants = constants

    @classmethod
    def for_window(
        cls,
        everything: PlatformRecords,
        start: datetime,
        end: datetime,
        label: str,
        now: datetime,
        constants: HeuristicConstants,
    ) -> "InsightInputs":
        span = end - start
        return cls(
            current=everything.within(start, end),
            previous=everything.within(start - span - RESOLUTION, start - RESOLUTION),
            everything=everything,
            label=label,
            now=now,
            constants=constants,
        )


def performance_insights(inputs: InsightInputs) -> list[Insight]:
    """Completion rate of the window against the preceding window."""
    current_rate = m.completion_rate(inputs.current.projects)
    previous_rate = m.completion_rate(inputs.previous.projects)
    if not inputs.current.projects:
        return []

    change = current_rate - previous_rate
    if change > 0:
        title = "Project Completion Rate Improving"
    elif change < 0:
        title = "Project Completion Rate Declining"
    else:
        title = "Project Completion Rate Steady"

    completed = [p for p in inputs.current.projects if p.status == ProjectStatus.COMPLETED]
    return [
        Insight(
            type=InsightType.PERFORMANCE,
            priority=Priority.HIGH if abs(change) >= NOTABLE_CHANGE else Priority.MEDIUM,
            title=title,
            description=(
                f"Project completion rate is {current_rate:.1f}% against {previous_rate:.1f}% "
                f"in the preceding period ({change:+.1f} points)"
            ),
            data={
                "current_rate": current_rate,
                "previous_rate": previous_rate,
                "change": change,
                "projects": len(inputs.current.projects),
            },
            implications=(
                ["Better project quality", "Improved user satisfaction"]
                if change >= 0
                else ["Delivery pipeline is slowing", "Credit supply may tighten"]
            ),
            recommendations=(
                ["Maintain current processes", "Share best practices"]
                if change >= 0
                else ["Review stalled projects", "Increase creator support"]
            ),
            confidence=0.9 if inputs.previous.projects else 0.6,
            timeframe=inputs.label,
            impact={
                "financial": sum(p.funding_required for p in completed),
                "operational": change,
                "strategic": current_rate,
                "environmental": sum(p.target_carbon_impact for p in completed),
            },
        )
    ]


def _type_of(projects_by_id: dict, project_id: Optional[str]) -> Optional[str]:
    project = projects_by_id.get(project_id) if project_id else None
    return project.project_type if project is not None else None


def growth_insights(inputs: InsightInputs) -> list[Insight]:
    """Project type whose credit demand outgrows its supply the most."""
    projects_by_id = inputs.everything.projects_by_id()

    def demand_by_type(records: PlatformRecords) -> dict[str, float]:
        totals: dict[str, float] = {}
        for txn in records.transactions:
            project_type = _type_of(projects_by_id, txn.project_id)
            if project_type is None:
                continue
            totals[project_type] = totals.get(project_type, 0.0) + txn.credit_amount
        return totals

    def supply_by_type(records: PlatformRecords) -> dict[str, float]:
        totals: dict[str, float] = {}
        for project in records.projects:
            if project.project_type is None:
                continue
            totals[project.project_type] = (
                totals.get(project.project_type, 0.0) + project.credits_generated
            )
        return totals

    demand_now, demand_before = demand_by_type(inputs.current), demand_by_type(inputs.previous)
    supply_now, supply_before = supply_by_type(inputs.current), supply_by_type(inputs.previous)

    best = None
    for project_type in sorted(demand_now):
        demand_growth = m.pct_change(demand_now[project_type], demand_before.get(project_type, 0.0))
        supply_growth = m.pct_change(
            supply_now.get(project_type, 0.0), supply_before.get(project_type, 0.0)
        )
        gap = demand_growth - supply_growth
        if gap > 0 and (best is None or gap > best[3]):
            best = (project_type, demand_growth, supply_growth, gap)

    if best is None:
        return []

    project_type, demand_growth, supply_growth, gap = best
    label = project_type.replace("_", " ").title()
    return [
        Insight(
            type=InsightType.OPPORTUNITY,
            priority=Priority.HIGH if gap >= 2 * NOTABLE_CHANGE else Priority.MEDIUM,
            title=f"Expansion Opportunity in {label} Projects",
            description=(
                f"{label} credit demand is growing {gap:.1f}% faster than supply"
            ),
            data={
                "project_type": project_type,
                "demand_growth": demand_growth,
                "supply_growth": supply_growth,
                "gap": gap,
            },
            implications=["Market opportunity", "Pricing power"],
            recommendations=[
                f"Recruit {label.lower()} project creators",
                "Adjust incentive structure",
            ],
            confidence=0.8,
            timeframe=inputs.label,
            impact={
                "financial": sum(
                    t.total_amount
                    for t in inputs.current.transactions
                    if _type_of(projects_by_id, t.project_id) == project_type
                ),
                "operational": supply_growth,
                "strategic": gap,
                "environmental": demand_now[project_type],
            },
        )
    ]


def quality_insights(inputs: InsightInputs) -> list[Insight]:
    """Progress report quality and on-time submission of the window."""
    updates = inputs.current.updates
    if not updates:
        return []

    score = m.quality_score(updates)
    on_time = m.on_time_submission_rate(updates)
    needs_attention = score < QUALITY_TARGET or on_time < ON_TIME_TARGET

    return [
        Insight(
            type=InsightType.QUALITY,
            priority=Priority.HIGH if needs_attention else Priority.LOW,
            title=(
                "Progress Report Quality Needs Attention"
                if needs_attention
                else "Progress Report Quality On Track"
            ),
            description=(
                f"Average report quality score is {score:.1f} with {on_time:.1f}% "
                f"of reports submitted on time"
            ),
            data={
                "quality_score": score,
                "on_time_rate": on_time,
                "verification_rate": m.verification_rate(updates),
                "updates": len(updates),
            },
            implications=(
                ["Verification may be delayed", "Impact claims are harder to audit"]
                if needs_attention
                else ["Reliable impact reporting"]
            ),
            recommendations=(
                ["Require photo evidence", "Send reporting reminders"]
                if needs_attention
                else ["Keep current reporting templates"]
            ),
            confidence=0.85,
            timeframe=inputs.label,
            impact={
                "financial": 0.0,
                "operational": on_time,
                "strategic": score,
                "environmental": sum(u.carbon_impact_to_date for u in updates),
            },
        )
    ]


def market_insights(inputs: InsightInputs) -> list[Insight]:
    """Average credit price and traded volume against the preceding window."""
    current, previous = inputs.current.transactions, inputs.previous.transactions
    if not current:
        return []

    price_now = m.mean(t.unit_price for t in current)
    price_before = m.mean(t.unit_price for t in previous)
    volume_now = sum(t.total_amount for t in current)
    volume_before = sum(t.total_amount for t in previous)
    price_change = m.pct_change(price_now, price_before)
    volume_change = m.pct_change(volume_now, volume_before)

    if price_change > 0:
        title = "Credit Prices Rising"
    elif price_change < 0:
        title = "Credit Prices Softening"
    else:
        title = "Credit Prices Stable"

    return [
        Insight(
            type=InsightType.MARKET,
            priority=Priority.HIGH if abs(volume_change) >= 2 * NOTABLE_CHANGE else Priority.MEDIUM,
            title=title,
            description=(
                f"Average credit price moved {price_change:+.1f}% to {price_now:.2f} while "
                f"traded volume moved {volume_change:+.1f}%"
            ),
            data={
                "average_price": price_now,
                "previous_average_price": price_before,
                "price_change": price_change,
                "volume": volume_now,
                "volume_change": volume_change,
            },
            implications=(
                ["Demand is outpacing supply"] if price_change > 0 else ["Buyers have pricing leverage"]
            ),
            recommendations=(
                ["Bring more verified supply to market"]
                if price_change > 0
                else ["Promote premium credit categories"]
            ),
            confidence=0.75 if previous else 0.5,
            timeframe=inputs.label,
            impact={
                "financial": volume_now - volume_before,
                "operational": volume_change,
                "strategic": price_change,
                "environmental": sum(t.credit_amount for t in current),
            },
        )
    ]


def risk_insights(inputs: InsightInputs) -> list[Insight]:
    """Active projects whose risk score is above the high-risk threshold."""
    active = [p for p in inputs.everything.projects if p.status == ProjectStatus.ACTIVE]
    scored = [(p, project_risk_score(p, inputs.now, inputs.constants)) for p in active]
    risky = [(p, s) for p, s in scored if s > inputs.constants.high_risk_score]
    if not risky:
        return []

    return [
        Insight(
            type=InsightType.RISK,
            priority=Priority.CRITICAL if len(risky) >= 3 else Priority.HIGH,
            title=f"{len(risky)} High-Risk Active Projects",
            description=(
                f"{len(risky)} of {len(active)} active projects score above "
                f"{inputs.constants.high_risk_score:.0f} on the risk scale"
            ),
            data={
                "high_risk_projects": [p.id for p, _ in risky],
                "average_risk_score": m.mean(s for _, s in risky),
                "active_projects": len(active),
            },
            implications=["Delivery delays likely", "Credit issuance at risk"],
            recommendations=["Schedule project reviews", "Secure contingency funding"],
            confidence=0.8,
            timeframe=inputs.label,
            impact={
                "financial": sum(p.funding_required for p, _ in risky),
                "operational": float(len(risky)),
                "strategic": m.safe_ratio(len(risky), len(active)),
                "environmental": sum(p.target_carbon_impact for p, _ in risky),
            },
        )
    ]


INSIGHT_BUILDERS: dict[AnalysisType, Callable[[InsightInputs], list[Insight]]] = {
    AnalysisType.PERFORMANCE: performance_insights,
    AnalysisType.GROWTH: growth_insights,
    AnalysisType.QUALITY: quality_insights,
    AnalysisType.MARKET: market_insights,
    AnalysisType.RISK: risk_insights,
}


def recommend(
    summary: Optional[PlatformSummary],
    performance: Optional[PerformanceSection],
    insights: list[Insight],
    benchmark_average: float = 75.0,
) -> list[Recommendation]:
    """Platform recommendations from the computed sections and insights."""
    recommendations = []

    if summary is not None and summary.total_projects and summary.success_rate < benchmark_average:
        recommendations.append(
            Recommendation(
                category="performance",
                priority=Priority.HIGH,
                title="Improve Project Completion",
                description="Focus creator support on projects that are close to completion",
                rationale=(
                    f"Success rate of {summary.success_rate:.1f}% is below the industry "
                    f"average of {benchmark_average:.1f}%"
                ),
                timeline="3 months",
            )
        )

    if performance is not None and performance.quality_score and performance.quality_score < QUALITY_TARGET:
        recommendations.append(
            Recommendation(
                category="quality",
                priority=Priority.MEDIUM,
                title="Raise Progress Report Quality",
                description="Require photo evidence and detailed descriptions on every report",
                rationale=f"Average report quality score is {performance.quality_score:.1f}",
                timeline="6 weeks",
            )
        )

    if summary is not None and summary.period_growth.get("revenue", 0.0) < 0:
        recommendations.append(
            Recommendation(
                category="growth",
                priority=Priority.HIGH,
                title="Recover Revenue Growth",
                description="Re-engage past buyers and widen the credit catalogue",
                rationale=(
                    f"Revenue moved {summary.period_growth['revenue']:+.1f}% against the "
                    f"preceding period"
                ),
                timeline="2 months",
            )
        )

    for insight in insights:
        if insight.type == InsightType.RISK:
            recommendations.append(
                Recommendation(
                    category="risk",
                    priority=insight.priority,
                    title="Review High-Risk Projects",
                    description="; ".join(insight.recommendations),
                    rationale=insight.description,
                    timeline="2 weeks",
                )
            )

    return recommendations


class InsightGenerator:
    """
    On-demand insight generation.

    Fetches every domain once, slices the analysed and preceding windows in
    memory and persists the generated batch to the insights collection.
    """

    def __init__(
        self,
        record_store: RecordStore,
        persistence: Persistence,
        constants: Optional[HeuristicConstants] = None,
    ):
        self.record_store = record_store
        self.persistence = persistence
        self.constants = constants or get_constants()

    def generate_insights(
        self,
        analysis_type: AnalysisType,
        timeframe: TimeFrame,
        now: Optional[datetime] = None,
    ) -> InsightBatch:
        now = now or utc_now()
        analysis_type = AnalysisType(analysis_type)

        everything = PlatformRecords.load(self.record_store)
        label = f"{timeframe.start:%Y-%m-%d} to {timeframe.end:%Y-%m-%d}"
        inputs = InsightInputs.for_window(
            everything, timeframe.start, timeframe.end, label, now, self.constants
        )

        batch = InsightBatch(
            insight_id=str(uuid4()),
            analysis_type=analysis_type.value,
            insights=INSIGHT_BUILDERS[analysis_type](inputs),
            generated_at=now,
        )
        self.persistence.insert(INSIGHTS_COLLECTION, batch, doc_id=batch.insight_id)

        logger.info(
            "insights_generated",
            insight_id=batch.insight_id,
            analysis_type=analysis_type.value,
            insights=len(batch.insights),
        )
        return batch
