"""
Portfolio performance, project risk scoring and user cohorts.
"""

from datetime import datetime, timedelta
from typing import Optional

import structlog

from impact_analytics.engine import metrics as m
from impact_analytics.engine.benchmark import BenchmarkEngine
from impact_analytics.engine.constants import HeuristicConstants, get_constants
from impact_analytics.engine.grouping import group_by_period
from impact_analytics.errors import NotFound
from impact_analytics.models.analytics import (
    Cohort,
    CohortAnalysis,
    ProjectPerformanceMetrics,
    ProjectRisk,
    RiskSummary,
)
from impact_analytics.models.enums import ProjectStatus, RecordDomain
from impact_analytics.models.records import Project
from impact_analytics.models.timeframe import TimeFrame, utc_now
from impact_analytics.storage.record_store import RecordStore

logger = structlog.get_logger()

RETENTION_WINDOW_DAYS = 30


def project_risk_score(
    project: Project, now: datetime, constants: Optional[HeuristicConstants] = None
) -> float:
    """
    Additive risk score of a project, capped at 100.

    +30 past its estimated completion, +20 above the funding threshold,
    +15 while under review, plus the complexity of its project type.
    """
    constants = constants or get_constants()
    score = 0.0
    if project.estimated_completion_date is not None and now > project.estimated_completion_date:
        score += 30
    if project.funding_required > constants.funding_risk_threshold:
        score += 20
    if project.status == ProjectStatus.UNDER_REVIEW:
        score += 15
    score += constants.type_complexity.get(
        project.project_type or "", constants.default_type_complexity
    )
    return min(100.0, score)


def risk_level(score: float) -> str:
    if score >= 70:
        return "high"
    if score >= 40:
        return "medium"
    return "low"


class PerformanceAnalyzer:
    """
    Performance figures, risk summary and cohorts over the record store.

    Args:
        record_store: Source of projects, updates, users and transactions
        benchmark_engine: Reference comparisons for the portfolio metrics
        constants: Heuristic constants (defaults from settings)
    """

    def __init__(
        self,
        record_store: RecordStore,
        benchmark_engine: Optional[BenchmarkEngine] = None,
        constants: Optional[HeuristicConstants] = None,
    ):
        self.record_store = record_store
        self.benchmark_engine = benchmark_engine or BenchmarkEngine()
        self.constants = constants or get_constants()

    def project_performance(
        self,
        project_id: Optional[str] = None,
        timeframe: Optional[TimeFrame] = None,
        now: Optional[datetime] = None,
    ) -> ProjectPerformanceMetrics:
        """
        Performance of one project, or of every project created in the timeframe.

        Raises:
            NotFound: If project_id is given and unknown
        """
        now = now or utc_now()
        if project_id is not None:
            project = self.record_store.get(RecordDomain.PROJECTS, project_id)
            if project is None:
                raise NotFound(f"Project {project_id} not found")
            projects = [project]
            updates = self.record_store.fetch_for_parent(RecordDomain.PROGRESS_UPDATES, project_id)
        else:
            projects = self.record_store.fetch(RecordDomain.PROJECTS, timeframe)
            updates = self.record_store.fetch(RecordDomain.PROGRESS_UPDATES, timeframe)

        impact = sum(p.target_carbon_impact for p in projects)
        funding = sum(p.funding_required for p in projects)

        result = ProjectPerformanceMetrics(
            project_id=project_id,
            total_projects=len(projects),
            success_rate=m.success_rate(projects),
            average_completion_days=m.average_completion_days(projects),
            quality_score=m.quality_score(updates),
            impact_efficiency=m.impact_efficiency(impact, funding),
            cost_efficiency=m.cost_efficiency(impact, funding),
            timeline_adherence=m.timeline_adherence(projects, now),
            performance_by_type=m.performance_by_type(projects),
            performance_by_region=m.performance_by_region(projects),
        )
        result.benchmarks = self.benchmark_engine.compare_many(
            {
                "success_rate": result.success_rate,
                "quality_score": result.quality_score,
                "impact_efficiency": result.impact_efficiency,
            }
        )

        logger.info(
            "project_performance_computed",
            project_id=project_id,
            projects=len(projects),
            success_rate=round(result.success_rate, 2),
        )
        return result

    def risk_summary(self, now: Optional[datetime] = None) -> RiskSummary:
        """Risk scores across active projects, highest first."""
        now = now or utc_now()
        active = [
            p for p in self.record_store.fetch(RecordDomain.PROJECTS)
            if p.status == ProjectStatus.ACTIVE
        ]

        risks = []
        distribution = {"low": 0, "medium": 0, "high": 0}
        for project in active:
            score = project_risk_score(project, now, self.constants)
            level = risk_level(score)
            distribution[level] += 1
            risks.append(
                ProjectRisk(
                    project_id=project.id, title=project.title, risk_score=score, risk_level=level
                )
            )
        risks.sort(key=lambda r: (-r.risk_score, r.project_id))

        return RiskSummary(
            total_active=len(active),
            average_risk_score=m.mean(r.risk_score for r in risks),
            high_risk_count=m.count_where(
                risks, lambda r: r.risk_score > self.constants.high_risk_score
            ),
            distribution=distribution,
            projects=risks,
        )

    def cohort_analysis(self, timeframe: TimeFrame, now: Optional[datetime] = None) -> CohortAnalysis:
        """
        Group users by registration bucket.

        A user is retained with a login in the last 30 days and a purchaser
        with any purchase on record.
        """
        now = now or utc_now()
        users = self.record_store.fetch(RecordDomain.USERS, timeframe)
        buyers = {t.buyer_id for t in self.record_store.fetch(RecordDomain.TRANSACTIONS)}
        cutoff = now - timedelta(days=RETENTION_WINDOW_DAYS)

        cohorts = []
        for start, members in group_by_period(
            users, timeframe.granularity, tz=timeframe.timezone
        ).items():
            retained = m.count_where(
                members, lambda u: u.last_login_at is not None and u.last_login_at >= cutoff
            )
            purchasers = m.count_where(members, lambda u: u.external_id in buyers)
            cohorts.append(
                Cohort(
                    cohort_start=start,
                    size=len(members),
                    retained=retained,
                    retention_rate=m.safe_ratio(retained, len(members)),
                    purchasers=purchasers,
                    purchase_rate=m.safe_ratio(purchasers, len(members)),
                )
            )
        return CohortAnalysis(timeframe=timeframe, cohorts=cohorts)
