"""
Metrics Calculator.

Pure functions over record lists. Every ratio goes through safe_ratio /
safe_divide so an empty denominator yields 0, never NaN or Infinity.
"""

import math
from datetime import datetime
from typing import Callable, Iterable, Optional

from impact_analytics.models.analytics import EquivalentMetrics, TypePerformance
from impact_analytics.models.enums import ProjectStatus
from impact_analytics.models.records import ProgressUpdate, Project

APPROVED_STATUSES = {ProjectStatus.APPROVED, ProjectStatus.ACTIVE, ProjectStatus.COMPLETED}

# Named sub-scores of a progress update's quality score
QUALITY_WEIGHTS = {
    "base": 50.0,
    "detailed_description": 15.0,
    "photo_evidence": 20.0,
    "reported_impact": 15.0,
}
DETAILED_DESCRIPTION_LENGTH = 50

# Conversion factors for everyday equivalents
CO2_PER_CAR_TONNES = 4.6
KWH_PER_HOME = 11000.0
TREES_PER_TONNE = 40.0
FUEL_LITERS_PER_TONNE = 113.0
CO2_PER_FLIGHT_TONNES = 0.9


def safe_divide(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0 when the denominator is 0."""
    if not denominator:
        return 0.0
    result = numerator / denominator
    return result if math.isfinite(result) else 0.0


def safe_ratio(numerator: float, denominator: float) -> float:
    """Percentage numerator / denominator × 100, or 0 when the denominator is 0."""
    return safe_divide(numerator, denominator) * 100.0


def pct_change(current: float, previous: float) -> float:
    """Percent change from previous to current; 0 when there is no prior value."""
    if not previous:
        return 0.0
    return (current - previous) / previous * 100.0


def mean(values: Iterable[float]) -> float:
    values = list(values)
    return safe_divide(sum(values), len(values))


def count_where(records: Iterable, predicate: Callable) -> int:
    return sum(1 for r in records if predicate(r))


# =============================================================================
# Rates
# =============================================================================


def success_rate(projects: list[Project]) -> float:
    """Completed projects as a percentage of all projects."""
    return safe_ratio(
        count_where(projects, lambda p: p.status == ProjectStatus.COMPLETED), len(projects)
    )


completion_rate = success_rate


def approval_rate(projects: list[Project]) -> float:
    """Approved, active or completed projects as a percentage of all."""
    return safe_ratio(count_where(projects, lambda p: p.status in APPROVED_STATUSES), len(projects))


def verification_rate(updates: list[ProgressUpdate]) -> float:
    return safe_ratio(count_where(updates, lambda u: u.is_verified), len(updates))


def on_time_submission_rate(updates: list[ProgressUpdate]) -> float:
    """Updates not flagged late; an unknown flag counts as on time."""
    return safe_ratio(count_where(updates, lambda u: u.submitted_on_time is not False), len(updates))


# =============================================================================
# Quality
# =============================================================================


def update_quality_score(update: ProgressUpdate) -> float:
    """Weighted sum of the quality sub-scores earned by one update."""
    score = QUALITY_WEIGHTS["base"]
    if len(update.description or "") > DETAILED_DESCRIPTION_LENGTH:
        score += QUALITY_WEIGHTS["detailed_description"]
    if update.photos:
        score += QUALITY_WEIGHTS["photo_evidence"]
    if update.carbon_impact_to_date > 0:
        score += QUALITY_WEIGHTS["reported_impact"]
    return score


def quality_score(updates: list[ProgressUpdate]) -> float:
    """Average update score, capped at 100; 0 with no updates."""
    if not updates:
        return 0.0
    return min(100.0, mean(update_quality_score(u) for u in updates))


# =============================================================================
# Timeline
# =============================================================================


def is_on_time(project: Project, now: datetime) -> bool:
    estimate = project.estimated_completion_date
    if estimate is None:
        return True
    if project.status == ProjectStatus.COMPLETED:
        completed = project.completed_at or now
        return completed <= estimate
    if project.status == ProjectStatus.ACTIVE:
        return now <= estimate
    return True


def timeline_adherence(projects: list[Project], now: datetime) -> float:
    """
    Percentage of projects with an estimate that are on time.

    100 when no project declares an estimated completion date.
    """
    scheduled = [p for p in projects if p.estimated_completion_date is not None]
    if not scheduled:
        return 100.0
    return safe_ratio(count_where(scheduled, lambda p: is_on_time(p, now)), len(scheduled))


def completion_days(project: Project) -> Optional[float]:
    if project.status != ProjectStatus.COMPLETED or project.completed_at is None:
        return None
    return max(0.0, (project.completed_at - project.created_at).total_seconds() / 86400.0)


def average_completion_days(projects: list[Project]) -> float:
    durations = [d for d in (completion_days(p) for p in projects) if d is not None]
    return mean(durations)


# =============================================================================
# Performance by dimension
# =============================================================================


def _performance_by(projects: list[Project], dimension: Callable[[Project], Optional[str]]):
    groups: dict[str, list[Project]] = {}
    for project in projects:
        category = dimension(project)
        if category is None:
            continue
        groups.setdefault(category, []).append(project)

    results = [
        TypePerformance(
            category=category,
            total=len(members),
            completed=count_where(members, lambda p: p.status == ProjectStatus.COMPLETED),
            success_rate=success_rate(members),
            average_completion_days=average_completion_days(members),
        )
        for category, members in groups.items()
    ]
    return sorted(results, key=lambda r: (-r.total, r.category))


def performance_by_type(projects: list[Project]) -> list[TypePerformance]:
    return _performance_by(projects, lambda p: p.project_type)


def performance_by_region(projects: list[Project]) -> list[TypePerformance]:
    return _performance_by(projects, lambda p: p.region)


# =============================================================================
# Efficiency and equivalents
# =============================================================================


def impact_efficiency(impact: float, funding: float) -> float:
    """tCO2e per dollar of funding."""
    return safe_divide(impact, funding)


def cost_efficiency(impact: float, funding: float) -> float:
    """tCO2e per $1000 of funding."""
    return safe_divide(impact, funding) * 1000.0


def equivalent_metrics(carbon_offset: float, energy_generated: float) -> EquivalentMetrics:
    """Restate carbon (tCO2e) and energy (kWh) as everyday equivalents."""
    return EquivalentMetrics(
        cars_off_road=math.floor(carbon_offset / CO2_PER_CAR_TONNES),
        homes_powered=math.floor(energy_generated / KWH_PER_HOME),
        trees_equivalent=math.floor(carbon_offset * TREES_PER_TONNE),
        fuel_saved_liters=math.floor(carbon_offset * FUEL_LITERS_PER_TONNE),
        flights_offset=math.floor(carbon_offset / CO2_PER_FLIGHT_TONNES),
    )
