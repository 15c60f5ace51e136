"""
Completion outlook of a project: probability and expected date.
"""

from datetime import datetime, timedelta
from typing import Optional

from impact_analytics.engine.constants import HeuristicConstants, get_constants
from impact_analytics.models.enums import MilestoneStatus
from impact_analytics.models.records import ProjectSnapshot

SECONDS_PER_DAY = 86400.0


def milestone_completion_ratio(snapshot: ProjectSnapshot) -> float:
    milestones = snapshot.project.milestones
    if not milestones:
        return 0.0
    completed = sum(1 for ms in milestones if ms.status == MilestoneStatus.COMPLETED)
    return completed / len(milestones)


def completion_probability(
    snapshot: ProjectSnapshot,
    now: datetime,
    constants: Optional[HeuristicConstants] = None,
) -> float:
    """
    Probability (percent) that the project completes.

    base 50, plus half the current progress, plus 20 with an update in the
    last 30 days, plus 30 × the completed milestone ratio; clamped to [5, 95].
    """
    constants = constants or get_constants()
    probability = constants.completion_base
    probability += snapshot.current_progress * constants.completion_progress_weight

    recent_cutoff = now - timedelta(days=constants.completion_recent_update_days)
    if any(recent_cutoff <= u.submitted <= now for u in snapshot.updates):
        probability += constants.completion_recent_update_bonus

    probability += milestone_completion_ratio(snapshot) * constants.completion_milestone_weight
    return min(constants.completion_max, max(constants.completion_min, probability))


def progress_rate(snapshot: ProjectSnapshot) -> Optional[float]:
    """
    Progress points per day between the two most recent submissions.

    None with fewer than two updates.
    """
    ordered = snapshot.updates_by_submission
    if len(ordered) < 2:
        return None
    previous, latest = ordered[-2], ordered[-1]
    elapsed_days = (latest.submitted - previous.submitted).total_seconds() / SECONDS_PER_DAY
    if elapsed_days <= 0:
        return 0.0
    return (latest.progress_percentage - previous.progress_percentage) / elapsed_days


def expected_completion_date(
    snapshot: ProjectSnapshot,
    now: datetime,
    constants: Optional[HeuristicConstants] = None,
) -> datetime:
    """
    Linear extrapolation of the latest progress rate to 100%.

    Fewer than two updates: the declared estimate, or now + 90 days.
    Stalled or regressing progress: the estimate (or now) + 180 days.
    """
    constants = constants or get_constants()
    estimate = snapshot.project.estimated_completion_date

    rate = progress_rate(snapshot)
    if rate is None:
        return estimate or now + timedelta(days=constants.default_completion_days)
    if rate <= 0:
        return (estimate or now) + timedelta(days=constants.stalled_completion_days)

    remaining = max(0.0, 100.0 - snapshot.current_progress)
    days = min(remaining / rate, float(constants.max_completion_horizon_days))
    return now + timedelta(days=days)
