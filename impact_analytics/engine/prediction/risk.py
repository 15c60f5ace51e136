"""
Project risk rules.

Each rule is a pure function of (snapshot, now, constants) returning a
RiskFactor or None. Rules fire independently; RISK_RULES is the ordered
strategy tuple the scorer evaluates.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

from impact_analytics.engine.constants import HeuristicConstants, get_constants
from impact_analytics.models.enums import Severity
from impact_analytics.models.predictions import RiskFactor
from impact_analytics.models.records import ProjectSnapshot

RiskRule = Callable[[ProjectSnapshot, datetime, HeuristicConstants], Optional[RiskFactor]]


def timeline_delay(
    snapshot: ProjectSnapshot, now: datetime, constants: HeuristicConstants
) -> Optional[RiskFactor]:
    """An incomplete milestone is past its planned date."""
    if not any(ms.is_overdue(now) for ms in snapshot.project.milestones):
        return None
    return RiskFactor(
        type="timeline_delay",
        probability=0.8,
        impact="High",
        severity=Severity.HIGH,
        mitigation="Accelerate milestone completion activities",
        timeline_days=30,
    )


def communication_gap(
    snapshot: ProjectSnapshot, now: datetime, constants: HeuristicConstants
) -> Optional[RiskFactor]:
    """No progress update submitted within the gap window."""
    latest = snapshot.latest_update_at
    if latest is not None and latest >= now - timedelta(days=constants.communication_gap_days):
        return None
    return RiskFactor(
        type="communication_gap",
        probability=0.6,
        impact="Medium",
        severity=Severity.MEDIUM,
        mitigation="Establish regular reporting schedule",
        timeline_days=14,
    )


def funding_risk(
    snapshot: ProjectSnapshot, now: datetime, constants: HeuristicConstants
) -> Optional[RiskFactor]:
    if snapshot.project.funding_required <= constants.funding_risk_threshold:
        return None
    return RiskFactor(
        type="funding_risk",
        probability=0.3,
        impact="Critical",
        severity=Severity.HIGH,
        mitigation="Secure additional funding sources",
        timeline_days=60,
    )


RISK_RULES: tuple[RiskRule, ...] = (timeline_delay, communication_gap, funding_risk)


def risk_factors(
    snapshot: ProjectSnapshot,
    now: datetime,
    constants: Optional[HeuristicConstants] = None,
    rules: tuple[RiskRule, ...] = RISK_RULES,
) -> list[RiskFactor]:
    """Every fired rule, in rule order."""
    constants = constants or get_constants()
    fired = (rule(snapshot, now, constants) for rule in rules)
    return [factor for factor in fired if factor is not None]
