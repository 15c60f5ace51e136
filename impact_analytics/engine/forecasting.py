"""
Trend & Forecast Estimator.

Deterministic, explainable heuristics over a bucketed series:
- classify_trend: first-to-last delta with a coefficient-of-variation
  volatility override
- forecast: mean bucket-over-bucket growth compounded to each horizon, with
  fixed conservative/expected/optimistic scenarios
- analyze_series: both of the above plus a least-squares slope
"""

import math
from typing import Optional

import numpy as np
import structlog
from scipy import stats

from impact_analytics.engine.constants import HeuristicConstants, get_constants
from impact_analytics.models.enums import ForecastHorizon, Granularity, TrendDirection
from impact_analytics.models.forecast import Forecast, Scenario, TrendAnalysis

logger = structlog.get_logger()

# Buckets per horizon (quarter, year) for each granularity. A horizon is never
# shorter than one bucket: at quarterly granularity the next period is the next
# quarter, and at yearly granularity all three horizons are the next bucket.
HORIZON_BUCKETS = {
    Granularity.HOURLY: (2184, 8760),
    Granularity.DAILY: (91, 365),
    Granularity.WEEKLY: (13, 52),
    Granularity.MONTHLY: (3, 12),
    Granularity.QUARTERLY: (1, 4),
    Granularity.YEARLY: (1, 1),
}

SCENARIO_ASSUMPTIONS = {
    "conservative": ["Growth slows below the observed rate"],
    "expected": ["Observed growth rate continues"],
    "optimistic": ["Growth accelerates above the observed rate"],
}


def coefficient_of_variation(values: list[float]) -> float:
    """Population standard deviation over |mean|; 0 for empty or zero-mean series."""
    if not values:
        return 0.0
    arr = np.asarray(values, dtype=np.float64)
    center = float(np.mean(arr))
    if center == 0.0:
        return 0.0
    return float(np.std(arr)) / abs(center)


def delta_pct(values: list[float]) -> float:
    """Percent change from first to last value; 0 when the first value is 0."""
    if len(values) < 2 or values[0] == 0:
        return 0.0
    return (values[-1] - values[0]) / values[0] * 100.0


def classify_trend(
    values: list[float],
    constants: Optional[HeuristicConstants] = None,
) -> TrendDirection:
    """
    Classify a series as increasing, decreasing, stable or volatile.

    Volatility (CV above the threshold) overrides the delta direction.
    """
    constants = constants or get_constants()
    if coefficient_of_variation(values) > constants.volatility_cv_threshold:
        return TrendDirection.VOLATILE

    delta = delta_pct(values)
    if delta > constants.trend_threshold_pct:
        return TrendDirection.INCREASING
    if delta < -constants.trend_threshold_pct:
        return TrendDirection.DECREASING
    return TrendDirection.STABLE


def average_growth_rate(values: list[float]) -> Optional[float]:
    """
    Mean of consecutive bucket-over-bucket growth rates (fractions).

    Steps from a zero bucket are skipped. Returns None when no usable rate
    exists.
    """
    rates = [
        (current - previous) / previous
        for previous, current in zip(values, values[1:])
        if previous != 0
    ]
    if not rates:
        return None
    return float(np.mean(rates))


def _compound(rate: float, buckets: float, cap: float) -> float:
    """(1 + rate) ** buckets, capped at `cap`; 0 when the base is non-positive."""
    base = 1.0 + rate
    if base <= 0.0:
        return 0.0
    exponent = buckets * math.log(base)
    return math.exp(min(exponent, math.log(cap)))


def forecast(
    values: list[float],
    granularity: Granularity,
    constants: Optional[HeuristicConstants] = None,
    series: str = "projects",
) -> Forecast:
    """
    Project a bucketed series to the next period, quarter and year.

    Args:
        values: Series in bucket order
        granularity: Bucket width of the series
        constants: Heuristic constants (defaults from settings)
        series: Which fallback growth default applies (projects, users,
            revenue, impact) when the series has no usable growth step
    """
    constants = constants or get_constants()
    granularity = Granularity(granularity)

    rate = average_growth_rate(values)
    rate_source = "history"
    if rate is None:
        rate = constants.fallback_growth_rate(series, granularity)
        rate_source = "default"

    last = float(values[-1]) if values else 0.0
    quarter_buckets, year_buckets = HORIZON_BUCKETS[granularity]
    cap = constants.max_forecast_multiple

    horizon_values = {
        ForecastHorizon.NEXT_PERIOD: last * _compound(rate, 1, cap),
        ForecastHorizon.NEXT_QUARTER: last * _compound(rate, quarter_buckets, cap),
        ForecastHorizon.NEXT_YEAR: last * _compound(rate, year_buckets, cap),
    }

    scenarios = [
        Scenario(
            name=name,
            horizon=horizon,
            probability=constants.scenario_probabilities[name],
            value=value * constants.scenario_multipliers[name],
            assumptions=SCENARIO_ASSUMPTIONS.get(name, []),
        )
        for horizon, value in horizon_values.items()
        for name in constants.scenario_probabilities
    ]

    return Forecast(
        next_period=horizon_values[ForecastHorizon.NEXT_PERIOD],
        next_quarter=horizon_values[ForecastHorizon.NEXT_QUARTER],
        next_year=horizon_values[ForecastHorizon.NEXT_YEAR],
        confidence={
            ForecastHorizon.NEXT_PERIOD: constants.confidence_next_period,
            ForecastHorizon.NEXT_QUARTER: constants.confidence_next_quarter,
            ForecastHorizon.NEXT_YEAR: constants.confidence_next_year,
        },
        growth_rate=rate,
        rate_source=rate_source,
        scenarios=scenarios,
    )


def analyze_series(
    metric: str,
    values: list[float],
    granularity: Granularity,
    constants: Optional[HeuristicConstants] = None,
    series: str = "projects",
    include_forecast: bool = True,
) -> TrendAnalysis:
    """Trend direction, slope and (optionally) forecast of one series."""
    constants = constants or get_constants()

    slope = 0.0
    r_squared = 0.0
    if len(values) >= 2:
        fit = stats.linregress(range(len(values)), values)
        slope = float(fit.slope)
        r_squared = float(fit.rvalue) ** 2 if math.isfinite(fit.rvalue) else 0.0

    analysis = TrendAnalysis(
        metric=metric,
        granularity=granularity,
        direction=classify_trend(values, constants),
        delta_pct=delta_pct(values),
        coefficient_of_variation=coefficient_of_variation(values),
        slope=slope if math.isfinite(slope) else 0.0,
        r_squared=r_squared,
        points=len(values),
        forecast=forecast(values, granularity, constants, series) if include_forecast else None,
    )
    logger.debug(
        "series_analyzed",
        metric=metric,
        direction=analysis.direction.value,
        points=len(values),
    )
    return analysis
