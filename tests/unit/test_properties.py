"""
Property-based tests using Hypothesis.

These tests check the bounds and invariants of the aggregation, forecasting,
prediction and benchmark heuristics over generated inputs.
"""

from datetime import datetime, timedelta

import hypothesis.strategies as st
import pytest
from hypothesis import given, settings

from impact_analytics.engine.aggregation import breakdown_by
from impact_analytics.engine.benchmark import classify, estimate_percentile
from impact_analytics.engine.constants import HeuristicConstants
from impact_analytics.engine.forecasting import classify_trend, forecast
from impact_analytics.engine.grouping import bucket_start, group_by_period
from impact_analytics.engine.monitoring import alert_score
from impact_analytics.engine.prediction import churn_probability, completion_probability
from impact_analytics.models.enums import BenchmarkStatus, Granularity, Severity, TrendDirection
from impact_analytics.models.records import ProjectSnapshot, UserActivity
from tests.conftest import NOW, make_alert, make_project, make_transaction, make_update, make_user

CONSTANTS = HeuristicConstants()

timestamps = st.datetimes(min_value=datetime(2020, 1, 1), max_value=datetime(2026, 12, 31))
granularities = st.sampled_from(list(Granularity))
finite = dict(allow_nan=False, allow_infinity=False)


# =============================================================================
# Aggregation and grouping
# =============================================================================


@given(categories=st.lists(st.sampled_from(["a", "b", "c", None]), min_size=1, max_size=60))
@settings(max_examples=100)
def test_prop_breakdown_percentages_sum_to_100(categories):
    """Shares of the counted records sum to 100, or are all 0 when nothing counted."""
    records = [{"kind": c} for c in categories]

    result = breakdown_by(records, lambda r: r["kind"])

    total = sum(b.percentage for b in result)
    if any(c is not None for c in categories):
        assert total == pytest.approx(100.0)
    else:
        assert result == []
    assert sum(b.count for b in result) == sum(1 for c in categories if c is not None)


@given(stamps=st.lists(timestamps, max_size=40), granularity=granularities)
@settings(max_examples=100)
def test_prop_grouping_is_a_partition(stamps, granularity):
    """Every record lands in exactly one bucket, and in the one holding its timestamp."""
    groups = group_by_period(stamps, granularity, key=lambda ts: ts)

    assert sum(len(members) for members in groups.values()) == len(stamps)
    for start, members in groups.items():
        for ts in members:
            assert bucket_start(ts, granularity) == start
            assert start <= ts


@given(stamps=st.lists(timestamps, max_size=40), granularity=granularities)
@settings(max_examples=50)
def test_prop_grouping_is_order_independent(stamps, granularity):
    forward = group_by_period(stamps, granularity, key=lambda ts: ts)
    backward = group_by_period(list(reversed(stamps)), granularity, key=lambda ts: ts)

    assert list(forward) == list(backward)
    assert {k: sorted(v) for k, v in forward.items()} == {
        k: sorted(v) for k, v in backward.items()
    }


# =============================================================================
# Trends and forecasts
# =============================================================================


@given(
    values=st.lists(
        st.one_of(st.just(0.0), st.floats(min_value=1e-3, max_value=1e6, **finite)),
        min_size=1,
        max_size=24,
    ),
    factor=st.sampled_from([0.25, 0.5, 2.0, 8.0, 1024.0]),
)
@settings(max_examples=100)
def test_prop_trend_is_scale_invariant(values, factor):
    """Scaling a series by a power of two never changes its direction."""
    scaled = [v * factor for v in values]
    assert classify_trend(scaled, CONSTANTS) == classify_trend(values, CONSTANTS)


@given(
    start=st.floats(min_value=1.0, max_value=1e4, **finite),
    step=st.floats(min_value=0.1, max_value=0.5, **finite),
    length=st.integers(min_value=2, max_value=12),
)
@settings(max_examples=100)
def test_prop_steady_growth_is_increasing(start, step, length):
    values = [start * (1 + step) ** i for i in range(length)]
    assert classify_trend(values, HeuristicConstants(volatility_cv_threshold=1e6)) == (
        TrendDirection.INCREASING
    )


@given(
    values=st.lists(st.floats(min_value=0.0, max_value=1e6, **finite), max_size=24),
    granularity=granularities,
)
@settings(max_examples=100)
def test_prop_forecast_non_negative_with_valid_scenarios(values, granularity):
    result = forecast(values, granularity, CONSTANTS)

    assert result.next_period >= 0.0
    assert result.next_quarter >= 0.0
    assert result.next_year >= 0.0
    for horizon in {s.horizon for s in result.scenarios}:
        probabilities = [s.probability for s in result.scenarios if s.horizon == horizon]
        assert sum(probabilities) == pytest.approx(1.0)


# =============================================================================
# Predictions
# =============================================================================


@given(
    progress=st.floats(min_value=0.0, max_value=100.0, **finite),
    update_age_days=st.integers(min_value=0, max_value=400),
    with_update=st.booleans(),
)
@settings(max_examples=100)
def test_prop_completion_probability_bounds(progress, update_age_days, with_update):
    project = make_project(progress_percentage=progress)
    updates = []
    if with_update:
        updates.append(
            make_update(
                project.id,
                reporting_date=NOW - timedelta(days=update_age_days),
                progress_percentage=progress,
            )
        )

    probability = completion_probability(
        ProjectSnapshot(project=project, updates=updates), NOW, CONSTANTS
    )

    assert 5.0 <= probability <= 95.0


@given(
    login_days_ago=st.one_of(st.none(), st.integers(min_value=0, max_value=1000)),
    purchase_ages=st.lists(st.integers(min_value=0, max_value=720), max_size=10),
)
@settings(max_examples=100)
def test_prop_churn_probability_bounds(login_days_ago, purchase_ages):
    last_login = None if login_days_ago is None else NOW - timedelta(days=login_days_ago)
    activity = UserActivity(
        user=make_user(last_login_at=last_login),
        purchases=[make_transaction(created_at=NOW - timedelta(days=d)) for d in purchase_ages],
    )

    probability = churn_probability(activity, NOW, CONSTANTS)

    assert 0.05 <= probability <= 0.95


# =============================================================================
# Benchmarks and health
# =============================================================================

benchmark_values = st.floats(min_value=0.0, max_value=1000.0, **finite)


@given(our=benchmark_values, average=benchmark_values, spread=benchmark_values)
@settings(max_examples=100)
def test_prop_percentile_bounds(our, average, spread):
    assert 0.0 <= estimate_percentile(our, average, average + spread) <= 100.0


@given(low=benchmark_values, gap=benchmark_values, average=benchmark_values, spread=benchmark_values)
@settings(max_examples=100)
def test_prop_classification_is_monotonic(low, gap, average, spread):
    """A higher value never ranks below a lower one."""
    rank = {BenchmarkStatus.LAGGING: 0, BenchmarkStatus.COMPETITIVE: 1, BenchmarkStatus.LEADING: 2}
    top = average + spread

    assert rank[classify(low + gap, average, top)] >= rank[classify(low, average, top)]


@given(
    severities=st.lists(st.sampled_from(list(Severity)), max_size=40),
)
@settings(max_examples=100)
def test_prop_alert_score_bounds(severities):
    alerts = [make_alert(severity) for severity in severities]
    assert 0.0 <= alert_score(alerts, CONSTANTS) <= 100.0
