"""
Benchmark Engine.

Places a platform metric against reference figures (industry average and top
performer) from an injectable BenchmarkTable.
"""

from typing import Optional

import structlog

from impact_analytics.engine.constants import BenchmarkTable
from impact_analytics.models.analytics import BenchmarkComparison
from impact_analytics.models.enums import BenchmarkStatus

logger = structlog.get_logger()

# Share of the top performer's value at which a metric counts as leading
LEADING_FRACTION = 0.95


def classify(our: float, average: float, top: float) -> BenchmarkStatus:
    """leading at >= 95% of top, competitive at >= average, else lagging."""
    if our >= top * LEADING_FRACTION:
        return BenchmarkStatus.LEADING
    if our >= average:
        return BenchmarkStatus.COMPETITIVE
    return BenchmarkStatus.LAGGING


def estimate_percentile(our: float, average: float, top: float) -> float:
    """
    Linear percentile estimate.

    0 maps to the 0th percentile, the average to the 50th and the top
    performer to the 100th; values are clamped to 0..100.
    """
    if our <= 0:
        return 0.0
    if our <= average:
        return 50.0 * our / average if average > 0 else 50.0
    if top <= average:
        return 100.0
    return min(100.0, 50.0 + 50.0 * (our - average) / (top - average))


def gap_analysis(metric: str, our: float, average: float, top: float, status: BenchmarkStatus) -> str:
    label = metric.replace("_", " ")
    to_average = our - average
    to_top = top - our
    if status == BenchmarkStatus.LEADING:
        return (
            f"{label.capitalize()} of {our:.2f} is {to_average:+.2f} against the industry "
            f"average and within 5% of the top performer ({top:.2f})"
        )
    if status == BenchmarkStatus.COMPETITIVE:
        return (
            f"{label.capitalize()} of {our:.2f} beats the industry average by {to_average:.2f} "
            f"but trails the top performer by {to_top:.2f}"
        )
    return (
        f"{label.capitalize()} of {our:.2f} is {abs(to_average):.2f} below the industry "
        f"average and {to_top:.2f} below the top performer"
    )


class BenchmarkEngine:
    """Compares metrics with a BenchmarkTable."""

    def __init__(self, table: Optional[BenchmarkTable] = None):
        self.table = table or BenchmarkTable()

    def compare(self, metric: str, value: float) -> BenchmarkComparison:
        """
        Compare one metric.

        Raises:
            KeyError: If the table has no reference for the metric
        """
        reference = self.table.get(metric)
        status = classify(value, reference.average, reference.top_performer)
        return BenchmarkComparison(
            metric=metric,
            our_value=value,
            reference_average=reference.average,
            top_performer=reference.top_performer,
            percentile=estimate_percentile(value, reference.average, reference.top_performer),
            status=status,
            gap_analysis=gap_analysis(
                metric, value, reference.average, reference.top_performer, status
            ),
        )

    def compare_many(self, values: dict[str, float]) -> list[BenchmarkComparison]:
        """Compare every metric the table knows; unknown metrics are skipped."""
        comparisons = []
        for metric, value in values.items():
            if metric not in self.table.references:
                logger.debug("benchmark_reference_missing", metric=metric)
                continue
            comparisons.append(self.compare(metric, value))
        return comparisons
