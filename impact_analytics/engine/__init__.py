"""
Analytics engine components.

- grouping: Time-window bucketing in UTC or a supplied timezone
- aggregation: Generic breakdowns and the four domain aggregates
- metrics: Rates, quality and efficiency formulas with zero-safe division
- forecasting: Trend classification and multi-horizon forecasts
- benchmark: Comparison of platform metrics with reference values
- prediction: Rule-based project, user and market predictions
- performance: Project performance, risk summary and cohorts
- platform_metrics: Named platform metrics and their recent trends
- insights: Data-driven insights and recommendations
- report_assembler: Report generation and retrieval
- snapshot_scheduler: Scheduled snapshots, predictions and purges
- monitoring: Live counters, alerts and system health

Every engine takes its collaborators in its constructor and receives `now`
explicitly, so results depend only on the records fetched.
"""

__all__ = [
    "BenchmarkEngine",
    "DomainAggregator",
    "InsightGenerator",
    "PerformanceAnalyzer",
    "PredictiveScorer",
    "ReportAssembler",
    "SnapshotScheduler",
    "SystemMonitor",
]

from impact_analytics.engine.aggregation import DomainAggregator
from impact_analytics.engine.benchmark import BenchmarkEngine
from impact_analytics.engine.insights import InsightGenerator
from impact_analytics.engine.monitoring import SystemMonitor
from impact_analytics.engine.performance import PerformanceAnalyzer
from impact_analytics.engine.prediction import PredictiveScorer
from impact_analytics.engine.report_assembler import ReportAssembler
from impact_analytics.engine.snapshot_scheduler import SnapshotScheduler
