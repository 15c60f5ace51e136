"""
Report Assembler.

Builds an analytics report from a single fetch of every domain, computes the
sections its report type asks for, and persists the finished document with
one insert. Nothing is written until the report is complete.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from impact_analytics.config import get_settings
from impact_analytics.engine import metrics as m
from impact_analytics.engine.aggregation import breakdown_by
from impact_analytics.engine.benchmark import BenchmarkEngine
from impact_analytics.engine.constants import HeuristicConstants, get_constants
from impact_analytics.engine.forecasting import analyze_series, average_growth_rate, forecast
from impact_analytics.engine.insights import INSIGHT_BUILDERS, InsightInputs, recommend
from impact_analytics.engine.platform_metrics import (
    PlatformRecords,
    evaluate_metrics,
    trailing_monthly_series,
)
from impact_analytics.models.enums import (
    AnalysisType,
    Granularity,
    ProjectStatus,
    ReportStatus,
    ReportType,
)
from impact_analytics.models.forecast import Forecast, TrendAnalysis
from impact_analytics.models.reports import (
    EnvironmentalSection,
    FinancialSection,
    GrowthMetric,
    ImpactShare,
    MarketSection,
    PerformanceSection,
    PlatformSummary,
    ProjectSection,
    Report,
    ReportOptions,
    ReportPeriod,
    ReportSections,
    ReportSummary,
    UserSection,
)
from impact_analytics.models.timeframe import as_utc_naive, utc_now
from impact_analytics.storage.persistence import Persistence
from impact_analytics.storage.record_store import RecordStore

logger = structlog.get_logger()

REPORTS_COLLECTION = "reports"

REPORT_SECTIONS: dict[ReportType, tuple[str, ...]] = {
    ReportType.PLATFORM_OVERVIEW: (
        "summary", "performance", "financial", "environmental", "market", "users", "projects",
        "trends",
    ),
    ReportType.PERFORMANCE_ANALYTICS: ("summary", "performance", "projects", "trends"),
    ReportType.FINANCIAL_SUMMARY: ("summary", "financial", "market", "trends"),
    ReportType.ENVIRONMENTAL_IMPACT: ("summary", "environmental", "projects", "trends"),
    ReportType.MARKET_TRENDS: ("summary", "market", "financial", "users", "trends"),
}

# Insight analyses run for every report
REPORT_ANALYSES = (
    AnalysisType.PERFORMANCE,
    AnalysisType.QUALITY,
    AnalysisType.MARKET,
    AnalysisType.RISK,
)

# Growth series per summary quantity: record list accessor and per-record value
GROWTH_SERIES: dict[str, tuple[Callable[[PlatformRecords], list], Optional[Callable]]] = {
    "projects": (lambda r: r.projects, None),
    "users": (lambda r: r.users, None),
    "revenue": (lambda r: r.transactions, lambda t: t.platform_fee),
    "impact": (lambda r: r.updates, lambda u: u.carbon_impact_to_date),
}

ACTIVE_USER_DAYS = 30


def report_title(report_type: ReportType, label: str) -> str:
    return f"Platform Analytics - {report_type.value.replace('_', ' ').title()} ({label})"


class ReportData:
    """One fetch of every domain, sliced into the period and the window before it."""

    def __init__(
        self,
        everything: PlatformRecords,
        period: ReportPeriod,
        now: datetime,
        constants: HeuristicConstants,
    ):
        self.period = period
        self.inputs = InsightInputs.for_window(
            everything, period.start, period.end, period.label, now, constants
        )
        self.everything = everything
        self.current = self.inputs.current
        self.previous = self.inputs.previous
        self.projects_by_id = everything.projects_by_id()

    def project_type_of(self, record) -> Optional[str]:
        project = self.projects_by_id.get(getattr(record, "project_id", None) or "")
        return project.project_type if project is not None else None

    def region_of(self, record) -> Optional[str]:
        project = self.projects_by_id.get(getattr(record, "project_id", None) or "")
        return project.region if project is not None else None


def growth_metric(series: list[float], quantity: str, constants: HeuristicConstants) -> GrowthMetric:
    """
    Month, quarter and year growth compounded from the observed monthly rate.

    Falls back to the configured monthly default when no monthly rate can be
    observed.
    """
    rate = average_growth_rate(series)
    source = "history"
    if rate is None:
        rate = constants.fallback_growth_rate(quantity, Granularity.MONTHLY)
        source = "default"
    base = 1.0 + rate
    if base <= 0:
        return GrowthMetric(
            month_over_month=rate * 100.0,
            quarter_over_quarter=-100.0,
            year_over_year=-100.0,
            source=source,
        )
    return GrowthMetric(
        month_over_month=rate * 100.0,
        quarter_over_quarter=(base ** 3 - 1.0) * 100.0,
        year_over_year=(base ** 12 - 1.0) * 100.0,
        source=source,
    )


def _impact_shares(updates: list, category_of: Callable) -> list[ImpactShare]:
    totals: dict[str, float] = {}
    projects: dict[str, set] = {}
    for update in updates:
        category = category_of(update)
        if category is None:
            continue
        totals[category] = totals.get(category, 0.0) + update.carbon_impact_to_date
        projects.setdefault(category, set()).add(update.project_id)

    grand_total = sum(totals.values())
    shares = [
        ImpactShare(
            category=category,
            carbon_offset=carbon,
            project_count=len(projects[category]),
            percentage=m.safe_ratio(carbon, grand_total),
            efficiency=m.safe_divide(carbon, len(projects[category])),
        )
        for category, carbon in totals.items()
    ]
    return sorted(shares, key=lambda s: (-s.carbon_offset, s.category))


class ReportAssembler:
    """
    Generates and retrieves analytics reports.

    Args:
        record_store: Source of every domain's records
        persistence: Where finished reports are stored
        benchmark_engine: Reference comparisons for include_benchmarks
        constants: Heuristic constants (defaults from settings)
    """

    def __init__(
        self,
        record_store: RecordStore,
        persistence: Persistence,
        benchmark_engine: Optional[BenchmarkEngine] = None,
        constants: Optional[HeuristicConstants] = None,
    ):
        self.record_store = record_store
        self.persistence = persistence
        self.benchmark_engine = benchmark_engine or BenchmarkEngine()
        self.constants = constants or get_constants()

    # =========================================================================
    # Operations
    # =========================================================================

    def generate_report(
        self,
        report_type: ReportType,
        period: ReportPeriod,
        options: Optional[ReportOptions] = None,
        generated_by: str = "system",
        now: Optional[datetime] = None,
    ) -> ReportSummary:
        """
        Build, persist and summarize a report.

        Raises:
            DataFetchError: If the fetch or the insert fails or times out
        """
        now = now or utc_now()
        report_type = ReportType(report_type)
        options = options or ReportOptions()

        data = ReportData(PlatformRecords.load(self.record_store), period, now, self.constants)
        report = self.build_report(report_type, data, options, generated_by, now)

        self.persistence.insert(
            REPORTS_COLLECTION, report, expires_at=report.expires_at, doc_id=report.id
        )
        logger.info(
            "report_generated",
            report_id=report.id,
            report_type=report_type.value,
            sections=len(REPORT_SECTIONS[report_type]),
            insights=len(report.insights),
        )
        return ReportSummary(
            report_id=report.id,
            title=report.title,
            status=report.status,
            metadata=report.metadata,
        )

    def get_report(self, report_id: str, now: Optional[datetime] = None) -> Optional[Report]:
        """The stored report, or None when missing or expired."""
        now = now or utc_now()
        document = self.persistence.get(REPORTS_COLLECTION, report_id)
        if document is None:
            return None

        expires_at = document.get("_expires_at")
        if expires_at and as_utc_naive(datetime.fromisoformat(expires_at)) <= now:
            logger.info("report_expired", report_id=report_id)
            return None

        return Report.model_validate({k: v for k, v in document.items() if not k.startswith("_")})

    # =========================================================================
    # Assembly
    # =========================================================================

    def build_report(
        self,
        report_type: ReportType,
        data: ReportData,
        options: ReportOptions,
        generated_by: str,
        now: datetime,
    ) -> Report:
        """Assemble a finished report from already-fetched data (no I/O)."""
        wanted = REPORT_SECTIONS[report_type]
        builders = {
            "summary": lambda: self.summary_section(data),
            "performance": lambda: self.performance_section(data, now),
            "financial": lambda: self.financial_section(data),
            "environmental": lambda: self.environmental_section(data),
            "market": lambda: self.market_section(data),
            "users": lambda: self.user_section(data, now),
            "projects": lambda: self.project_section(data, now),
            "trends": lambda: self.trend_section(data),
        }
        sections = ReportSections(**{name: builders[name]() for name in wanted})

        insights = [
            i for analysis in REPORT_ANALYSES for i in INSIGHT_BUILDERS[analysis](data.inputs)
        ]

        summary = sections.summary or self.summary_section(data)
        performance = sections.performance or self.performance_section(data, now)
        success_reference = self.benchmark_engine.table.get("project_success_rate")

        report = Report(
            report_type=report_type,
            title=report_title(report_type, data.period.label),
            description=(
                f"Comprehensive analytics report for the platform covering {data.period.label}"
            ),
            period=data.period,
            status=ReportStatus.FINAL,
            generated_at=now,
            generated_by=generated_by,
            sections=sections,
            insights=insights,
            recommendations=recommend(
                summary, performance, insights, benchmark_average=success_reference.average
            ),
            metadata=self.report_metadata(data),
            expires_at=now + timedelta(days=get_settings().report_retention_days),
        )

        if options.include_benchmarks:
            report.benchmarks = self.benchmark_engine.compare_many(
                {
                    "project_success_rate": summary.success_rate,
                    "quality_score": performance.quality_score,
                    "impact_efficiency": performance.impact_efficiency,
                }
            )
        if options.include_forecasting:
            report.forecasts = self.forecasts(data)
        if options.custom_metrics:
            report.custom_metrics = evaluate_metrics(data.current, options.custom_metrics)

        return report

    def report_metadata(self, data: ReportData) -> dict[str, float]:
        return {
            "total_projects": float(len(data.everything.projects)),
            "total_users": float(len(data.everything.users)),
            "total_impact": sum(u.carbon_impact_to_date for u in data.current.updates),
            "total_revenue": sum(t.platform_fee for t in data.current.transactions),
        }

    def forecasts(self, data: ReportData) -> dict[str, Forecast]:
        result = {}
        for quantity, (records_of, value) in GROWTH_SERIES.items():
            series = trailing_monthly_series(records_of(data.everything), data.period.end, value)
            result[quantity] = forecast(series, Granularity.MONTHLY, self.constants, quantity)
        return result

    # =========================================================================
    # Sections
    # =========================================================================

    def summary_section(self, data: ReportData) -> PlatformSummary:
        """Platform-wide totals, growth and highlights."""
        everything = data.everything
        projects = everything.projects
        total_projects = len(projects)
        credits_generated = sum(p.credits_generated for p in projects)
        transaction_value = sum(t.total_amount for t in everything.transactions)
        success_rate = m.success_rate(projects)

        growth = {}
        period_growth = {}
        for quantity, (records_of, value) in GROWTH_SERIES.items():
            series = trailing_monthly_series(records_of(everything), data.period.end, value)
            growth[quantity] = growth_metric(series, quantity, self.constants)

            def window_total(records: PlatformRecords) -> float:
                members = records_of(records)
                return float(len(members)) if value is None else sum(value(r) for r in members)

            period_growth[quantity] = m.pct_change(
                window_total(data.current), window_total(data.previous)
            )

        return PlatformSummary(
            total_projects=total_projects,
            active_projects=m.count_where(projects, lambda p: p.status == ProjectStatus.ACTIVE),
            completed_projects=m.count_where(
                projects, lambda p: p.status == ProjectStatus.COMPLETED
            ),
            total_users=len(everything.users),
            total_credits_generated=credits_generated,
            total_credits_traded=sum(t.credit_amount for t in everything.transactions),
            total_transaction_value=transaction_value,
            average_project_size=m.safe_divide(credits_generated, total_projects),
            success_rate=success_rate,
            project_growth=growth["projects"],
            user_growth=growth["users"],
            revenue_growth=growth["revenue"],
            impact_growth=growth["impact"],
            period_growth=period_growth,
            key_highlights=[
                f"{total_projects} total projects on platform",
                f"{round(success_rate)}% project success rate",
                f"{round(credits_generated):,} carbon credits generated",
                f"${round(transaction_value):,} in total transactions",
            ],
        )

    def performance_section(self, data: ReportData, now: datetime) -> PerformanceSection:
        projects, updates = data.current.projects, data.current.updates
        funding = sum(p.funding_required for p in projects)
        credits = sum(p.credits_generated for p in projects)
        return PerformanceSection(
            approval_rate=m.approval_rate(projects),
            completion_rate=m.completion_rate(projects),
            average_completion_days=m.average_completion_days(projects),
            verification_rate=m.verification_rate(updates),
            on_time_submission_rate=m.on_time_submission_rate(updates),
            quality_score=m.quality_score(updates),
            timeline_adherence=m.timeline_adherence(projects, now),
            cost_per_project=m.safe_divide(funding, len(projects)),
            cost_per_credit=m.safe_divide(funding, credits),
            impact_efficiency=m.impact_efficiency(
                sum(p.target_carbon_impact for p in projects), funding
            ),
            type_performance=m.performance_by_type(projects),
        )

    def financial_section(self, data: ReportData) -> FinancialSection:
        transactions = data.current.transactions
        revenue = sum(t.platform_fee for t in transactions)
        volume = sum(t.total_amount for t in transactions)
        projects = data.current.projects

        revenue_series = trailing_monthly_series(
            data.everything.transactions, data.period.end, lambda t: t.platform_fee
        )
        return FinancialSection(
            total_revenue=revenue,
            total_volume=volume,
            transaction_count=len(transactions),
            average_transaction_value=m.safe_divide(volume, len(transactions)),
            revenue_per_user=m.safe_divide(revenue, len(data.everything.users)),
            cost_per_project=m.safe_divide(
                sum(p.funding_required for p in projects), len(projects)
            ),
            revenue_by_category=breakdown_by(
                transactions, "category", measure="platform_fee",
                previous=data.previous.transactions,
            ),
            forecast=forecast(revenue_series, Granularity.MONTHLY, self.constants, "revenue"),
        )

    def environmental_section(self, data: ReportData) -> EnvironmentalSection:
        updates = data.current.updates
        carbon = sum(u.carbon_impact_to_date for u in updates)
        energy = sum(u.energy_generated for u in updates)
        return EnvironmentalSection(
            total_carbon_offset=carbon,
            total_trees_planted=sum(u.trees_planted for u in updates),
            total_energy_generated=energy,
            total_waste_processed=sum(u.waste_processed for u in updates),
            total_area_restored=sum(u.area_restored for u in updates),
            equivalents=m.equivalent_metrics(carbon, energy),
            impact_by_type=_impact_shares(updates, data.project_type_of),
            impact_by_region=_impact_shares(updates, data.region_of),
        )

    def market_section(self, data: ReportData) -> MarketSection:
        transactions = data.current.transactions
        prices = [t.unit_price for t in transactions if t.unit_price > 0]

        monthly_volume = trailing_monthly_series(
            data.everything.transactions, data.period.end, lambda t: t.total_amount
        )
        monthly_credits = trailing_monthly_series(
            data.everything.transactions, data.period.end, lambda t: t.credit_amount
        )
        monthly_price = [m.safe_divide(v, c) for v, c in zip(monthly_volume, monthly_credits)]

        return MarketSection(
            total_demand=sum(t.credit_amount for t in transactions),
            total_supply=sum(p.credits_generated for p in data.everything.projects),
            demand_by_type=breakdown_by(
                transactions, data.project_type_of, measure="credit_amount",
                previous=data.previous.transactions,
            ),
            supply_by_type=breakdown_by(
                data.everything.projects, "project_type", measure="credits_generated"
            ),
            average_price=m.mean(prices) if prices else self.constants.default_credit_price,
            min_price=min(prices, default=0.0),
            max_price=max(prices, default=0.0),
            pricing_trend=analyze_series(
                "average_credit_price", monthly_price, Granularity.MONTHLY, self.constants,
                series="revenue", include_forecast=False,
            ),
        )

    def user_section(self, data: ReportData, now: datetime) -> UserSection:
        users = data.everything.users
        cutoff = now - timedelta(days=ACTIVE_USER_DAYS)
        active = m.count_where(
            users, lambda u: u.last_login_at is not None and u.last_login_at >= cutoff
        )
        return UserSection(
            total_users=len(users),
            new_users=len(data.current.users),
            roles=breakdown_by(users, "role"),
            organization_types=breakdown_by(users, "organization_type"),
            countries=breakdown_by(users, "country"),
            active_last_30_days=active,
            activity_rate=m.safe_ratio(active, len(users)),
        )

    def project_section(self, data: ReportData, now: datetime) -> ProjectSection:
        projects = data.everything.projects
        return ProjectSection(
            total_projects=len(projects),
            by_status=breakdown_by(projects, "status"),
            by_type=breakdown_by(projects, "project_type", measure="target_carbon_impact"),
            by_region=breakdown_by(projects, "region"),
            total_funding=sum(p.funding_required for p in projects),
            average_target_impact=m.mean(p.target_carbon_impact for p in projects),
            average_completion_days=m.average_completion_days(projects),
            on_time_delivery=m.timeline_adherence(projects, now),
            overdue_projects=m.count_where(
                projects,
                lambda p: p.status == ProjectStatus.ACTIVE and not m.is_on_time(p, now),
            ),
        )

    def trend_section(self, data: ReportData) -> list[TrendAnalysis]:
        """Project creation, transaction volume and carbon impact over the trailing year."""
        end = data.period.end
        everything = data.everything
        series = {
            ("project_count", "projects"): trailing_monthly_series(everything.projects, end),
            ("transaction_volume", "revenue"): trailing_monthly_series(
                everything.transactions, end, lambda t: t.total_amount
            ),
            ("carbon_impact", "impact"): trailing_monthly_series(
                everything.updates, end, lambda u: u.carbon_impact_to_date
            ),
        }
        return [
            analyze_series(metric, values, Granularity.MONTHLY, self.constants, series=kind)
            for (metric, kind), values in series.items()
        ]
