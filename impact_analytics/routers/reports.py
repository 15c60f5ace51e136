"""
Report generation and retrieval router.

Wired to:
- ReportAssembler over the RecordStore and Persistence collaborators
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from impact_analytics.auth.dependencies import require_analyst
from impact_analytics.engine.report_assembler import ReportAssembler
from impact_analytics.models.enums import ReportType
from impact_analytics.models.reports import ReportOptions, ReportPeriod
from impact_analytics.storage import get_persistence, get_record_store
from impact_analytics.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class ReportRequest(BaseModel):
    """Request model for report generation."""

    report_type: ReportType = Field(description="Kind of report to build")
    period: ReportPeriod = Field(description="Reporting window and its label")
    options: ReportOptions = Field(default_factory=ReportOptions)


def get_report_assembler() -> ReportAssembler:
    return ReportAssembler(get_record_store(), get_persistence())


@router.post("")
async def generate_report(
    request: ReportRequest,
    user_id: str = Depends(require_analyst),
):
    """
    Generate and store an analytics report.

    Returns the report id, title, status and headline metadata.
    """
    logger.info(
        "report_requested",
        user_id=user_id,
        report_type=request.report_type.value,
        period=request.period.label,
    )
    summary = get_report_assembler().generate_report(
        request.report_type,
        request.period,
        request.options,
        generated_by=user_id,
    )
    return {"success": True, "data": summary}


@router.get("/{report_id}")
async def get_report(
    report_id: str,
    user_id: str = Depends(require_analyst),
):
    """Fetch a stored report; expired reports are reported as absent."""
    report = get_report_assembler().get_report(report_id)
    if report is None:
        return JSONResponse(
            status_code=404,
            content={"success": False, "data": None, "error": f"Report {report_id} not found"},
        )
    return {"success": True, "data": report}
