"""
Operational record ingestion router (admin only).

Loads projects, users, transactions, progress updates and alerts into the
record store that the analytics engine reads.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from pydantic import ValidationError

from impact_analytics.auth.dependencies import require_admin
from impact_analytics.errors import ComputationError
from impact_analytics.models.enums import RecordDomain
from impact_analytics.models.records import RECORD_MODELS
from impact_analytics.storage import get_record_store
from impact_analytics.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.post("/{domain}")
async def ingest_records(
    domain: RecordDomain,
    records: List[Dict[str, Any]],
    user_id: str = Depends(require_admin),
):
    """
    Validate and store a batch of records of one domain.

    Records with an existing id replace the stored version.
    """
    model = RECORD_MODELS[domain]
    try:
        validated = [model.model_validate(record) for record in records]
    except ValidationError as e:
        raise ComputationError(f"Invalid {domain.value} record: {e.errors()[0]['msg']}") from e

    written = get_record_store().write(domain, validated)
    logger.info("records_ingested", user_id=user_id, domain=domain.value, written=written)
    return {"success": True, "data": {"domain": domain.value, "written": written}}
