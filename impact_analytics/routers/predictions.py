"""
Prediction router.

Wired to:
- PredictiveScorer for project, user and market predictions
"""

from fastapi import APIRouter, Depends, Query

from impact_analytics.auth.dependencies import require_analyst
from impact_analytics.engine.prediction import PredictiveScorer
from impact_analytics.storage import get_record_store

router = APIRouter()


@router.get("/projects/{project_id}")
async def predict_project(project_id: str, user_id: str = Depends(require_analyst)):
    """Completion probability, risks and forecasts for one project."""
    prediction = PredictiveScorer(get_record_store()).predict_project(project_id)
    return {"success": True, "data": prediction}


@router.get("/users/{external_id}")
async def predict_user(external_id: str, user_id: str = Depends(require_analyst)):
    """Churn, lifetime value and next actions for one user."""
    prediction = PredictiveScorer(get_record_store()).predict_user(external_id)
    return {"success": True, "data": prediction}


@router.get("/market")
async def predict_market(
    user_id: str = Depends(require_analyst),
    horizon_days: int = Query(365, ge=1, le=3650, description="Forecast horizon in days"),
):
    prediction = PredictiveScorer(get_record_store()).predict_market(horizon_days)
    return {"success": True, "data": prediction}
