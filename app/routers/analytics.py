"""GET /api/analytics: dashboard snapshot recomputed from the whole store."""

import logging

from fastapi import APIRouter, Depends

from app.core.async_utils import run_sync
from app.models.responses import AnalyticsResponse, ErrorResponse
from app.services.analytics_service import compute_analytics
from app.services.feedback_store import FeedbackStore, get_feedback_store

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/analytics",
    response_model=AnalyticsResponse,
    response_model_exclude_none=True,
    responses={500: {"model": ErrorResponse}},
)
async def get_analytics(store: FeedbackStore = Depends(get_feedback_store)):
    """
    Totals, type and sentiment distributions, per-section rollup and the
    trailing seven-day trend.

    The store file is read once per request so the snapshot is consistent
    even while submissions are being appended.
    """
    records = await run_sync(store.load_all)
    snapshot = compute_analytics(records)
    return {"success": True, "data": snapshot}
