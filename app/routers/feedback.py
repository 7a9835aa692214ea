"""
Feedback submission and listing.

- POST /api/feedback: JSON or multipart questionnaire answers
- GET  /api/feedback: every stored record, legacy shapes upgraded
"""

import json
import logging

from fastapi import APIRouter, Depends, Request

from app.core.async_utils import run_sync
from app.core.errors import ValidationError
from app.models.responses import ErrorResponse, FeedbackListResponse, FeedbackResponse
from app.services.feedback_store import FeedbackStore, get_feedback_store
from app.services.submission_service import SubmissionService
from app.services.voice_storage import VoiceStorage, get_voice_storage

logger = logging.getLogger(__name__)

router = APIRouter()

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def get_submission_service(
    store: FeedbackStore = Depends(get_feedback_store),
    voice: VoiceStorage = Depends(get_voice_storage),
) -> SubmissionService:
    return SubmissionService(store, voice)


def request_metadata(request: Request) -> dict:
    """Informational client details taken from request headers."""
    user_agent = request.headers.get("user-agent")
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    client_host = request.client.host if request.client else None
    return {
        "browser": user_agent,
        "platform": request.headers.get("sec-ch-ua-platform", "").strip('"') or None,
        "userAgent": user_agent,
        "ipAddress": forwarded or client_host,
    }


@router.post(
    "/feedback",
    responses={
        200: {"model": FeedbackResponse},
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def submit_feedback(
    request: Request,
    service: SubmissionService = Depends(get_submission_service),
):
    """
    Store one questionnaire submission.

    Accepts ``application/json`` (``{"type"?, "sections": {...}}``) or a
    multipart form with ``{sectionId}_{questionIndex}_text`` and
    ``{sectionId}_{questionIndex}_voice`` fields. The response carries the
    stored record including its computed sentiment.
    """
    content_type = request.headers.get("content-type", "").lower()
    metadata = request_metadata(request)

    if content_type.startswith(FORM_CONTENT_TYPES):
        async with request.form() as form:
            parsed = service.parse_form(form.multi_items())
            record = await service.submit(parsed, metadata)
    else:
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValidationError("Request body must be valid JSON or multipart form data") from e
        parsed = service.parse_json(payload)
        record = await service.submit(parsed, metadata)

    return {"success": True, "data": record}


@router.get("/feedback", responses={200: {"model": FeedbackListResponse}})
async def list_feedback(store: FeedbackStore = Depends(get_feedback_store)):
    """All records in arrival order. Older record shapes are upgraded for the response only."""
    records = await run_sync(store.load_all)
    return {"success": True, "data": records}
