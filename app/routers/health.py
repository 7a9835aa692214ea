"""
Health check endpoint.

- GET /api/health: process alive, version, uptime and storage summary
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.core.async_utils import run_sync
from app.core.structured_logging import APP_VERSION, SERVICE_NAME, get_uptime_s
from app.models.responses import HealthResponse
from app.services.feedback_store import FeedbackStore, get_feedback_store
from app.services.voice_storage import VoiceStorage, get_voice_storage

logger = logging.getLogger(__name__)

router = APIRouter()


def _storage_summary(store: FeedbackStore, voice: VoiceStorage) -> dict:
    voice_stats = voice.stats()
    return {
        "feedback_file": store.path.exists(),
        "records": store.count(),
        "voice_clips": voice_stats["clips"],
        "voice_bytes": voice_stats["bytes"],
    }


@router.get("/health", response_model=HealthResponse)
async def health_check(
    store: FeedbackStore = Depends(get_feedback_store),
    voice: VoiceStorage = Depends(get_voice_storage),
):
    """Cheap health check: local disk only, no network calls."""
    storage = await run_sync(_storage_summary, store, voice)
    return {
        "status": "ok" if storage["feedback_file"] else "degraded",
        "version": APP_VERSION,
        "service": SERVICE_NAME,
        "uptime_s": round(get_uptime_s(), 1),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "storage": storage,
    }
