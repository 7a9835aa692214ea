from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from app.config import settings

from app.routers import analytics, feedback, health, questionnaire, voice
from app.core.structured_logging import APP_VERSION, setup_logging
from app.core.errors import FeedbackAppError
from app.core.errors.registry import error_registry
from app.core.errors.middleware import (
    feedback_error_handler,
    http_exception_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from app.core.log_middleware import CorrelationMiddleware
from app.services.feedback_store import get_feedback_store
from app.services.voice_storage import get_voice_storage

# Initialize structured logging before any logger calls
setup_logging(log_dir=settings.log_dir, log_file=settings.log_file, log_level=settings.log_level)

logger = logging.getLogger(__name__)

API_TITLE = "Crownedgear Feedback API"
API_VERSION = APP_VERSION

API_DESCRIPTION = """
## Crownedgear Feedback

Collects luxury-brand questionnaire answers as typed text and recorded
voice clips, scores each submission with a keyword sentiment heuristic and
serves a small analytics dashboard.

### Endpoints
1. `GET /api/questionnaire` for the sections and questions
2. `POST /api/feedback` with JSON or multipart answers
3. `POST /api/feedback/voice` to upload a standalone recording
4. `GET /api/analytics` for the dashboard snapshot

Every JSON response uses the envelope `{"success": bool, "data" | "error"}`.
"""

# Tag metadata for organizing endpoints
TAGS_METADATA = [
    {"name": "health", "description": "Liveness and storage summary. No authentication."},
    {"name": "feedback", "description": "Questionnaire submissions and the stored record list."},
    {"name": "voice", "description": "Voice clip upload and range-aware playback."},
    {"name": "analytics", "description": "Dashboard aggregates recomputed from every stored record."},
    {"name": "questionnaire", "description": "Sections and questions rendered by the feedback wizard."},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("Starting %s v%s...", settings.app_name, API_VERSION)

    error_registry.load()

    # Data file, voice directory: created on first start
    get_feedback_store().ensure_storage()
    get_voice_storage().ensure_storage()
    logger.info(
        "storage_ready",
        extra={"feedback_path": str(get_feedback_store().path), "voice_dir": str(get_voice_storage().directory)},
    )

    yield

    logger.info("Shutting down %s...", settings.app_name)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        openapi_tags=TAGS_METADATA,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # CORS middleware (also answers browser preflight requests)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # request_id + correlation_id in every log line
    app.add_middleware(CorrelationMiddleware)

    app.add_exception_handler(FeedbackAppError, feedback_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(questionnaire.router, prefix="/api", tags=["questionnaire"])
    # voice before feedback: both live under /api/feedback
    app.include_router(voice.router, prefix="/api", tags=["voice"])
    app.include_router(feedback.router, prefix="/api", tags=["feedback"])
    app.include_router(analytics.router, prefix="/api", tags=["analytics"])

    @app.get("/", tags=["health"])
    async def root():
        """Service name, version and where to look next."""
        return {
            "name": settings.app_name,
            "version": API_VERSION,
            "status": "running",
            "docs": "/docs",
            "health": "/api/health",
        }

    return app


app = create_app()
