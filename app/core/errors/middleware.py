"""
FastAPI exception handlers producing the feedback error envelope.

Every failure leaves the API as::

    {"success": false, "error": {"code": "...", "message": "..."}}

FeedbackAppError is resolved through the registry; framework errors
(unknown route, wrong method, body validation) and unhandled exceptions
are mapped onto registry codes so clients only ever see one shape.
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import FeedbackAppError, RangeNotSatisfiableError
from app.core.errors.registry import FALLBACK_CODE, error_registry

logger = logging.getLogger(__name__)


def error_envelope(code: str, message: str) -> dict:
    return {"success": False, "error": {"code": code, "message": message}}


async def feedback_error_handler(request: Request, exc: FeedbackAppError) -> JSONResponse:
    """Convert FeedbackAppError into a structured JSON response."""
    entry = error_registry.get(exc.code)

    if entry is None:
        logger.error(
            "unregistered_error_code",
            extra={"error.code": exc.code, "error.message": exc.detail},
        )
        return JSONResponse(
            status_code=500,
            content=error_envelope(FALLBACK_CODE, "An unexpected error occurred."),
        )

    log_extra = {
        "error.code": exc.code,
        "error.kind": type(exc).__name__,
        "error.message": exc.detail,
        "error.retryable": entry.retryable,
        "http.path": request.url.path,
        **{f"error.ctx.{k}": v for k, v in exc.context.items()},
    }
    _severity_to_log_fn(entry.severity)(entry.title, extra=log_extra)

    message = exc.detail if (entry.expose_detail and exc.detail) else entry.safe_message
    headers = None
    if isinstance(exc, RangeNotSatisfiableError):
        headers = {"Content-Range": f"bytes */{exc.size}"}

    return JSONResponse(
        status_code=entry.http_status,
        content=error_envelope(entry.code, message),
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Map Starlette's 404/405/etc. onto registry codes."""
    entry = error_registry.get(error_registry.code_for_status(exc.status_code))
    if entry is None:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(FALLBACK_CODE if exc.status_code >= 500 else "HTTP_ERROR", str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )
    message = str(exc.detail) if (entry.expose_detail and exc.detail) else entry.safe_message
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(entry.code, message),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body/query validation failures become INVALID_INPUT (400), not 422."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    logger.warning("request_validation_failed", extra={"http.path": request.url.path, "error.count": len(errors)})
    return JSONResponse(status_code=400, content=error_envelope("INVALID_INPUT", message))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=True,
    )
    entry = error_registry.get(FALLBACK_CODE)
    message = entry.safe_message if entry else "An unexpected error occurred."
    return JSONResponse(status_code=500, content=error_envelope(FALLBACK_CODE, message))


def _severity_to_log_fn(severity: str):
    """Map registry severity to logger method."""
    return {
        "DEBUG": logger.debug,
        "INFO": logger.info,
        "WARN": logger.warning,
        "ERROR": logger.error,
        "CRITICAL": logger.critical,
    }.get(severity, logger.error)
