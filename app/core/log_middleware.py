"""
Request correlation for the feedback API.

Each request gets a request_id and a correlation_id: taken from the
``x-request-id`` / ``x-correlation-id`` headers when the client sends
usable ones, generated otherwise. Both are bound to context variables for
the duration of the request (so every log line carries them) and echoed
back on the response.
"""
from __future__ import annotations

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.structured_logging import correlation_id_var, request_id_var

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"
CORRELATION_ID_HEADER = "x-correlation-id"

# Client-supplied ids end up in log files; keep them short and printable
_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def _incoming_id(request: Request, header: str) -> str:
    value = request.headers.get(header, "")
    return value if _ID_PATTERN.match(value) else uuid.uuid4().hex


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Bind request/correlation ids and log one ``request_completed`` line per request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = _incoming_id(request, REQUEST_ID_HEADER)
        corr_id = _incoming_id(request, CORRELATION_ID_HEADER)
        rid_token = request_id_var.set(req_id)
        cid_token = correlation_id_var.set(corr_id)

        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            log = logger.warning if status_code >= 500 else logger.info
            log(
                "request_completed",
                extra={
                    "http.method": request.method,
                    "http.path": request.url.path,
                    "http.status_code": status_code,
                    "http.content_length": request.headers.get("content-length"),
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
            request_id_var.reset(rid_token)
            correlation_id_var.reset(cid_token)

        response.headers[REQUEST_ID_HEADER] = req_id
        response.headers[CORRELATION_ID_HEADER] = corr_id
        return response
