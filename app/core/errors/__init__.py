"""
Error code system.

FeedbackAppError is the base exception for all structured errors.
Raise it (or one of the fixed-code subclasses) and the error handler
turns it into the ``{"success": false, "error": {code, message}}`` envelope.

Usage:
    from app.core.errors import ValidationError
    raise ValidationError("Unrecognised form field 'colour'")
"""

from __future__ import annotations

import re

CODE_PATTERN = re.compile(r"^[A-Z][A-Z_]*[A-Z]$")


class FeedbackAppError(Exception):
    """Structured application error tied to the error registry.

    Args:
        code: Registry error code, e.g. "INVALID_INPUT".
        detail: Message for the caller. Only shown when the registry entry
            sets ``expose_detail``; always logged.
        context: Arbitrary key-value context for structured logging.
    """

    default_code: str | None = None

    def __init__(
        self,
        code: str | None = None,
        detail: str | None = None,
        context: dict | None = None,
    ) -> None:
        code = code or self.default_code
        if not code or not CODE_PATTERN.match(code):
            raise ValueError(f"Invalid error code format: {code!r}")
        self.code = code
        self.detail = detail
        self.context = context or {}
        super().__init__(f"{code}: {detail}" if detail else code)


class _FixedCodeError(FeedbackAppError):
    def __init__(self, detail: str | None = None, context: dict | None = None) -> None:
        super().__init__(self.default_code, detail=detail, context=context)


class ValidationError(_FixedCodeError):
    """Bad or missing input (400)."""

    default_code = "INVALID_INPUT"


class NotFoundError(_FixedCodeError):
    default_code = "NOT_FOUND"


class MethodNotAllowedError(_FixedCodeError):
    default_code = "METHOD_NOT_ALLOWED"


class RangeNotSatisfiableError(_FixedCodeError):
    """Requested byte range lies outside the resource (416)."""

    default_code = "RANGE_NOT_SATISFIABLE"

    def __init__(self, size: int, detail: str | None = None) -> None:
        self.size = size
        super().__init__(detail=detail, context={"size": size})


class InternalError(_FixedCodeError):
    """Storage or parse failure (500)."""

    default_code = "INTERNAL_ERROR"
