"""
Tests for structured logging context, the error registry and the error
envelope handlers.
"""

import json
import os
import tempfile

import pytest
import yaml
from unittest.mock import MagicMock, patch

from app.core.errors import (
    CODE_PATTERN,
    FeedbackAppError,
    InternalError,
    MethodNotAllowedError,
    NotFoundError,
    RangeNotSatisfiableError,
    ValidationError,
)
from app.core.errors.registry import ErrorRegistry, RegistryValidationError
from app.core.structured_logging import (
    APP_VERSION,
    SERVICE_NAME,
    _inject_context,
    correlation_id_var,
    feedback_id_var,
    request_id_var,
)

_ENTRY = {
    "code": "INVALID_INPUT",
    "title": "test",
    "severity": "WARN",
    "retryable": False,
    "http_status": 400,
    "safe_message": "test",
}


def _load_yaml(registry, data):
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(data, f)
    try:
        registry.load(f.name)
    finally:
        os.unlink(f.name)


# ═══════════════════════════════════════════════════════════════════════
# 1. Error Registry: Loading & Validation
# ═══════════════════════════════════════════════════════════════════════

class TestErrorRegistryLoading:
    def test_load_real_registry(self):
        registry = ErrorRegistry()
        registry.load()
        assert registry.schema_version == 1
        assert set(registry.all_codes()) == {
            "INVALID_INPUT",
            "NOT_FOUND",
            "METHOD_NOT_ALLOWED",
            "RANGE_NOT_SATISFIABLE",
            "INTERNAL_ERROR",
        }

    def test_lookup_existing_code(self):
        registry = ErrorRegistry()
        registry.load()
        entry = registry.lookup("INTERNAL_ERROR")
        assert entry.http_status == 500
        assert entry.expose_detail is False
        assert registry.lookup("NOT_FOUND").http_status == 404

    def test_lookup_missing_code_raises(self):
        registry = ErrorRegistry()
        registry.load()
        with pytest.raises(KeyError, match="Unknown error code"):
            registry.lookup("NO_SUCH_CODE")
        assert registry.get("NO_SUCH_CODE") is None

    def test_code_for_status(self):
        registry = ErrorRegistry()
        registry.load()
        assert registry.code_for_status(405) == "METHOD_NOT_ALLOWED"
        assert registry.code_for_status(416) == "RANGE_NOT_SATISFIABLE"
        assert registry.code_for_status(418) is None

    def test_failed_load_keeps_previous_entries(self):
        registry = ErrorRegistry()
        registry.load()
        with pytest.raises(RegistryValidationError):
            _load_yaml(registry, {"schema_version": 1, "errors": [_ENTRY, _ENTRY]})
        assert len(registry) == 5

    def test_rejects_bad_code_format(self):
        with pytest.raises(RegistryValidationError, match="Invalid code format"):
            _load_yaml(ErrorRegistry(), {"schema_version": 1, "errors": [dict(_ENTRY, code="bad-format")]})

    def test_rejects_duplicate_codes(self):
        with pytest.raises(RegistryValidationError, match="Duplicate code"):
            _load_yaml(ErrorRegistry(), {"schema_version": 1, "errors": [_ENTRY, _ENTRY]})

    def test_rejects_missing_fields(self):
        entry = dict(_ENTRY)
        del entry["safe_message"]
        with pytest.raises(RegistryValidationError, match="missing fields"):
            _load_yaml(ErrorRegistry(), {"schema_version": 1, "errors": [entry]})

    def test_rejects_non_error_status(self):
        with pytest.raises(RegistryValidationError, match="not an error status"):
            _load_yaml(ErrorRegistry(), {"schema_version": 1, "errors": [dict(_ENTRY, http_status=200)]})


# ═══════════════════════════════════════════════════════════════════════
# 2. FeedbackAppError
# ═══════════════════════════════════════════════════════════════════════

class TestFeedbackAppError:
    def test_valid_code(self):
        err = FeedbackAppError("NOT_FOUND", detail="no clip")
        assert err.code == "NOT_FOUND"
        assert str(err) == "NOT_FOUND: no clip"

    def test_invalid_code_raises(self):
        with pytest.raises(ValueError, match="Invalid error code format"):
            FeedbackAppError("not-a-code")

    def test_fixed_code_subclasses(self):
        assert ValidationError("x").code == "INVALID_INPUT"
        assert NotFoundError().code == "NOT_FOUND"
        assert InternalError().code == "INTERNAL_ERROR"
        assert MethodNotAllowedError().code == "METHOD_NOT_ALLOWED"
        err = RangeNotSatisfiableError(42)
        assert err.code == "RANGE_NOT_SATISFIABLE"
        assert err.context == {"size": 42}

    @pytest.mark.parametrize("code,valid", [
        ("INVALID_INPUT", True),
        ("NOT_FOUND", True),
        ("AB", True),
        ("A", False),
        ("invalid_input", False),
        ("INVALID_", False),
        ("INVALID-INPUT", False),
    ])
    def test_code_pattern(self, code, valid):
        assert bool(CODE_PATTERN.match(code)) == valid


# ═══════════════════════════════════════════════════════════════════════
# 3. Error envelope handler
# ═══════════════════════════════════════════════════════════════════════

class TestErrorMiddleware:
    @pytest.mark.asyncio
    async def test_exposed_detail(self):
        from app.core.errors.middleware import feedback_error_handler

        response = await feedback_error_handler(MagicMock(), ValidationError("Unrecognised form field 'x'"))
        assert response.status_code == 400
        assert json.loads(response.body) == {
            "success": False,
            "error": {"code": "INVALID_INPUT", "message": "Unrecognised form field 'x'"},
        }

    @pytest.mark.asyncio
    async def test_internal_detail_not_in_response(self):
        from app.core.errors.middleware import feedback_error_handler

        secret = "/var/lib/feedback/feedback.json"
        response = await feedback_error_handler(MagicMock(), InternalError(detail=f"write failed: {secret}"))
        assert response.status_code == 500
        assert secret not in response.body.decode()

    @pytest.mark.asyncio
    async def test_range_error_sets_content_range(self):
        from app.core.errors.middleware import feedback_error_handler

        response = await feedback_error_handler(MagicMock(), RangeNotSatisfiableError(1024))
        assert response.status_code == 416
        assert response.headers["content-range"] == "bytes */1024"

    @pytest.mark.asyncio
    async def test_unregistered_code_returns_500(self):
        from app.core.errors.middleware import feedback_error_handler

        with patch("app.core.errors.middleware.error_registry", ErrorRegistry()):
            response = await feedback_error_handler(MagicMock(), FeedbackAppError("SOMETHING_ELSE", detail="x"))
        assert response.status_code == 500
        assert json.loads(response.body)["error"]["code"] == "INTERNAL_ERROR"


# ═══════════════════════════════════════════════════════════════════════
# 4. Correlation ID Injection
# ═══════════════════════════════════════════════════════════════════════

class TestCorrelationContext:
    def test_inject_context_with_ids(self):
        t1 = request_id_var.set("req-123")
        t2 = correlation_id_var.set("corr-456")
        try:
            result = _inject_context("test", "info", {})
            assert result["request_id"] == "req-123"
            assert result["correlation_id"] == "corr-456"
            assert result["service"] == SERVICE_NAME
            assert result["version"] == APP_VERSION
        finally:
            request_id_var.reset(t1)
            correlation_id_var.reset(t2)

    def test_inject_context_without_ids(self):
        result = _inject_context("test", "info", {})
        assert "request_id" not in result
        assert result["service"] == SERVICE_NAME

    def test_inject_context_with_feedback_id(self):
        token = feedback_id_var.set("fb_1")
        try:
            assert _inject_context("test", "info", {})["feedback_id"] == "fb_1"
            # explicit event keys win over context
            result = _inject_context("test", "info", {"feedback_id": "fb_2"})
            assert result["feedback_id"] == "fb_2"
        finally:
            feedback_id_var.reset(token)


class TestCorrelationMiddleware:
    def test_echoes_client_ids(self, client):
        response = client.get(
            "/api/health",
            headers={"x-request-id": "req-abc", "x-correlation-id": "corr-xyz"},
        )
        assert response.headers["x-request-id"] == "req-abc"
        assert response.headers["x-correlation-id"] == "corr-xyz"

    def test_generates_ids_when_missing(self, client):
        response = client.get("/api/health")
        assert len(response.headers["x-request-id"]) == 32
        assert len(response.headers["x-correlation-id"]) == 32

    def test_replaces_unusable_ids(self, client):
        response = client.get("/api/health", headers={"x-request-id": "bad id with spaces"})
        assert response.headers["x-request-id"] != "bad id with spaces"
        assert len(response.headers["x-request-id"]) == 32
