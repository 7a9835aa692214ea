"""
Pytest configuration for feedback service tests.
Points data and log directories at a temp dir before the app is imported.
"""

import os
import tempfile

# Must be set before any app imports: settings are read at import time
_test_data_dir = tempfile.mkdtemp(prefix="feedback_test_")
os.environ.setdefault("FEEDBACK_DATA_DIRECTORY", _test_data_dir)
os.environ.setdefault("FEEDBACK_VOICE_DIRECTORY", os.path.join(_test_data_dir, "voice"))
os.environ.setdefault("FEEDBACK_LOG_DIR", os.path.join(_test_data_dir, "logs"))

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

# Load error registry so FeedbackAppError returns correct HTTP status codes
from app.core.errors.registry import error_registry
error_registry.load()

from app.services.feedback_store import FeedbackStore, get_feedback_store
from app.services.voice_storage import VoiceStorage, get_voice_storage

FIXED_NOW = datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc)


@pytest.fixture
def feedback_store(tmp_path):
    """FeedbackStore backed by a per-test file."""
    return FeedbackStore(tmp_path / "feedback.json")


@pytest.fixture
def voice_storage(tmp_path):
    """VoiceStorage with a small cap so oversize uploads are cheap to test."""
    return VoiceStorage(tmp_path / "voice", max_bytes=64 * 1024, chunk_size=1024)


@pytest.fixture
def client(feedback_store, voice_storage):
    """TestClient whose routes see the per-test store and voice directory."""
    from app.main import app

    app.dependency_overrides[get_feedback_store] = lambda: feedback_store
    app.dependency_overrides[get_voice_storage] = lambda: voice_storage
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW
