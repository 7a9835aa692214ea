"""HTTP and storage tests for standalone voice clips and range playback."""

import re
from unittest.mock import patch

import pytest

from app.core.errors import NotFoundError, ValidationError

AUDIO = bytes(range(256)) * 4  # 1024 bytes


@pytest.fixture
def stored_clip(voice_storage):
    voice_storage.ensure_storage()
    (voice_storage.directory / "voice_1760860800000.webm").write_bytes(AUDIO)
    return "voice_1760860800000.webm"


class TestUpload:
    def test_upload_returns_voice_upload(self, client, voice_storage):
        response = client.post("/api/feedback/voice", files={"audio": ("rec.webm", b"clip-bytes", "audio/webm")})
        assert response.status_code == 200
        data = response.json()["data"]
        assert re.match(r"^voice_\d+\.webm$", data["fileName"])
        assert data["audioUrl"] == f"/api/feedback/voice?file={data['fileName']}"
        assert data["duration"] == 0
        assert data["sizeBytes"] == len(b"clip-bytes")
        assert data["timestamp"].endswith("Z")
        assert (voice_storage.directory / data["fileName"]).read_bytes() == b"clip-bytes"

    def test_missing_audio_field(self, client):
        response = client.post("/api/feedback/voice", files={"other": ("rec.webm", b"x", "audio/webm")})
        assert response.status_code == 400
        assert response.json()["error"] == {"code": "INVALID_INPUT", "message": "No audio file provided"}

    def test_empty_audio_rejected(self, client, voice_storage):
        response = client.post("/api/feedback/voice", files={"audio": ("rec.webm", b"", "audio/webm")})
        assert response.status_code == 400
        assert list(voice_storage.directory.glob("*.webm")) == []

    def test_oversize_audio_rejected(self, client, voice_storage):
        payload = b"\0" * (64 * 1024 + 1)
        response = client.post("/api/feedback/voice", files={"audio": ("rec.webm", payload, "audio/webm")})
        assert response.status_code == 400
        assert "limit" in response.json()["error"]["message"]
        assert list(voice_storage.directory.glob("*.webm")) == []

    def test_name_collision_bumps_stamp(self, voice_storage):
        with patch("app.services.voice_storage.time.time", return_value=1760860800.0):
            first = voice_storage.reserve_standalone_name()
            second = voice_storage.reserve_standalone_name()
        assert first == "voice_1760860800000.webm"
        assert second == "voice_1760860800001.webm"


class TestPlayback:
    def test_full_file(self, client, stored_clip):
        response = client.get(f"/api/feedback/voice?file={stored_clip}")
        assert response.status_code == 200
        assert response.content == AUDIO
        assert response.headers["content-type"] == "audio/webm"
        assert response.headers["accept-ranges"] == "bytes"
        assert response.headers["content-length"] == str(len(AUDIO))
        assert response.headers["content-disposition"].startswith("inline")

    def test_path_form(self, client, stored_clip):
        response = client.get(f"/api/feedback/voice/{stored_clip}")
        assert response.status_code == 200
        assert response.content == AUDIO

    @pytest.mark.parametrize("header,start,end", [
        ("bytes=0-99", 0, 99),
        ("bytes=1000-", 1000, 1023),
        ("bytes=-24", 1000, 1023),
        ("bytes=500-5000", 500, 1023),
    ])
    def test_range_requests(self, client, stored_clip, header, start, end):
        response = client.get(f"/api/feedback/voice?file={stored_clip}", headers={"Range": header})
        assert response.status_code == 206
        assert response.content == AUDIO[start:end + 1]
        assert response.headers["content-range"] == f"bytes {start}-{end}/{len(AUDIO)}"
        assert response.headers["content-length"] == str(end - start + 1)

    def test_unsatisfiable_range(self, client, stored_clip):
        response = client.get(f"/api/feedback/voice?file={stored_clip}", headers={"Range": "bytes=4096-"})
        assert response.status_code == 416
        assert response.headers["content-range"] == f"bytes */{len(AUDIO)}"
        assert response.json()["error"]["code"] == "RANGE_NOT_SATISFIABLE"

    def test_missing_clip_is_not_found(self, client, voice_storage):
        response = client.get("/api/feedback/voice?file=voice_0.webm")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    @pytest.mark.parametrize("name", ["../feedback.json", "..%2Ffeedback.json", "clip.mp3", ".hidden.webm"])
    def test_rejects_unsafe_names(self, client, name):
        response = client.get(f"/api/feedback/voice?file={name}")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_INPUT"

    def test_missing_file_param(self, client):
        response = client.get("/api/feedback/voice")
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "No file name provided"


class TestStorage:
    def test_resolve_errors(self, voice_storage):
        with pytest.raises(ValidationError):
            voice_storage.resolve("../x.webm")
        with pytest.raises(NotFoundError):
            voice_storage.resolve("voice_1.webm")

    def test_delete_missing_is_noop(self, voice_storage):
        voice_storage.delete("voice_1.webm")

    def test_stats(self, voice_storage, stored_clip):
        assert voice_storage.stats() == {"clips": 1, "bytes": len(AUDIO)}
