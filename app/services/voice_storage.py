"""
Voice Storage
=============

Audio clips live as individual .webm files in one directory
(settings.voice_directory). Two naming schemes share it:

    voice_{epoch ms}.webm                        standalone uploads
    {feedbackId}_{sectionId}_{questionIndex}.webm  clips sent with a submission

Uploads are streamed to disk in chunks with aiofiles and capped at
settings.max_voice_upload_mb. Reads validate the name before touching
the filesystem so nothing outside the directory is ever served.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import AsyncIterator, Optional
from urllib.parse import quote

import aiofiles
from fastapi import UploadFile

from app.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.utils.sanitization import validate_voice_filename

logger = logging.getLogger(__name__)

VOICE_URL_PREFIX = "/api/feedback/voice"
VOICE_MEDIA_TYPE = "audio/webm"


class VoiceStorage:
    """Saves, resolves and streams recorded answers."""

    def __init__(
        self,
        directory: Optional[str | Path] = None,
        max_bytes: Optional[int] = None,
        chunk_size: Optional[int] = None,
    ):
        self._dir = Path(directory) if directory else settings.voice_path
        self._max_bytes = max_bytes if max_bytes is not None else settings.max_voice_upload_bytes
        self._chunk_size = chunk_size or settings.chunk_size

    @property
    def directory(self) -> Path:
        return self._dir

    def ensure_storage(self) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)

    # -- naming ------------------------------------------------------------

    def reserve_standalone_name(self) -> str:
        """Claim a fresh ``voice_{ms}.webm`` name.

        The file is created empty with O_EXCL so two uploads in the same
        millisecond cannot pick the same name; on collision the stamp is
        bumped by one.
        """
        self.ensure_storage()
        stamp = int(time.time() * 1000)
        while True:
            name = f"voice_{stamp}.webm"
            try:
                fd = os.open(self._dir / name, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                stamp += 1
                continue
            os.close(fd)
            return name

    @staticmethod
    def answer_clip_name(feedback_id: str, section_id: str, question_index: int) -> str:
        return f"{feedback_id}_{section_id}_{question_index}.webm"

    @staticmethod
    def url_for(file_name: str) -> str:
        return f"{VOICE_URL_PREFIX}?file={quote(file_name)}"

    def path_for(self, file_name: str) -> Path:
        return self._dir / validate_voice_filename(file_name)

    # -- write -------------------------------------------------------------

    async def save_upload(self, upload: UploadFile, file_name: str) -> int:
        """Stream ``upload`` into ``file_name`` and return the bytes written.

        A clip over the size cap is removed and rejected with
        ValidationError. Any other failure also removes the partial file
        before the error propagates.
        """
        path = self.path_for(file_name)
        self.ensure_storage()

        bytes_written = 0
        try:
            async with aiofiles.open(path, "wb") as out_file:
                while chunk := await upload.read(self._chunk_size):
                    bytes_written += len(chunk)
                    if bytes_written > self._max_bytes:
                        raise ValidationError(
                            f"Recording exceeds the {self._max_bytes} byte upload limit",
                            context={"file_name": file_name},
                        )
                    await out_file.write(chunk)
        except BaseException:
            self.delete(file_name)
            raise

        logger.info("voice_clip_saved", extra={"file_name": file_name, "size_bytes": bytes_written})
        return bytes_written

    def delete(self, file_name: str) -> None:
        """Remove a clip; a missing file is not an error."""
        try:
            self.path_for(file_name).unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning("voice_clip_delete_failed", extra={"file_name": file_name, "error": str(e)})
            return
        logger.info("voice_clip_deleted", extra={"file_name": file_name})

    # -- read --------------------------------------------------------------

    def resolve(self, file_name: str) -> Path:
        """Path of an existing clip. Raises ValidationError or NotFoundError."""
        path = self.path_for(file_name)
        if not path.is_file():
            raise NotFoundError("Voice recording not found", context={"file_name": file_name})
        return path

    async def iter_bytes(self, path: Path, start: int, length: int) -> AsyncIterator[bytes]:
        """Yield ``length`` bytes of ``path`` starting at offset ``start``."""
        remaining = length
        async with aiofiles.open(path, "rb") as in_file:
            await in_file.seek(start)
            while remaining > 0:
                chunk = await in_file.read(min(self._chunk_size, remaining))
                if not chunk:
                    break
                remaining -= len(chunk)
                yield chunk

    def stats(self) -> dict:
        """Clip count and total bytes, for the health endpoint."""
        if not self._dir.is_dir():
            return {"clips": 0, "bytes": 0}
        clips = [p for p in self._dir.iterdir() if p.is_file() and p.suffix == ".webm"]
        return {"clips": len(clips), "bytes": sum(p.stat().st_size for p in clips)}


_voice_storage: Optional[VoiceStorage] = None


def get_voice_storage() -> VoiceStorage:
    global _voice_storage
    if _voice_storage is None:
        _voice_storage = VoiceStorage()
    return _voice_storage
