"""
Standalone voice clips.

- POST /api/feedback/voice              : upload one recording (field ``audio``)
- GET  /api/feedback/voice?file=NAME    : stream a recording
- GET  /api/feedback/voice/{file_name}  : same, path form

Playback honours single ``Range: bytes=...`` requests (206 / 416) so
browsers can seek within a clip.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from fastapi.responses import StreamingResponse

from app.core.async_utils import run_sync
from app.core.errors import ValidationError
from app.models.responses import ErrorResponse, VoiceUploadResponse
from app.services.voice_storage import VOICE_MEDIA_TYPE, VoiceStorage, get_voice_storage
from app.utils.http_range import parse_range_header
from app.utils.timestamps import utc_timestamp

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/feedback/voice",
    response_model=VoiceUploadResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def upload_voice(
    audio: Optional[UploadFile] = File(None, description="Recorded clip (audio/webm)"),
    voice: VoiceStorage = Depends(get_voice_storage),
):
    """Store a recording under a fresh ``voice_{ms}.webm`` name."""
    if audio is None:
        raise ValidationError("No audio file provided")

    file_name = await run_sync(voice.reserve_standalone_name)
    size = await voice.save_upload(audio, file_name)
    if size == 0:
        voice.delete(file_name)
        raise ValidationError("Audio file is empty")

    return {
        "success": True,
        "data": {
            "fileName": file_name,
            "audioUrl": voice.url_for(file_name),
            "timestamp": utc_timestamp(datetime.now(timezone.utc)),
            "duration": 0,
            "sizeBytes": size,
        },
    }


async def _stream_clip(request: Request, file_name: Optional[str], voice: VoiceStorage) -> StreamingResponse:
    path = await run_sync(voice.resolve, file_name)
    size = (await run_sync(path.stat)).st_size
    byte_range = parse_range_header(request.headers.get("range"), size)

    headers = {
        "Accept-Ranges": "bytes",
        "Content-Disposition": f'inline; filename="{path.name}"',
        "Cache-Control": "no-cache",
    }
    if byte_range is None:
        start, length, status_code = 0, size, 200
    else:
        start, length, status_code = byte_range.start, byte_range.length, 206
        headers["Content-Range"] = byte_range.content_range(size)
    headers["Content-Length"] = str(length)

    return StreamingResponse(
        voice.iter_bytes(path, start, length),
        status_code=status_code,
        media_type=VOICE_MEDIA_TYPE,
        headers=headers,
    )


@router.get(
    "/feedback/voice",
    responses={206: {"description": "Partial content"}, 404: {"model": ErrorResponse}, 416: {"model": ErrorResponse}},
)
async def get_voice(
    request: Request,
    file: Optional[str] = Query(None, description="Clip name, e.g. voice_1760860800000.webm"),
    voice: VoiceStorage = Depends(get_voice_storage),
):
    return await _stream_clip(request, file, voice)


@router.get(
    "/feedback/voice/{file_name}",
    responses={206: {"description": "Partial content"}, 404: {"model": ErrorResponse}, 416: {"model": ErrorResponse}},
)
async def get_voice_by_name(
    file_name: str,
    request: Request,
    voice: VoiceStorage = Depends(get_voice_storage),
):
    return await _stream_clip(request, file_name, voice)
