"""
Submission Handler
==================

Turns one questionnaire submission into one persisted FeedbackRecord.

Two request shapes are accepted:

* JSON: ``{"type"?: ..., "sections": {sectionId: answer}}`` where an answer
  uses either ``text``/``audio.url`` or the older ``response``/
  ``voiceResponse`` keys.
* multipart form: ``{sectionId}_{questionIndex}_text`` strings and
  ``{sectionId}_{questionIndex}_voice`` audio files.

Parsing is all-or-nothing: any unparseable key rejects the whole request
before a clip is written or the store is touched.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from fastapi import UploadFile
from pydantic import ValidationError as PydanticValidationError

from app.core.async_utils import run_sync
from app.core.errors import ValidationError
from app.core.structured_logging import feedback_id_var
from app.models.feedback import FeedbackSubmission, answer_audio_url, answer_text
from app.services.feedback_store import FeedbackStore
from app.services.sentiment_service import analyze_sentiment
from app.services.voice_storage import VoiceStorage
from app.utils.sanitization import is_valid_section_id
from app.utils.timestamps import utc_timestamp

logger = logging.getLogger(__name__)

FEEDBACK_TYPES = ("text", "voice")
QUESTION_FIELD_PATTERN = re.compile(r"^(?P<section>.+)_(?P<index>\d{1,6})_(?P<kind>text|voice)$")

# Sent by the questionnaire client alongside the answers; not answers themselves
CLIENT_METADATA_FIELDS = frozenset({"submission_time", "feedback_type"})
TYPE_FIELD = "type"

# Answer keys replaced by the normalized text/audio pair
_ANSWER_SOURCE_KEYS = ("id", "text", "response", "audio", "voiceResponse")

UNKNOWN = "unknown"


@dataclass
class VoiceClip:
    section_id: str
    question_index: int
    upload: UploadFile


@dataclass
class ParsedSubmission:
    """A validated request, not yet persisted.

    ``sections`` holds normalized answers in first-seen order. Clips sent
    as form files are kept separately until they are written to disk.
    """

    sections: Dict[str, dict] = field(default_factory=dict)
    clips: List[VoiceClip] = field(default_factory=list)
    type: Optional[str] = None


def new_feedback_id(now: datetime) -> str:
    return f"feedback_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:6]}"


def _validate_type(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if value not in FEEDBACK_TYPES:
        raise ValidationError(f"type must be one of {', '.join(FEEDBACK_TYPES)}, got {value!r}")
    return value


def _check_section_id(section_id: Any) -> str:
    if not is_valid_section_id(section_id):
        raise ValidationError(f"Invalid section id {section_id!r}")
    return section_id


def normalize_answer(section_id: str, raw: Any) -> dict:
    """Map a client answer onto ``{id, text?, audio?{url}}`` keeping extra keys."""
    if not isinstance(raw, dict):
        raise ValidationError(f"Answer for section {section_id!r} must be an object")

    for key in ("text", "response"):
        if raw.get(key) is not None and not isinstance(raw[key], str):
            raise ValidationError(f"{section_id}.{key} must be a string")

    answer = {key: value for key, value in raw.items() if key not in _ANSWER_SOURCE_KEYS}
    answer["id"] = section_id
    text = answer_text(raw)
    if text:
        answer["text"] = text
    url = answer_audio_url(raw)
    if url:
        answer["audio"] = {"url": url}
    return answer


def derive_type(explicit: Optional[str], sections: Dict[str, dict]) -> str:
    if explicit:
        return explicit
    has_text = any(answer.get("text") for answer in sections.values())
    has_audio = any(answer.get("audio") for answer in sections.values())
    return "voice" if has_audio and not has_text else "text"


def sentiment_input(sections: Dict[str, dict]) -> str:
    return " ".join(answer["text"] for answer in sections.values() if answer.get("text"))


class SubmissionService:
    """Validates, scores and persists questionnaire submissions."""

    def __init__(
        self,
        store: FeedbackStore,
        voice: VoiceStorage,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._store = store
        self._voice = voice
        self._clock = clock

    # -- parsing -----------------------------------------------------------

    def parse_json(self, payload: Any) -> ParsedSubmission:
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        try:
            submission = FeedbackSubmission.model_validate(payload)
        except PydanticValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise ValidationError(f"{location}: {first['msg']}") from e

        parsed = ParsedSubmission(type=_validate_type(submission.type))
        for section_id, raw in submission.sections.items():
            _check_section_id(section_id)
            answer = normalize_answer(section_id, raw)
            if answer.get("text") or answer.get("audio"):
                parsed.sections[section_id] = answer
        return parsed

    def parse_form(self, items: Iterable[Tuple[str, Any]]) -> ParsedSubmission:
        """Parse multipart ``(name, value)`` pairs.

        Texts answering several questions of one section are joined with a
        single space in question order.
        """
        texts: Dict[str, List[Tuple[int, str]]] = {}
        order: List[str] = []
        parsed = ParsedSubmission()

        for name, value in items:
            if name == TYPE_FIELD:
                if not isinstance(value, str):
                    raise ValidationError("type must be a string field")
                parsed.type = _validate_type(value.strip())
                continue
            if name in CLIENT_METADATA_FIELDS:
                continue

            match = QUESTION_FIELD_PATTERN.match(name)
            if not match:
                raise ValidationError(f"Unrecognised form field {name!r}")
            section_id = _check_section_id(match["section"])
            index = int(match["index"])
            if section_id not in order:
                order.append(section_id)

            if match["kind"] == "text":
                if not isinstance(value, str):
                    raise ValidationError(f"Form field {name!r} must be text, not a file")
                texts.setdefault(section_id, []).append((index, value.strip()))
            else:
                if isinstance(value, str):
                    raise ValidationError(f"Form field {name!r} must be an audio file")
                parsed.clips.append(VoiceClip(section_id, index, value))

        for section_id in order:
            joined = " ".join(text for _, text in sorted(texts.get(section_id, [])) if text)
            answer = {"id": section_id}
            if joined:
                answer["text"] = joined
            parsed.sections[section_id] = answer
        parsed.clips.sort(key=lambda clip: (order.index(clip.section_id), clip.question_index))
        return parsed

    # -- persistence -------------------------------------------------------

    def build_record(
        self,
        feedback_id: str,
        timestamp: datetime,
        sections: Dict[str, dict],
        explicit_type: Optional[str],
        metadata: Optional[dict],
    ) -> dict:
        answered = {sid: answer for sid, answer in sections.items() if answer.get("text") or answer.get("audio")}
        record = {
            "id": feedback_id,
            "timestamp": utc_timestamp(timestamp),
            "type": derive_type(explicit_type, answered),
            "sections": answered,
            "sentiment": analyze_sentiment(sentiment_input(answered)).to_dict(),
        }
        if metadata is not None:
            record["metadata"] = {key: metadata.get(key) or UNKNOWN for key in ("browser", "platform", "userAgent", "ipAddress")}
        return record

    async def submit(self, parsed: ParsedSubmission, metadata: Optional[dict] = None) -> dict:
        """Write clips, build the record and append it to the store.

        If the append fails the clips written for this submission are
        removed again and the store error propagates.
        """
        now = self._clock()
        feedback_id = new_feedback_id(now)
        sections = {sid: dict(answer) for sid, answer in parsed.sections.items()}
        saved: List[str] = []
        token = feedback_id_var.set(feedback_id)

        try:
            for clip in parsed.clips:
                file_name = self._voice.answer_clip_name(feedback_id, clip.section_id, clip.question_index)
                size = await self._voice.save_upload(clip.upload, file_name)
                if size == 0:
                    self._voice.delete(file_name)
                    continue
                saved.append(file_name)
                sections[clip.section_id].setdefault("audio", {"url": self._voice.url_for(file_name)})

            record = self.build_record(feedback_id, now, sections, parsed.type, metadata)
            # the append must finish before success or failure is reported
            await run_sync(self._store.append, record, timeout=None)
        except BaseException:
            for file_name in saved:
                self._voice.delete(file_name)
            raise
        else:
            logger.info(
                "feedback_submitted",
                extra={
                    "sections": len(record["sections"]),
                    "clips": len(saved),
                    "sentiment": record["sentiment"]["label"],
                },
            )
        finally:
            feedback_id_var.reset(token)
        return record
