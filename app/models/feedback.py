"""
Feedback Models
===============

Pydantic shapes for one questionnaire submission and its section answers.
Records are persisted as the JSON form of FeedbackRecord; unknown keys
are kept so older or richer clients round-trip without loss.
"""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SentimentLabel = Literal["positive", "neutral", "negative"]


class AudioRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    url: str = Field(..., description="URL the recording can be played back from")


class SectionAnswer(BaseModel):
    """A single question-area's response within a record."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    text: Optional[str] = None
    audio: Optional[AudioRef] = None


class Sentiment(BaseModel):
    label: SentimentLabel
    # Not range-checked: stored records are returned as written
    score: float = Field(..., description="Share of positive keywords; 0.5 when no signal")
    confidence: float


class FeedbackMetadata(BaseModel):
    browser: Optional[str] = None
    platform: Optional[str] = None
    userAgent: Optional[str] = None
    ipAddress: Optional[str] = None


class FeedbackRecord(BaseModel):
    """One submission, created once and never mutated."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., examples=["feedback_1760860800000_a1b2c3"])
    timestamp: str = Field(..., description="ISO-8601 submission time (UTC)")
    type: str = Field("text", description="Nominal tag: text or voice")
    sections: Dict[str, SectionAnswer] = Field(default_factory=dict)
    sentiment: Sentiment
    metadata: Optional[FeedbackMetadata] = None


def answer_text(answer: Any) -> str:
    """Text of a stored answer, accepting both ``text`` and the older ``response`` key."""
    if not isinstance(answer, dict):
        return ""
    for key in ("text", "response"):
        value = answer.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def answer_audio_url(answer: Any) -> str:
    """Recording URL of a stored answer (``audio.url`` or the older ``voiceResponse``)."""
    if not isinstance(answer, dict):
        return ""
    audio = answer.get("audio")
    if isinstance(audio, dict) and isinstance(audio.get("url"), str) and audio["url"]:
        return audio["url"]
    voice = answer.get("voiceResponse")
    if isinstance(voice, str):
        return voice
    if isinstance(voice, dict) and isinstance(voice.get("audioUrl"), str):
        return voice["audioUrl"]
    return ""


def answer_has_content(answer: Any) -> bool:
    return bool(answer_text(answer) or answer_audio_url(answer))


class FeedbackSubmission(BaseModel):
    """JSON body accepted by POST /api/feedback.

    Answers are validated by the submission service rather than here so
    both the current (text/audio) and the older client shape
    (response/voiceResponse) are accepted.
    """

    type: Optional[str] = None
    sections: Dict[str, dict] = Field(default_factory=dict)
