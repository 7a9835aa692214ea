"""
Standardized response models for API documentation.

Every JSON endpoint answers with the same envelope: ``success`` plus either
``data`` or ``error``.
"""

from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from app.models.analytics import AnalyticsSnapshot
from app.models.feedback import FeedbackRecord

T = TypeVar("T")


class ErrorBody(BaseModel):
    code: str = Field(..., examples=["INVALID_INPUT"])
    message: str


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    error: Optional[ErrorBody] = None


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: ErrorBody


class VoiceUpload(BaseModel):
    """Result of storing a standalone voice clip."""
    fileName: str = Field(..., examples=["voice_1760860800000.webm"])
    audioUrl: str
    timestamp: str
    duration: float = Field(0, description="Not measured server-side; always 0")
    sizeBytes: int


class QuestionnaireSection(BaseModel):
    id: str
    title: str
    questions: List[str]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., examples=["ok"])
    version: str
    service: str
    uptime_s: float
    timestamp: str
    storage: Dict[str, Any] = Field(default_factory=dict)


FeedbackResponse = ApiResponse[FeedbackRecord]
FeedbackListResponse = ApiResponse[List[FeedbackRecord]]
AnalyticsResponse = ApiResponse[AnalyticsSnapshot]
VoiceUploadResponse = ApiResponse[VoiceUpload]
QuestionnaireResponse = ApiResponse[List[QuestionnaireSection]]
