"""
Crownedgear Feedback Configuration
==================================

PURPOSE:
    Pydantic-Settings based configuration for the feedback backend.
    All settings can be overridden via environment variables (FEEDBACK_ prefix).
"""

import logging
import os
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Runtime settings for the questionnaire, storage and logging."""

    app_name: str = "Crownedgear Feedback"
    debug: bool = False

    # Persisted state: one JSON array of records plus a directory of clips
    data_directory: str = "data"
    feedback_filename: str = "feedback.json"
    voice_directory: str = os.path.join("data", "voice")

    # Upload settings
    max_voice_upload_mb: int = 25
    chunk_size: int = 64 * 1024  # 64KB chunks for streaming uploads and playback

    # Logging
    log_dir: str = "logs"
    log_file: str = "feedback.jsonl"
    log_level: str = "INFO"

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8080",
    ]

    class Config:
        env_file = ".env"
        env_prefix = "FEEDBACK_"

    @property
    def feedback_path(self) -> Path:
        return Path(self.data_directory) / self.feedback_filename

    @property
    def voice_path(self) -> Path:
        return Path(self.voice_directory)

    @property
    def max_voice_upload_bytes(self) -> int:
        return self.max_voice_upload_mb * 1024 * 1024


settings = Settings()
