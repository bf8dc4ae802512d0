"""Application configuration."""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    recognition_api_url: str
    recognition_api_key: str | None = None
    organization_id: str | None = None
    request_timeout_seconds: float = 15.0
    session_file: Path = Path(".attendance_demo/session.json")
    session_expiry_days: int = 7
    camera_index: int = 0
    max_image_dimension: int = 800
    jpeg_quality: int = 80
    poll_interval: float = 2.0
    prune_interval: float = 0.5
    staleness_window: float = 3.0
    enroll_transition_delay: float = 2.0
    match_transition_delay: float = 3.0
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
