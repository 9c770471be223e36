"""Application configuration."""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_anon_key: str
    user_id: str | None = None
    openai_api_key: str | None = None
    transcription_model: str = "whisper-1"
    data_dir: Path = Path(".meal_tracker")
    timezone: str = "UTC"
    default_goal_calories: float = 2000.0
    silence_threshold: float = 0.25
    level_sample_interval_seconds: float = 0.05
    sample_rate: int = 16000
    analysis_timeout_seconds: float = 120.0
    pending_task_max_age_seconds: int = 86400
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def analysis_url(self) -> str:
        """Return the URL of the calculate-calories edge function."""
        return f"{self.supabase_url.rstrip('/')}/functions/v1/calculate-calories"
