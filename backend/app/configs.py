"""Application settings loaded from environment variables.

Defines all environment-driven configuration used by the lead workflow service.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed configuration model for the application."""

    # Record store
    DATABASE_URL: str = "sqlite:///./leadflow.db"

    # Redis change relay (disabled when REDIS_HOST is empty)
    REDIS_HOST: Optional[str] = None
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: Optional[str] = None
    REDIS_SSL: bool = False
    REDIS_CHANGES_CHANNEL: str = "leadflow:changes"

    # LINE notification channel
    LINE_API_URL: str = "https://api.line.me/v2/bot/message/push"
    LINE_ACCESS_TOKEN: Optional[str] = None
    LINE_TARGET_ID: Optional[str] = None

    # Workflow tuning
    TIMEZONE: str = "Asia/Bangkok"
    PRESENCE_HEARTBEAT_SECONDS: int = 240
    PRESENCE_STALE_SECONDS: int = 300
    IDLE_NOTIFY_MINUTES: int = 10
    IDLE_REASSIGN_HOURS: int = 24
    FOLLOW_UP_START_HOUR: int = 9

    # Google Calendar mirror for follow-ups (optional)
    GOOGLE_CALENDAR_ID: Optional[str] = None
    GOOGLE_CALENDAR_CREDENTIALS: Optional[str] = None
    GOOGLE_CALENDAR_CREDENTIALS_PATH: Optional[str] = None

    # API parameters
    ROOT_PATH_BACKEND: str = ""
    ALLOWED_ORIGINS: list[str] = ["*"]

    # Trigger runner
    BACKEND_HOST: str = "localhost:8000"
    TRIGGER_INTERVAL_SECONDS: int = 300

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
