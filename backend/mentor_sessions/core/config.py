# backend/mentor_sessions/core/config.py
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz

logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


def is_running_tests() -> bool:
    """PYTEST_CURRENT_TEST is set by pytest during test runs."""
    return os.getenv("PYTEST_CURRENT_TEST") is not None


class Settings(BaseSettings):
    """Application settings read from the environment and backend/.env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "mentor-sessions"
    environment: str = Field(default="development", description="development|test|production")
    log_level: str = Field(default="INFO")

    database_url: str = Field(
        default="sqlite:///./mentor_sessions.db",
        description="SQLAlchemy database URL",
    )
    database_pool_size: int = 10
    database_max_overflow: int = 5
    sql_echo: bool = False

    default_timezone: str = "UTC"

    # Slot listing guard rails
    slot_range_max_days: int = Field(default=90, ge=1)

    # Optimistic booking retries when another booking for the same mentor commits first
    booking_max_attempts: int = Field(default=3, ge=1)

    audit_enabled: bool = True

    # External collaborators; logging stubs are used when a URL is not configured
    payment_api_url: Optional[str] = None
    payment_api_key: SecretStr = SecretStr("")
    video_api_url: Optional[str] = None
    video_api_key: SecretStr = SecretStr("")
    notification_webhook_url: Optional[str] = None
    integration_timeout_seconds: float = Field(default=10.0, gt=0)
    prometheus_enabled: bool = True

    @field_validator("default_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def get_database_url(self) -> str:
        return self.database_url


settings = Settings()
