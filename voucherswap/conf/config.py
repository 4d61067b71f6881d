"""Configuration for the voucher exchange service.

Reads environment variables for storage, messaging, vision and job tuning.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Runtime configuration loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENVIRONMENT: str = Field(
        default="development", description="Deployment environment (development, staging, production)."
    )

    # =========================================================================
    # STORAGE
    # =========================================================================
    DATABASE_URL: str = Field(
        default="",
        description="PostgreSQL URL. When empty the process-local in-memory store is used.",
    )
    POSTGRES_POOL_MIN_SIZE: int = Field(default=1, ge=0)
    POSTGRES_POOL_MAX_SIZE: int = Field(default=10, gt=0)
    POSTGRES_POOL_MAX_IDLE: int = Field(
        default=30, description="Seconds an idle pooled connection is kept open."
    )
    STORE_MAX_TX_RETRIES: int = Field(
        default=5,
        gt=0,
        description="Attempts for a unit of work that hits a serialization conflict.",
    )

    # =========================================================================
    # CALENDAR
    # =========================================================================
    TIMEZONE: str = Field(
        default="Europe/Dublin",
        description="Zone that defines calendar days, the daily report quota and the 21:00 cutoff.",
    )

    # =========================================================================
    # TELEGRAM NOTIFICATIONS
    # =========================================================================
    TELEGRAM_BOT_TOKEN: SecretStr = Field(
        default=SecretStr(""), description="Bot token issued by BotFather."
    )
    TELEGRAM_API_BASE: str = Field(default="https://api.telegram.org")
    NOTIFY_MAX_RETRIES: int = Field(
        default=3, ge=0, description="Retries for a single outbound message before giving up."
    )
    NOTIFY_INITIAL_DELAY: float = Field(default=1.0, ge=0)
    NOTIFY_MAX_DELAY: float = Field(default=30.0, gt=0)

    # =========================================================================
    # VISION EXTRACTION
    # =========================================================================
    OPENAI_API_KEY: SecretStr = Field(
        default=SecretStr(""), description="API key for the vision extraction model."
    )
    VISION_MODEL: str = Field(default="gpt-4o-mini")
    VISION_TIMEOUT_SECONDS: float = Field(
        default=30.0, gt=0, description="Upper bound for a single extraction call."
    )

    # =========================================================================
    # MEDIA / HTTP
    # =========================================================================
    MEDIA_ROOT: str = Field(default="./media", description="Directory holding voucher images.")
    PUBLIC_BASE_URL: str = Field(
        default="http://localhost:8000",
        description="Publicly reachable base URL used to build image links.",
    )
    ADMIN_API_TOKEN: SecretStr = Field(
        default=SecretStr(""), description="Bearer token required by the operator endpoints."
    )

    # =========================================================================
    # INBOUND EVENTS
    # =========================================================================
    EVENT_DEDUPE_TTL_HOURS: int = Field(
        default=48, gt=0, description="How long a (channel, message_id) pair is remembered."
    )

    # =========================================================================
    # CELERY / REDIS
    # =========================================================================
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis URL for Celery broker and result backend.",
    )
    CELERY_EAGER: bool = Field(
        default=False,
        description="Run Celery tasks synchronously (for testing). Set via CELERY_EAGER env var.",
    )
    REMINDER_HOUR_UTC: int = Field(
        default=10, ge=0, le=23, description="Hour (UTC) at which upload reminders are sent."
    )

    # =========================================================================
    # LOGGING
    # =========================================================================
    LOG_LEVEL: str = Field(default="INFO")
    LOG_JSON: bool = Field(default=False, description="Emit JSON logs instead of pretty output.")

    @model_validator(mode="after")
    def _validate_pool_sizes(self) -> "Settings":
        if self.POSTGRES_POOL_MIN_SIZE > self.POSTGRES_POOL_MAX_SIZE:
            raise ValueError("POSTGRES_POOL_MIN_SIZE must be <= POSTGRES_POOL_MAX_SIZE")
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() in ("production", "prod", "staging")

    @property
    def postgres_enabled(self) -> bool:
        return bool(self.DATABASE_URL)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[arg-type]


def validate_required_settings(settings_instance: Settings | None = None) -> None:
    """Validate that all required environment variables are set.

    Missing values are errors in production and warnings elsewhere.

    Raises:
        RuntimeError: If critical settings are missing in production.
    """
    if settings_instance is None:
        settings_instance = get_settings()

    missing: list[str] = []
    if not settings_instance.DATABASE_URL:
        missing.append("DATABASE_URL is not set (in-memory store is not shared between workers)")
    if not settings_instance.TELEGRAM_BOT_TOKEN.get_secret_value():
        missing.append("TELEGRAM_BOT_TOKEN is not set (notifications disabled)")
    if not settings_instance.OPENAI_API_KEY.get_secret_value():
        missing.append("OPENAI_API_KEY is not set (uploads will fail with a system error)")

    if not missing:
        return

    if settings_instance.is_production:
        error_msg = "Critical configuration errors:\n" + "\n".join(f"  - {m}" for m in missing)
        logger.error(error_msg)
        raise RuntimeError(error_msg)

    for warning in missing:
        logger.warning("Configuration warning: %s", warning)


settings = get_settings()
