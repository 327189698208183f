"""Configuration management for larder."""

import json
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    sqlite_db_path: str = Field(default="./larder.db", description="Path to the SQLite database file")
    seed_sample_items: bool = Field(default=False, description="Insert sample items when the table is empty")

    # Server
    host: str = Field(default="0.0.0.0", description="Interface uvicorn binds to")  # noqa: S104
    port: int = Field(default=8000, description="Port uvicorn listens on")

    # Household
    household_name: str = Field(default="Larder", description="Name shown in reminder subjects and signatures")

    # OpenRouter Configuration
    openrouter_api_key: str | None = Field(
        default=None, description="OpenRouter API key; when unset the keyword interpreter is used"
    )
    model_id: str = Field(
        default="anthropic/claude-3.5-sonnet",
        description="Model ID for OpenRouter (defaults to Claude 3.5 Sonnet)",
    )
    interpreter_timeout_seconds: float = Field(
        default=20.0, description="Upper bound on a single interpretation call before it is treated as failed"
    )

    # SendGrid Configuration
    sendgrid_api_key: str | None = Field(default=None, description="SendGrid API key for reminder emails")
    from_email: str = Field(default="larder@example.com", description="Sender address for reminder emails")
    reminder_emails: Annotated[list[str], NoDecode] = Field(
        default_factory=list, description="Recipients of reminder emails"
    )

    # Twilio Configuration (optional)
    twilio_account_sid: str | None = Field(default=None, description="Twilio account SID for SMS reminders")
    twilio_auth_token: str | None = Field(default=None, description="Twilio auth token")
    twilio_from_number: str | None = Field(default=None, description="Twilio sender number in E.164 format")
    reminder_phones: Annotated[list[str], NoDecode] = Field(
        default_factory=list, description="Recipients of SMS reminders"
    )

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    # Redis Configuration (optional)
    redis_url: str | None = Field(default=None, description="Redis connection URL (e.g., redis://localhost:6379)")

    # Scheduler Configuration
    daily_check_hour: int = Field(default=9, ge=0, le=23, description="Local hour of the daily low-stock check")
    daily_check_minute: int = Field(default=0, ge=0, le=59, description="Local minute of the daily low-stock check")

    # Replenishment
    running_low_window_days: int = Field(
        default=7, ge=0, description="Look-ahead window (inclusive) for classifying an item as running low"
    )

    @field_validator("reminder_emails", "reminder_phones", mode="before")
    @classmethod
    def split_recipients(cls, value: Any) -> Any:  # noqa: ANN401
        """Accept a JSON array or a comma-separated string of recipients."""
        if not isinstance(value, str):
            return value
        if value.strip().startswith("["):
            return json.loads(value)
        return [part.strip() for part in value.split(",") if part.strip()]

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value

    @property
    def sms_enabled(self) -> bool:
        """True when every Twilio setting and at least one phone recipient is present."""
        return bool(
            self.twilio_account_sid and self.twilio_auth_token and self.twilio_from_number and self.reminder_phones
        )


# Application Constants
class Constants:
    """Application-wide constants."""

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30

    # Transports
    SENDGRID_API_URL: str = "https://api.sendgrid.com/v3/mail/send"
    TWILIO_API_BASE_URL: str = "https://api.twilio.com/2010-04-01"
    SMS_MAX_LENGTH: int = 160

    # Notification de-duplication
    NOTIFICATION_DEDUP_TTL_SECONDS: int = 300

    # Item defaults
    DEFAULT_CATEGORY: str = "House"
    DEFAULT_DURATION_DAYS: int = 30

    # Date phrase conversions used by the interpreter prompt
    DAYS_PER_WEEK: int = 7
    DAYS_PER_MONTH: int = 30

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 1000

    # Redis Configuration
    REDIS_MAX_CONNECTIONS: int = 10

    # Job Tracker Configuration
    TRACKER_DEAD_LETTER_QUEUE_MAXLEN: int = 100
    TRACKER_STATUS_TTL_SECONDS: int = 86400 * 7

    # Scheduler job names
    DAILY_CHECK_JOB: str = "daily_low_stock_check"


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
