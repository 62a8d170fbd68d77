"""Configuration management using Pydantic settings."""

from typing import Optional, Literal
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
import logging

from .constants import (
    APP_ID_PATTERN,
    DEFAULT_ENDPOINT,
    DEFAULT_EVENT_API_URL,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_TOLERANCE_SECONDS,
    ENDPOINT_PATTERN,
    ERROR_MESSAGES,
    TIMEOUT_MAX_MS,
    TIMEOUT_MIN_MS,
)
from .exceptions import ConfigError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Bridge settings, read from ``INNGEST_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="INNGEST_",
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    # App identity
    APP_ID: str = Field(default="inngest-bridge-app", min_length=1, max_length=100, pattern=APP_ID_PATTERN)
    APP_URL: Optional[str] = Field(default=None, description="Public URL of the webhook endpoint")
    ENDPOINT: str = Field(default=DEFAULT_ENDPOINT, pattern=ENDPOINT_PATTERN)

    # Keys
    SIGNING_KEY: Optional[str] = Field(default=None)
    SIGNING_KEY_FALLBACK: Optional[str] = Field(default=None, description="Previous key during rotation")
    EVENT_KEY: Optional[str] = Field(default=None)

    # Orchestrator endpoints
    EVENT_API_URL: str = Field(default=DEFAULT_EVENT_API_URL)
    REGISTER_URL: Optional[str] = Field(default=None)

    # Environment
    ENVIRONMENT: Literal["production", "development", "test"] = Field(default="production")
    IS_DEV: bool = Field(default=False)

    # Execution
    TIMEOUT_MS: int = Field(default=DEFAULT_TIMEOUT_MS, ge=TIMEOUT_MIN_MS, le=TIMEOUT_MAX_MS)
    CANCEL_ON_TIMEOUT: bool = Field(default=False)
    SIGNATURE_TOLERANCE_SECONDS: int = Field(default=DEFAULT_TOLERANCE_SECONDS, ge=0)

    # Event sending
    MAX_BATCH_SIZE: int = Field(default=100, ge=1, le=1000)
    RETRY_MAX_ATTEMPTS: int = Field(default=3, ge=0, le=10)
    RETRY_INITIAL_DELAY: float = Field(default=1.0, ge=0.1, le=60.0)
    RETRY_MAX_DELAY: float = Field(default=30.0, ge=0.1, le=300.0)
    HTTP_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)

    # Development mode
    DISABLE_SIGNATURE_VERIFICATION: bool = Field(default=False)
    MOCK_EXTERNAL_CALLS: bool = Field(default=False)
    VERBOSE_LOGGING: bool = Field(default=False)
    DEVELOPMENT_TIMEOUT_MS: Optional[int] = Field(default=None, ge=TIMEOUT_MIN_MS)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("EVENT_API_URL", "REGISTER_URL", "APP_URL")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        return v.rstrip("/") if v else v

    @property
    def is_development(self) -> bool:
        """Development flags only apply when this is true."""
        return self.IS_DEV or self.ENVIRONMENT == "development"

    def validate_startup(self) -> None:
        """Fail fast on configurations that cannot serve production traffic."""
        if self.is_development or self.ENVIRONMENT == "test":
            if not self.SIGNING_KEY:
                logger.warning("INNGEST_SIGNING_KEY is not set; webhooks are not authenticated")
            if not self.EVENT_KEY:
                logger.warning("INNGEST_EVENT_KEY is not set; event sending will fail")
            return

        if not self.SIGNING_KEY:
            raise ConfigError(ERROR_MESSAGES["MISSING_SIGNING_KEY"], field="SIGNING_KEY")
        if self.DISABLE_SIGNATURE_VERIFICATION:
            raise ConfigError(
                "Signature verification can only be disabled in development mode",
                field="DISABLE_SIGNATURE_VERIFICATION",
            )

    def get_config_summary(self) -> str:
        """Get a one-line summary for startup logging."""
        features = [self.ENVIRONMENT]
        if self.is_development:
            features.append("dev-mode")
        if self.CANCEL_ON_TIMEOUT:
            features.append("cancel-on-timeout")
        if not self.SIGNING_KEY:
            features.append("unsigned")
        return f"Inngest[{self.APP_ID}]: {', '.join(features)}"


def get_settings() -> Settings:
    """Get a fresh settings instance."""
    return Settings()


_settings = None


def get_cached_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = get_settings()
    return _settings


def reset_settings_cache() -> None:
    """Drop the cached settings (tests)."""
    global _settings
    _settings = None
