"""
Localized Cache Configuration

Configuration management with environment variable support.
Every client and service is built from an explicit Settings instance;
get_settings() only memoizes the process-wide default.
"""

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import (
    DEFAULT_SOURCE_LANGUAGE,
    DEFAULT_TARGET_LANGUAGE,
    SECONDS_PER_DAY,
)

# Load environment variables from .env file
load_dotenv()

DEEPL_PLACEHOLDER_KEYS = {"", "your-deepl-auth-key", "changeme"}


class Settings(BaseSettings):
    """Package settings with validation and safe defaults."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Environment settings
    ENVIRONMENT: str = Field(default="development", description="Runtime environment")
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")
    LOG_JSON: bool = Field(default=False, description="Render logs as JSON lines")

    # Languages
    SOURCE_LANGUAGE: str = Field(
        default=DEFAULT_SOURCE_LANGUAGE, description="Canonical storage language"
    )
    TARGET_LANGUAGE: str = Field(
        default=DEFAULT_TARGET_LANGUAGE, description="Localized view language"
    )

    # Redis configuration
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0", description="Redis connection URL"
    )
    REDIS_MAX_CONNECTIONS: int = Field(
        default=10, ge=1, le=100, description="Redis connection pool size"
    )
    REDIS_CONNECTION_TIMEOUT: float = Field(
        default=5.0, gt=0, le=60, description="Redis connect timeout in seconds"
    )
    REDIS_OPERATION_TIMEOUT: float = Field(
        default=5.0, gt=0, le=60, description="Redis operation timeout in seconds"
    )
    REDIS_KEY_PREFIX: str = Field(
        default="", description="Optional namespace prepended to every cache key"
    )

    # Circuit breaker settings
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = Field(
        default=5, ge=1, le=50, description="Cache store failures before opening"
    )
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT: int = Field(
        default=30, ge=1, le=600, description="Seconds before a half-open trial call"
    )

    # Translation provider
    DEEPL_AUTH_KEY: Optional[str] = Field(
        default=None, description="DeepL API key; unset disables translation"
    )
    DEEPL_API_URL: str = Field(
        default="https://api-free.deepl.com/v2/translate",
        description="DeepL translate endpoint",
    )
    TRANSLATION_TIMEOUT: float = Field(
        default=10.0, gt=0, le=120, description="Per-call translation timeout"
    )
    TRANSLATION_MAX_RETRIES: int = Field(
        default=2, ge=1, le=10, description="Attempts for transient provider errors"
    )

    # Cache TTLs (days)
    ENTITY_CACHE_TTL_DAYS: int = Field(default=365, ge=1, le=3650)
    LISTING_CACHE_TTL_DAYS: int = Field(default=30, ge=1, le=3650)
    LIST_CACHE_TTL_DAYS: int = Field(default=365, ge=1, le=3650)
    CATEGORY_CACHE_TTL_DAYS: int = Field(
        default=0, ge=0, le=3650, description="0 keeps category views until invalidated"
    )
    REFRESH_TTL_ON_READ: bool = Field(
        default=False, description="Extend an entry's TTL on every cache hit"
    )
    NOTIFICATION_LIST_MAX_LENGTH: int = Field(default=1000, ge=1, le=100000)

    # Background repair
    REPAIR_WORKERS: int = Field(default=2, ge=1, le=64)
    REPAIR_QUEUE_MAX_SIZE: int = Field(default=1000, ge=1, le=1000000)
    REPAIR_SHUTDOWN_GRACE_SECONDS: float = Field(default=10.0, ge=0, le=600)

    # Rewards and side effects
    BOOKING_REWARD_POINTS: int = Field(default=50, ge=0, le=100000)
    ADMIN_EMAIL: Optional[str] = Field(
        default=None, description="Recipient of admin booking emails"
    )

    @field_validator("SOURCE_LANGUAGE", "TARGET_LANGUAGE")
    @classmethod
    def normalize_language(cls, v: str) -> str:
        """Language codes are stored lowercase, e.g. 'en', 'ar'."""
        v = v.strip().lower()
        if not v:
            raise ValueError("Language code cannot be empty")
        return v

    @field_validator("TARGET_LANGUAGE")
    @classmethod
    def validate_target_language(cls, v: str, info) -> str:
        """Target language must differ from the source language."""
        source = info.data.get("SOURCE_LANGUAGE")
        if source and v == source:
            raise ValueError("TARGET_LANGUAGE must differ from SOURCE_LANGUAGE")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @property
    def translation_enabled(self) -> bool:
        """True when a real DeepL key is configured."""
        return (self.DEEPL_AUTH_KEY or "").strip() not in DEEPL_PLACEHOLDER_KEYS

    @property
    def entity_ttl_seconds(self) -> int:
        return self.ENTITY_CACHE_TTL_DAYS * SECONDS_PER_DAY

    @property
    def listing_ttl_seconds(self) -> int:
        return self.LISTING_CACHE_TTL_DAYS * SECONDS_PER_DAY

    @property
    def list_ttl_seconds(self) -> int:
        return self.LIST_CACHE_TTL_DAYS * SECONDS_PER_DAY

    @property
    def category_ttl_seconds(self) -> int:
        return self.CATEGORY_CACHE_TTL_DAYS * SECONDS_PER_DAY


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
