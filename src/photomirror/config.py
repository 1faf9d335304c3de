"""Application configuration using Pydantic Settings.

This module provides centralized configuration management with environment
variable validation, type coercion, and default values.

Upstream credentials follow the names used by the SmugMug developer console
(SMUGMUG_API_KEY, SMUGMUG_API_SECRET, SMUGMUG_ACCESS_TOKEN,
SMUGMUG_ACCESS_TOKEN_SECRET, SMUGMUG_USERNAME).
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log format options."""

    JSON = "json"
    CONSOLE = "console"


class Settings(BaseSettings):
    """Application settings with environment variable validation.

    All settings can be overridden via environment variables.
    Credentials should be provided via environment variables or .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Application
    # ========================================
    app_env: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    app_name: str = Field(
        default="PhotoMirror",
        description="Application name",
    )
    app_version: str = Field(
        default="0.1.0",
        description="Application version",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level",
    )
    log_format: LogFormat = Field(
        default=LogFormat.CONSOLE,
        description="Log output format (json for production, console for dev)",
    )

    # ========================================
    # Server
    # ========================================
    host: str = Field(
        default="0.0.0.0",
        description="Server host",
    )
    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Server port",
    )

    # ========================================
    # SmugMug Credentials (OAuth 1.0a)
    # ========================================
    smugmug_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="OAuth consumer key",
    )
    smugmug_api_secret: SecretStr = Field(
        default=SecretStr(""),
        description="OAuth consumer secret",
    )
    smugmug_access_token: SecretStr = Field(
        default=SecretStr(""),
        description="OAuth access token",
    )
    smugmug_access_token_secret: SecretStr = Field(
        default=SecretStr(""),
        description="OAuth access token secret",
    )
    smugmug_username: str = Field(
        default="",
        description="Account nickname (resolved via !authuser when empty)",
    )
    smugmug_base_url: str = Field(
        default="https://api.smugmug.com/api/v2",
        description="SmugMug API v2 base URL",
    )

    # ========================================
    # Transport
    # ========================================
    smugmug_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-attempt request timeout in seconds",
    )
    smugmug_max_attempts: int = Field(
        default=3,
        description="Total attempts per logical request (including the first)",
    )
    smugmug_backoff_base: float = Field(
        default=1.0,
        ge=0,
        description="Backoff multiplier; delay is base * 2^attempt seconds",
    )
    smugmug_rate_limit_warning_threshold: int = Field(
        default=100,
        ge=0,
        description="Warn when X-RateLimit-Remaining drops below this value",
    )
    smugmug_user_agent: str = Field(
        default="PhotoMirror/0.1 (+https://github.com/photomirror)",
        description="User-Agent header sent upstream",
    )
    smugmug_page_size: int = Field(
        default=100,
        description="Items requested per page (SmugMug caps at 100)",
    )

    # ========================================
    # Cache
    # ========================================
    cache_max_entries: int = Field(
        default=100,
        description="Maximum number of cached entries (0 disables the cache)",
    )
    cache_ttl_albums: float = Field(
        default=24 * 60 * 60,
        description="Album list TTL in seconds",
    )
    cache_ttl_images: float = Field(
        default=60 * 60,
        description="Album image list TTL in seconds",
    )
    cache_ttl_exif: float | None = Field(
        default=None,
        description="EXIF TTL in seconds (unset = never expires)",
    )
    cache_sweep_interval: float = Field(
        default=5 * 60,
        gt=0,
        description="Seconds between background expiry sweeps",
    )

    # ========================================
    # Proxy
    # ========================================
    proxy_enabled: bool = Field(
        default=True,
        description="Expose the allow-listed upstream proxy endpoint",
    )

    # ========================================
    # Derived Properties
    # ========================================
    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == Environment.PRODUCTION

    @property
    def use_json_logs(self) -> bool:
        """Check if JSON logging should be used."""
        return self.log_format == LogFormat.JSON or self.is_production

    @property
    def has_credentials(self) -> bool:
        """Check that all four OAuth secrets are configured."""
        return all(
            secret.get_secret_value()
            for secret in (
                self.smugmug_api_key,
                self.smugmug_api_secret,
                self.smugmug_access_token,
                self.smugmug_access_token_secret,
            )
        )

    @field_validator("smugmug_max_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        """At least one attempt is always made."""
        if v < 1:
            raise ValueError("smugmug_max_attempts must be at least 1")
        return v

    @field_validator("smugmug_page_size")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        """SmugMug rejects counts above 100."""
        if not 1 <= v <= 100:
            raise ValueError("smugmug_page_size must be between 1 and 100")
        return v

    @field_validator("cache_max_entries")
    @classmethod
    def validate_cache_max_entries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("cache_max_entries cannot be negative")
        return v

    @field_validator("cache_ttl_albums", "cache_ttl_images", "cache_ttl_exif")
    @classmethod
    def validate_ttl(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("cache TTLs must be positive")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    This function is cached to avoid re-reading environment variables
    on every access. Use dependency injection in FastAPI routes.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
