from typing import Any

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Rate limiting settings
    rate_limit_enabled: bool = True
    rate_limit_ai_per_minute: int = Field(
        default=5,
        validation_alias=AliasChoices(
            "RATE_LIMIT_AI_PER_MINUTE", "RATE_LIMIT_GEMINI_PER_MINUTE"
        ),
    )
    rate_limit_ai_per_day: int = Field(
        default=100,
        validation_alias=AliasChoices(
            "RATE_LIMIT_AI_PER_DAY", "RATE_LIMIT_GEMINI_PER_DAY"
        ),
    )
    rate_limit_api_per_15min: int = 100
    rate_limit_auth_per_15min: int = 5
    rate_limit_cleanup_interval_seconds: float = 300.0  # Sweep idle keys every 5 minutes
    rate_limit_path_prefix: str = "/api"  # General API cap applies below this prefix

    # Header carrying the user id set by the upstream identity provider, e.g.
    # "X-User-Id". Empty means no header is trusted and only request.state.user_id
    # counts. Set it only behind a proxy that strips the header from clients.
    auth_user_header: str = ""

    # Outbound AI call pacing
    ai_max_concurrent: int = 2
    ai_min_interval_ms: int = 2000
    ai_max_attempts: int = 3

    # Gemini settings
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-1.5-flash"
    gemini_temperature: float = 0.1  # Low temperature for consistent feedback
    gemini_max_output_tokens: int = 4096  # Caps quota usage per call
    gemini_timeout: float = 60.0

    # Upload settings
    max_image_bytes: int = 10 * 1024 * 1024

    # CORS settings
    cors_origins: list[str] = ["*"]

    @field_validator(
        "rate_limit_ai_per_minute",
        "rate_limit_ai_per_day",
        "rate_limit_api_per_15min",
        "rate_limit_auth_per_15min",
    )
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator("ai_max_concurrent", "ai_max_attempts")
    @classmethod
    def validate_ai_limits(cls, v: int) -> int:
        """Validate pacer and retry limits are positive."""
        if v < 1:
            raise ValueError("AI call limits must be at least 1")
        return v

    @field_validator("ai_min_interval_ms")
    @classmethod
    def validate_min_interval(cls, v: int) -> int:
        if v < 0:
            raise ValueError("ai_min_interval_ms must not be negative")
        return v

    @field_validator("rate_limit_cleanup_interval_seconds", "gemini_timeout")
    @classmethod
    def validate_interval_positive(cls, v: float) -> float:
        """Validate interval and timeout values are positive."""
        if v <= 0:
            raise ValueError("Interval and timeout values must be positive")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: Any) -> str:
        value = str(v).lower()
        if value not in ("text", "structured", "json"):
            raise ValueError("log_format must be one of: text, structured, json")
        return value

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", populate_by_name=True
    )


# Global settings instance
settings = Settings()
