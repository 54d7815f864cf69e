import json
import re
from typing import Annotated, Any

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # Prefer JSON, but tolerate comma or whitespace separated values.
    if raw.startswith(("[", '"')):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]
        if isinstance(parsed, str):
            raw = parsed.strip()

    origins: list[str] = []
    for part in (p for p in re.split(r"[,\s]+", raw) if p):
        if part == "*":
            return ["*"]
        if part not in origins:
            origins.append(part)
    return origins


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Completion service (OpenAI-compatible API)
    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("ENHANCER_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_base_url: str = "https://api.openai.com/v1"
    openai_organization: str | None = None
    openai_model: str = "gpt-4"
    completion_max_tokens: int = 1500
    completion_temperature: float = 0.7
    completion_max_retries: int = 3

    # Use the mock provider instead of calling a real API
    mock_provider: bool = False

    # HTTP Client connection pool settings
    httpx_connect_timeout: float = 10.0  # Time to establish connection
    httpx_read_timeout: float = 45.0  # Time to read response data
    httpx_write_timeout: float = 10.0  # Time to send request data
    httpx_pool_timeout: float = 5.0  # Time to acquire connection from pool
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # API-wide rate limiting (per client address)
    api_rate_limit_max_requests: int = 10
    api_rate_limit_window_ms: int = 60 * 1000
    api_rate_limit_message: str = (
        "Too many API requests. Please wait a minute before trying again."
    )

    # Per-session rate limiting
    user_rate_limit_max_requests: int = 50
    user_rate_limit_window_ms: int = 60 * 60 * 1000
    user_rate_limit_message: str = "Hourly limit reached. Please try again later."

    # Upper bound on tracked identifiers per limiter (LRU eviction)
    rate_limit_max_identifiers: int = 10000
    # Seconds between sweeps that evict fully expired identifiers
    rate_limit_cleanup_interval_seconds: float = 300.0

    # Local persistence; empty path keeps everything in memory
    storage_path: str = ""
    max_history_items: int = 50
    # In-memory analytics events kept per process; older ones are dropped
    analytics_max_events: int = 1000

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # CORS settings
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator(
        "api_rate_limit_max_requests",
        "api_rate_limit_window_ms",
        "user_rate_limit_max_requests",
        "user_rate_limit_window_ms",
        "rate_limit_max_identifiers",
    )
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator("max_history_items", "analytics_max_events", "completion_max_tokens")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator(
        "httpx_connect_timeout",
        "httpx_read_timeout",
        "rate_limit_cleanup_interval_seconds",
    )
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("completion_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError("completion_temperature must be between 0 and 2")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ENHANCER_",
        extra="ignore",
        populate_by_name=True,
    )


# Global settings instance
settings = Settings()
