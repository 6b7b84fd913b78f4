"""Application configuration loaded from environment variables.

All configuration is via environment variables (or a local .env file).
No hardcoded URLs, ports, or credentials.
"""

from functools import lru_cache

from pydantic import Field, PostgresDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Query Performance Dashboard")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")
    frontend_url: str | None = Field(
        default=None, description="Allowed CORS origin in production"
    )

    # Server
    port: int = Field(default=8000, description="Port to bind to")
    host: str = Field(default="0.0.0.0", description="Host to bind to")

    # Auth
    auth_required: bool = Field(
        default=False,
        description="When false, every request acts as the dev user",
    )
    api_token: str | None = Field(
        default=None,
        description="Shared bearer token checked when auth_required is true",
    )

    # Database
    database_url: PostgresDsn = Field(
        ...,
        description="PostgreSQL connection string",
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size")
    db_max_overflow: int = Field(default=10, description="Max overflow connections")
    db_pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    db_slow_query_threshold_ms: int = Field(
        default=100, description="Threshold for slow query warnings (ms)"
    )
    db_connect_timeout: int = Field(
        default=60, description="Connection timeout in seconds"
    )
    db_command_timeout: int = Field(
        default=60, description="Command timeout in seconds"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format: json or text")

    # OpenRouter completion service
    openrouter_api_key: str | None = Field(
        default=None,
        description="OpenRouter API key",
    )
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="OpenRouter API base URL",
    )
    openrouter_model: str = Field(
        default="openai/gpt-4o-mini",
        description="Model used for query clustering",
    )
    openrouter_temperature: float = Field(
        default=0.7, description="Sampling temperature for clustering requests"
    )
    openrouter_max_tokens: int | None = Field(
        default=None, description="Optional cap on response tokens"
    )
    openrouter_timeout: float = Field(
        default=30.0, description="OpenRouter request timeout in seconds"
    )
    openrouter_max_retries: int = Field(
        default=3, description="Maximum attempts for OpenRouter requests"
    )
    openrouter_retry_delay: float = Field(
        default=0.5, description="Base delay between retries in seconds"
    )
    openrouter_referer: str | None = Field(
        default=None, description="HTTP-Referer attribution header"
    )
    openrouter_app_title: str | None = Field(
        default=None, description="X-Title attribution header"
    )
    # Circuit breaker settings for OpenRouter
    openrouter_circuit_failure_threshold: int = Field(
        default=5, description="Failures before circuit opens"
    )
    openrouter_circuit_recovery_timeout: float = Field(
        default=60.0, description="Seconds before attempting recovery"
    )

    # Query clustering
    cluster_batch_size: int = Field(
        default=1000, ge=1, description="Queries per completion request"
    )
    cluster_max_queries: int = Field(
        default=500, ge=0, description="Cap on candidate queries per generation"
    )
    cluster_fetch_chunk_size: int = Field(
        default=1000, ge=1, description="Rows per candidate fetch round trip"
    )
    cluster_min_size: int = Field(
        default=3, ge=1, description="Minimum resolved members for a suggestion"
    )
    cluster_min_count: int = Field(
        default=3, ge=0, description="Requested minimum clusters per batch"
    )
    cluster_max_count: int = Field(
        default=7, ge=1, description="Requested maximum clusters per batch"
    )
    cluster_query_text_max_length: int = Field(
        default=200, ge=1, description="Query text truncation in the prompt payload"
    )
    cluster_generation_timeout: float = Field(
        default=90.0, description="Deadline for a whole generation request (seconds)"
    )

    @field_validator("openrouter_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
