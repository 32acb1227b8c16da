"""Configuration management using Pydantic Settings"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with validation"""

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="NEWSGUARD_", case_sensitive=False
    )

    # Retry executor (seconds)
    retry_max_retries: int = Field(default=3, ge=0, le=10)
    retry_base_delay: float = Field(default=1.0, ge=0.0, le=60.0)
    retry_max_delay: float = Field(default=10.0, ge=0.0, le=300.0)
    retry_jitter: float = Field(default=1.0, ge=0.0, le=10.0)

    # Circuit breaker
    breaker_failure_threshold: int = Field(default=5, ge=1, le=100)
    breaker_reset_timeout: float = Field(
        default=30.0,
        ge=0.0,
        le=3600.0,
        description="Seconds an open breaker waits before letting a probe through",
    )

    # Near-duplicate detection
    dedup_similarity_threshold: float = Field(default=0.8, ge=0.0, le=1.0)

    # Collection scheduler
    scheduler_max_retries: int = Field(default=3, ge=1, le=10)
    scheduler_retry_delay: float = Field(default=5.0, ge=0.0, le=300.0)
    scheduler_history_limit: int = Field(default=50, ge=1, le=1000)
    scheduler_enable_deduplication: bool = Field(default=True)
    scheduler_collection_cron: str = Field(
        default="*/30 * * * *",
        description="Cron schedule for the collection pass",
    )

    # Fallback cache & degradation
    fallback_cache_ttl: float = Field(default=300.0, gt=0.0)
    fallback_cache_max_size: int = Field(default=1000, ge=1)
    fallback_excerpt_length: int = Field(default=300, ge=20)

    # Storage (optional durable backends)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/newsguard.db",
        description="Database connection URL",
    )
    database_echo: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(
        default="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )


# Global settings instance
settings = Settings()
