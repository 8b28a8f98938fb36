"""Application configuration."""
from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_env: str = "development"
    database_url: str = "sqlite:///./importer.db"

    # Redis (queue broker, Celery and progress pub/sub)
    redis_url: str = "redis://localhost:6379/0"

    # Queue
    queue_backend: Literal["celery", "redis", "memory"] = "celery"
    queue_name: str = "bulk-import"
    worker_concurrency: int = 3
    lease_timeout_seconds: float = 300.0
    max_attempts: int = 3
    backoff_base_seconds: float = 2.0
    poll_interval_seconds: float = 1.0

    # Import behaviour
    max_error_entries: int = 100
    strict_optional_amounts: bool = False
    max_upload_bytes: int = 100 * 1024 * 1024

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
