"""Configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from render_testing import __version__


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RENDER_TESTING_",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(
        default=True, description="Render logs as JSON (console renderer if false)"
    )

    # Test result metadata
    test_environment: str = Field(
        default="development",
        description="Environment tag stamped on test results (development, staging, production)",
    )
    test_version: str = Field(
        default=__version__, description="Version stamped on test results"
    )

    # Screenshot lifecycle
    screenshot_max_retries: int = Field(
        default=3, ge=0, le=10, description="Default retry budget per screenshot"
    )
    high_similarity_threshold: float = Field(
        default=95.0,
        ge=0.0,
        le=100.0,
        description="Similarity score (0-100) treated as a baseline match",
    )

    # Render job scheduling
    job_overhead_seconds: int = Field(
        default=30,
        ge=0,
        description="Setup/teardown overhead added to estimated job duration",
    )
    progress_ceiling: int = Field(
        default=99,
        ge=0,
        le=100,
        description="Highest progress reported from screenshot resolution; 100 is reserved for completion",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
