"""
Configuration management for Achievement Tracker.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = "Achievement Tracker"
    debug: bool = False
    environment: str = "development"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 1

    # Reference authority store (relational, owns workflow state)
    reference_database_url: str = Field(
        default="sqlite:///./achievement_references.db",
        description="Database holding achievement_references (workflow state).",
    )

    # Content store (document store, physically separate database)
    content_database_url: str = Field(
        default="sqlite:///./achievement_documents.db",
        description="Database holding achievement content documents.",
    )

    # File storage
    upload_dir: str = "./uploads/achievements"
    upload_url_prefix: str = "/uploads/achievements"
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, ge=1)

    # Identity resolution
    identity_directory_path: Optional[str] = Field(
        default=None,
        description="JSON file with students, advisors and advisor assignments.",
    )

    # Deadlines
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    compensation_timeout_seconds: float = Field(default=3.0, gt=0)

    # Listing
    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
