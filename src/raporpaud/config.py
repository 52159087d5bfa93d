"""
Application Configuration

Uses Pydantic Settings for type-safe environment variable management.
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # ========================================================================
    # APPLICATION
    # ========================================================================

    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    DEBUG: bool = False

    # ========================================================================
    # REMOTE STORE (Supabase)
    # ========================================================================

    SUPABASE_URL: str = Field(default="", description="Supabase project URL")

    SUPABASE_KEY: str = Field(default="", description="Supabase anon/service key")

    STORAGE_BUCKET: str = Field(default="images", description="Bucket for branding/photo uploads")

    REMOTE_TIMEOUT_SECONDS: float = Field(
        default=30.0, gt=0, description="Transport timeout for every remote call"
    )

    # ========================================================================
    # LOCAL CACHE
    # ========================================================================

    LOCAL_CACHE_URL: str = Field(
        default="sqlite:///rapor_paud_cache.db",
        description="SQLAlchemy URL of the offline snapshot cache",
    )

    # ========================================================================
    # ROLE ACCOUNTS
    # ========================================================================

    ADMIN_PASSWORD: str = "admin"
    TEACHER_PASSWORD: str = "guru"
    PARENT_PASSWORD: str = "ortu"

    @field_validator("SUPABASE_URL", "SUPABASE_KEY", mode="before")
    @classmethod
    def strip_whitespace(cls: type[Settings], v: str | None) -> str:  # noqa: ARG003
        """Treat unset values as empty and drop surrounding whitespace."""
        return (v or "").strip()

    # ========================================================================
    # COMPUTED PROPERTIES
    # ========================================================================

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.ENVIRONMENT == "production"

    @property
    def is_local(self) -> bool:
        """Check if running locally."""
        return self.ENVIRONMENT == "local"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the process.

    Args:
        level: Log level name. Defaults to settings.LOG_LEVEL
    """
    logging.basicConfig(
        level=level or settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# Global settings instance
settings = Settings()
