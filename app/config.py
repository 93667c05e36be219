# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.SUPABASE_URL)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
#
# The Settings class validates all values at startup, catching configuration
# errors early rather than at runtime.
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses pydantic-settings to:
    - Automatically load from .env file
    - Validate types and constraints
    - Provide sensible defaults for development

    All settings are accessed via the global `settings` instance.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------
    # Archival, backup and delete run with the service_role key (bypasses RLS)

    SUPABASE_URL: str = Field(
        ...,  # ... means required (no default)
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        ...,
        description="Supabase service_role key (bypasses RLS)"
    )

    # -------------------------------------------------------------------------
    # Redis Configuration (for Celery)
    # -------------------------------------------------------------------------
    # Default to localhost for development

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for Celery broker"
    )

    # -------------------------------------------------------------------------
    # Earnings Defaults
    # -------------------------------------------------------------------------
    # Used when no active rate row / model config exists

    DEFAULT_MODEL_PERCENTAGE: float = Field(
        default=80.0,
        ge=0.0,
        le=100.0,
        description="Model revenue share when neither override nor group percentage is set"
    )

    DEFAULT_RATE_USD_COP: float = Field(
        default=3900.0,
        gt=0.0,
        description="USD -> COP fallback rate"
    )

    DEFAULT_RATE_EUR_USD: float = Field(
        default=1.01,
        gt=0.0,
        description="EUR -> USD fallback rate"
    )

    DEFAULT_RATE_GBP_USD: float = Field(
        default=1.20,
        gt=0.0,
        description="GBP -> USD fallback rate"
    )

    # -------------------------------------------------------------------------
    # Closure Schedule
    # -------------------------------------------------------------------------

    LOCAL_TIMEZONE: str = Field(
        default="America/Bogota",
        description="Timezone the agency's periods are closed in"
    )

    EARLY_FREEZE_TIMEZONE: str = Field(
        default="Europe/Berlin",
        description="Timezone whose midnight triggers the early freeze"
    )

    EARLY_FREEZE_TOLERANCE_MINUTES: int = Field(
        default=5,
        ge=0,
        le=60,
        description="Window around Berlin midnight in which the early freeze job may run"
    )

    AUTO_FREEZE_MARGIN_MINUTES: int = Field(
        default=15,
        ge=0,
        le=120,
        description="Minutes after Berlin midnight before the UI treats early platforms as frozen"
    )

    DXLIVE_FREEZE_HOUR: int = Field(
        default=10,
        ge=0,
        le=23,
        description="Local hour at which DX Live is frozen on the last day of a period"
    )

    FULL_CLOSURE_WINDOW_MINUTES: int = Field(
        default=15,
        ge=0,
        le=59,
        description="Minutes after local midnight in which the full closure may start"
    )

    SUMMARY_WAIT_SECONDS: int = Field(
        default=150,
        ge=0,
        le=900,
        description="Pause between closing calculators and closing the billing summary"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging, auto-reload)"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        # Load from .env file in project root
        env_file=".env",
        env_file_encoding="utf-8",
        # Don't fail if .env doesn't exist (useful for production where
        # env vars are set directly)
        env_ignore_empty=True,
        # Case-sensitive environment variable names
        case_sensitive=True,
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://myapp.com" -> ["http://localhost:3000", "https://myapp.com"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.

    Returns:
        Settings: The application settings instance
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
