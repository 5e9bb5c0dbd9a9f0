"""
Configuration Settings

This module defines process configuration using Pydantic Settings.
All configuration is loaded from environment variables or .env file.

The routes themselves are not configured here: they live in the JSON
routes document pointed to by ROUTES_CONFIG_PATH (see routes_config.py).
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["Settings", "settings", "EnvSettingsOptions", "RefreshScope"]

BASE_DIR = Path(__file__).resolve().parent.parent.parent


class EnvSettingsOptions(Enum):
    """Environment options for deployment."""
    production = "production"
    staging = "staging"
    development = "dev"


class RefreshScope(str, Enum):
    """Granularity of the manual stats refresh cooldown."""
    global_ = "global"
    document = "document"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Project Configuration
    ENV_SETTING: EnvSettingsOptions = Field(
        default=EnvSettingsOptions.development,
        description="Environment setting (production, staging, dev)"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level"
    )

    # Server Configuration
    # The routes document "server" section overrides these when present
    HOST: str = Field(default="0.0.0.0", description="Bind address")
    PORT: int = Field(default=8080, description="Bind port")
    ROUTES_CONFIG_PATH: Path = Field(
        default=BASE_DIR / "config.json",
        description="JSON document declaring the webhook routes"
    )

    # Storage Configuration
    STORAGE_DIR: Path = Field(
        default_factory=lambda: Path.cwd() / "storage",
        description="Directory holding document files and their read logs"
    )

    # Stats Configuration
    STATS_REFRESH_COOLDOWN_SECONDS: float = Field(
        default=1800,
        description="Minimum seconds between two honored manual refreshes"
    )
    STATS_REFRESH_SCOPE: RefreshScope = Field(
        default=RefreshScope.global_,
        description="Cooldown granularity: 'global' (process-wide) or 'document'"
    )
    STATS_CACHE_MAX_ENTRIES: int = Field(
        default=1024,
        description="Maximum number of cached documents per view (LRU eviction)"
    )
    STATS_WINDOW_DAYS: int = Field(
        default=10,
        description="Number of days shown by the trailing-window view"
    )
    STATS_WAU_DAYS: int = Field(
        default=7,
        description="Number of days (inclusive of today) counted as weekly active"
    )
    STATS_POLL_MINUTES: float = Field(
        default=3,
        description="Client polling interval used to estimate time present"
    )
    CHART_LIBRARY_URL: str = Field(
        default="https://cdn.jsdelivr.net/npm/echarts@5/dist/echarts.min.js",
        description="Charting library loaded by the stats page"
    )

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = Field(
        default=True,
        description="Enable per-IP rate limiting on webhook routes"
    )


settings = Settings()
