"""Worker configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production injects via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first.
if _env_file and not os.getenv("TESTING"):
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_redis_settings() -> "RedisSettings":
    return RedisSettings()


def _build_throttle_settings() -> "ThrottleSettings":
    return ThrottleSettings()


def _build_worker_settings() -> "WorkerSettings":
    return WorkerSettings()


def _build_app_settings() -> "AppSettings":
    return AppSettings()


def _build_log_settings() -> "LogSettings":
    return LogSettings()


class RedisSettings(BaseSettings):
    """Shared store connection settings."""

    url: str = Field(
        "redis://127.0.0.1:6379/0",
        description="Redis URL including credentials and database number",
    )
    socket_timeout_seconds: float = Field(
        2.0,
        description="Timeout for a single Redis command",
        gt=0,
    )
    connect_timeout_seconds: float = Field(
        2.0,
        description="Timeout for establishing a connection",
        gt=0,
    )
    max_retries: int = Field(
        3,
        description="Transport-level retries for a failed command (exponential backoff)",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class ThrottleSettings(BaseSettings):
    """Push throttle configuration (fixed window shared across workers)."""

    backend: Literal["redis", "memory"] = Field(
        "redis",
        description="Window store backend; 'memory' is per-process and meant for local runs",
    )
    key: str = Field(
        "fcm_throttle_key",
        description="Limiter key shared by every worker sending pushes",
        min_length=1,
    )
    max_per_window: int = Field(
        1200,
        description="Maximum push batches per window",
        ge=0,
    )
    window_seconds: int = Field(
        60,
        description="Window size in seconds",
        ge=1,
    )
    block_seconds: float = Field(
        0,
        description="How long to wait for a slot; 0 means a single attempt",
    )
    sleep_ms: int = Field(
        750,
        description="Delay between attempts while waiting for a slot",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="THROTTLE_",
        case_sensitive=False,
    )


class WorkerSettings(BaseSettings):
    """Queue record handling configuration."""

    max_receive_count: int = Field(
        5,
        description="Records delivered more often than this stop the batch",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="WORKER_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """HTTP ingestion configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for authentication",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable ingress rate limiting per API key (shared store)",
    )
    rate_limit_requests: int = Field(
        60,
        description="Maximum number of requests allowed per window (per API key)",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        60,
        description="Rate limit window size in seconds",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log line format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        0,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if a setting is invalid.
    """

    app_env: str = APP_ENV
    redis: RedisSettings = Field(default_factory=_build_redis_settings)
    throttle: ThrottleSettings = Field(default_factory=_build_throttle_settings)
    worker: WorkerSettings = Field(default_factory=_build_worker_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance composed from domain-specific settings.
settings = Settings()
