"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file and not os.getenv("TESTING"):
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


DEFAULT_SCOPE = "default"


class RateLimitPolicy(BaseModel):
    """Request budget for one endpoint scope."""

    limit: int = Field(..., ge=1, description="Maximum requests per window")
    window_ms: int = Field(..., ge=1, description="Window length in milliseconds")


# Budgets used by the auth and expense endpoints.
DEFAULT_RATE_LIMIT_POLICIES: dict[str, RateLimitPolicy] = {
    "login": RateLimitPolicy(limit=10, window_ms=15 * 60 * 1000),
    "signup": RateLimitPolicy(limit=5, window_ms=60 * 60 * 1000),
    "logout": RateLimitPolicy(limit=20, window_ms=60 * 1000),
    "expenses": RateLimitPolicy(limit=100, window_ms=60 * 1000),
    DEFAULT_SCOPE: RateLimitPolicy(limit=100, window_ms=60 * 1000),
}


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) populates values from environment variables, but
    static type checkers treat required fields as constructor arguments.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    """Build log settings from environment."""

    return LogSettings()  # type: ignore[call-arg]


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int | None = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (None disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required for admin routes",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for admin routes",
    )
    trust_proxy_headers: bool = Field(
        True,
        description="Derive client IP from X-Forwarded-For / X-Real-IP",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-scope rate limiting",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* headers when throttling",
    )
    rate_limit_policies: dict[str, RateLimitPolicy] = Field(
        default_factory=dict,
        description="Per-scope overrides as JSON, merged over the built-in policies",
    )
    rate_limit_max_keys: int | None = Field(
        100_000,
        description="Maximum tracked keys (None for unlimited)",
    )
    rate_limit_sweep_enabled: bool = Field(
        True,
        description="Run the background sweep of expired rate limit records",
    )
    rate_limit_sweep_interval_seconds: float = Field(
        300.0,
        description="Seconds between background sweeps",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )

    def effective_policies(self) -> dict[str, RateLimitPolicy]:
        """Return built-in policies with configured overrides applied."""

        policies = dict(DEFAULT_RATE_LIMIT_POLICIES)
        policies.update(self.rate_limit_policies)
        return policies

    def policy_for(self, scope: str) -> RateLimitPolicy:
        """Resolve the policy for a scope, falling back to the default one."""

        policies = self.effective_policies()
        return policies.get(scope) or policies[DEFAULT_SCOPE]


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
