"""
Application configuration using Pydantic Settings.

Supports hierarchical environment configuration:
- .env.base: Common non-secret defaults (committed to git)
- .env.{ENVIRONMENT}: Environment-specific overrides (gitignored)
- Environment variables: Highest priority

The upstream credential is resolved per request through get_settings(), never
at import time, so the app starts (and tests run) without it.
"""

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Get environment from env var, default to development
ENV = os.getenv("ENVIRONMENT", "development")


class Settings(BaseSettings):
    """Application settings with hierarchical env file support."""

    model_config = SettingsConfigDict(
        # Load base first, then environment-specific override
        env_file=[
            ".env.base",  # Common defaults (committed)
            f".env.{ENV}",  # Environment overrides (gitignored)
        ],
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "test", "production"] = "development"

    # Security
    allowed_hosts: list[str] = [
        "*"
    ]  # Allow all hosts (override via ALLOWED_HOSTS env var)
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Upstream completion provider (OpenAI-compatible chat completions)
    thesys_api_key: str = ""
    upstream_base_url: str = "https://api.thesys.dev/v1/embed"
    upstream_model: str = "c1/openai/gpt-5/v-20250915"
    upstream_timeout_seconds: float = Field(60.0, gt=0)

    # Prompt validation
    max_prompt_length: int = Field(10_000, ge=1)

    # Rate limiting (slowapi)
    rate_limit_ask: str = "30/minute"
    rate_limit_storage_uri: str = "memory://"  # redis://host:6379 for multi-instance

    # Request timing
    slow_request_threshold_ms: float = 500.0

    # Streaming consumer (CLI / client side)
    relay_url: str = "http://localhost:8000/api/ask"
    exchange_timeout_seconds: float = Field(30.0, gt=0)

    @property
    def has_upstream_credential(self) -> bool:
        """Check whether the upstream API key is configured."""
        return bool(self.thesys_api_key.strip())

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
