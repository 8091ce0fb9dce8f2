"""Configuration settings for gigboard."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra env vars not in model
    )

    # Storage
    storage_backend: Literal["memory", "supabase"] = "memory"
    supabase_url: str | None = None
    supabase_secret_key: str | None = None  # Backend/admin access

    # JWT
    jwt_secret_key: str  # Required - no default for security
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7  # 1 week
    cookie_secure: bool = True  # Set False only for plain-HTTP local dev

    # App
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Rate limiting
    rate_limit_enabled: bool = True
    # Comma-separated CIDRs allowed to set X-Forwarded-For
    trusted_proxy_cidrs: str = "10.0.0.0/8,172.16.0.0/12,192.168.0.0/16,127.0.0.0/8,::1/128"

    # Hiring
    hire_max_attempts: int = 3
    hire_backoff_min_ms: int = 10
    hire_backoff_max_ms: int = 50
    # Assigned gigs younger than this are never touched by reconciliation,
    # since a hire may still be in flight.
    orphan_grace_seconds: int = 300


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
