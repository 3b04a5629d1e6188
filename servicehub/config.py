"""Configuration settings for the ServiceHub backend."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # JWT
    jwt_secret_key: str  # Required - no default for security
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 30  # 30 days

    # Session cookie, checked before the Authorization header
    auth_cookie_name: str = "access_token"

    # Storage
    storage_backend: Literal["memory", "supabase"] = "memory"
    supabase_url: str | None = None
    supabase_secret_key: str | None = None

    # App
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    rate_limit_enabled: bool = True
    register_rate_limit: str = "5/minute"
    login_rate_limit: str = "10/minute"
    # Only these sources may set X-Forwarded-For
    trusted_proxy_cidrs: list[str] = [
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "127.0.0.0/8",
        "::1/128",
    ]
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
