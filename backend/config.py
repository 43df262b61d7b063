"""Application configuration."""

from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "SMASH Dashboard"
    debug: bool = True
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./db/smash-dashboard.sqlite"

    # Redis (Sprout OAuth token cache)
    redis_url: str = "redis://localhost:6379/0"

    # Sprout Social API
    sprout_base_url: str = "https://api.sproutsocial.com/v1"
    sprout_api_key: str = ""  # Static token, preferred over OAuth when set
    sprout_client_id: str = ""
    sprout_client_secret: str = ""
    sprout_token_url: str = "https://identity.sproutsocial.com/oauth2/84e39c75-d770-45d9-90a9-7b79e3037d2c/v1/token"
    sprout_customer_id: str = ""

    # Registry (EMV rates, platforms, shows, talent, alert thresholds, templates)
    registry_dir: Path = BASE_DIR / "data"

    # Ingestion
    refresh_lookback_days: int = 365
    refresh_interval_hours: int = 24
    enable_scheduler: bool = False
    refresh_rate_limit: str = "2/minute"
    trust_forwarded_for: bool = False  # Key the refresh limit on X-Forwarded-For

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
