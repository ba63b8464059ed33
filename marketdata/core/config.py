"""
Application Configuration

All settings loaded from environment variables.
"""

from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Application
    app_name: str = "MarketData Ingest"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # SQLite (local persistence)
    sqlite_path: Optional[str] = None  # Defaults to ./data/marketdata.db

    # Redis (price update fan-out)
    redis_url: str = "redis://localhost:6379"
    redis_enabled: bool = True

    # Instrument reference feed
    instruments_url: str = "https://growwapi-assets.groww.in/instruments/instrument.csv"
    instruments_supported_exchanges: list[str] = ["NSE", "BSE"]
    instruments_sync_cron: str = "30 21 * * SUN"  # Sunday 21:30
    instruments_sync_scheduled: bool = False
    instruments_sync_on_startup: bool = False

    # Market data scheduler
    scheduler_enabled: bool = True
    scheduler_interval_ms: int = 1_800_000  # 30 minutes
    scheduler_initial_delay_ms: int = 5_000
    scheduler_throttle_ms: int = 100
    scheduler_fetch_timeout_seconds: float = 30.0
    scheduler_price_interval: str = "1d"

    # Groww live data scheduler (daily bars from the "Grow API" data source)
    groww_scheduler_enabled: bool = False
    groww_scheduler_interval_ms: int = 30_000
    groww_scheduler_initial_delay_ms: int = 5_000

    # Groww token exchange (optional; falls back to data source api_key)
    groww_api_key: Optional[str] = None
    groww_api_secret: Optional[str] = None
    groww_token_url: str = "https://api.groww.in/v1/token/api/access"

    # Provider HTTP policy
    provider_max_retries: int = 2
    provider_retry_backoff_seconds: float = 2.0
    provider_default_timeout_seconds: int = 30

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
