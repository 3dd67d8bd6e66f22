"""Application configuration via pydantic-settings.

Reads from .env file or environment variables. All settings are validated
at startup; if a setting has the wrong type, the app fails fast with a
clear error message.

Usage:
    from auction_settlement.config import get_settings
    settings = get_settings()
    print(settings.database_url)
"""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the auction settlement service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True
    app_log_level: str = "DEBUG"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    cors_allow_origins: list[str] = ["*"]

    # --- Database (PostgreSQL) ---
    database_url: str = (
        "postgresql+asyncpg://settlement:settlement_dev"
        "@localhost:5432/auction_settlement"
    )
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_echo_sql: bool = False
    # Fail with ConcurrentModification instead of queueing behind a row lock
    db_lock_nowait: bool = True

    # --- Redis ---
    redis_url: str = "redis://localhost:6379/0"
    redis_idempotency_ttl_seconds: int = 86400  # 24 hours

    # --- Pricing ---
    default_buyer_premium_percent: Decimal = Decimal("5.0")
    default_seller_commission_percent: Decimal = Decimal("8.0")
    payment_due_days: int = 7

    # --- Object storage ---
    storage_backend: Literal["memory", "local", "http"] = "local"
    storage_local_path: str = "./var/uploads"
    storage_public_url_base: str = "http://localhost:8000"
    storage_http_endpoint: str = ""
    storage_http_token: str = ""
    storage_timeout_seconds: float = 10.0

    # --- Notifications ---
    notification_backend: Literal["log", "memory", "http"] = "log"
    notification_webhook_url: str = ""
    notification_timeout_seconds: float = 5.0

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton of the application settings."""
    return Settings()
