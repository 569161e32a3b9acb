# src/mmkrate/config/settings.py
"""
Settings - Pydantic-based Configuration Management

Provides centralized configuration management using Pydantic Settings.
Every business threshold of the collection subsystem (rate bound, query
caps, health thresholds, alert trimming) is a setting rather than a
hardcoded constant.

Files that USE this module:
- mmkrate.app (loads settings for bot configuration)
- mmkrate.adapters.collectors.base (HTTP timeout, user agent, rate bound)
- mmkrate.adapters.telegram.* (admin ids, rate limits)
- mmkrate.application.* (query caps and health thresholds as defaults)

Files that this module USES:
- mmkrate.shared.validators (validation functions for settings)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

from pathlib import Path  # Object-oriented filesystem paths
from typing import List, Optional, Set  # Type hints

from pydantic import Field, field_validator  # Data validation and field configuration
from pydantic_settings import BaseSettings, SettingsConfigDict  # Settings management with Pydantic

from mmkrate.shared.validators import (
    parse_admin_ids,  # Parse ADMIN_TELEGRAM_IDS
    validate_bot_token,  # Validate Telegram bot token format
)

DEFAULT_USER_AGENT = "MMK-Currency-Bot/1.0 (Myanmar Currency Exchange Rate Collector)"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # --- Telegram ---
    bot_token: str = Field(default="", alias="BOT_TOKEN")
    admin_telegram_ids: str = Field(default="", alias="ADMIN_TELEGRAM_IDS")

    # --- HTTP Settings ---
    http_timeout_seconds: int = Field(default=30, alias="HTTP_TIMEOUT_SECONDS", ge=1, le=120)
    http_user_agent: str = Field(default=DEFAULT_USER_AGENT, alias="HTTP_USER_AGENT")

    # --- Collection ---
    collector_timeout_seconds: float = Field(default=30.0, alias="COLLECTOR_TIMEOUT_SECONDS", gt=0, le=300)
    collection_interval_minutes: int = Field(default=30, alias="COLLECTION_INTERVAL_MINUTES", ge=1, le=1440)
    max_rate: float = Field(default=10_000.0, alias="MAX_RATE", gt=0)
    crypto_asset_codes: str = Field(default="USDT", alias="CRYPTO_ASSET_CODES")

    # --- Queries ---
    latest_rates_limit: int = Field(default=50, alias="LATEST_RATES_LIMIT", ge=1)
    historical_rates_limit: int = Field(default=1000, alias="HISTORICAL_RATES_LIMIT", ge=1)

    # --- Health ---
    health_check_interval_minutes: int = Field(default=30, alias="HEALTH_CHECK_INTERVAL_MINUTES", ge=1, le=1440)
    health_window_hours: float = Field(default=24.0, alias="HEALTH_WINDOW_HOURS", gt=0)
    health_expected_updates: int = Field(default=24, alias="HEALTH_EXPECTED_UPDATES", ge=1)
    health_degraded_after_hours: float = Field(default=2.0, alias="HEALTH_DEGRADED_AFTER_HOURS", gt=0)
    health_down_after_hours: float = Field(default=6.0, alias="HEALTH_DOWN_AFTER_HOURS", gt=0)
    health_min_update_ratio: float = Field(default=0.8, alias="HEALTH_MIN_UPDATE_RATIO", ge=0.0, le=1.0)
    health_sample_limit: int = Field(default=50, alias="HEALTH_SAMPLE_LIMIT", ge=1)
    max_health_alerts: int = Field(default=50, alias="MAX_HEALTH_ALERTS", ge=1)

    # --- Persistence ---
    store_backend: str = Field(default="json", alias="STORE_BACKEND")
    data_file: Path = Field(default=Path("./data/rates_store.json"), alias="DATA_FILE")

    # --- Chat commands ---
    rate_limit_per_user_per_minute: int = Field(default=20, alias="RATE_LIMIT_PER_USER_PER_MINUTE", ge=1)

    # --- Logging (for server deployment) ---
    log_file: Optional[str] = Field(default=None, alias="LOG_FILE")
    log_dir: Optional[str] = Field(default=None, alias="LOG_DIR")
    log_stdout: bool = Field(default=True, alias="MMKRATE_LOG_STDOUT")
    log_max_bytes: int = Field(default=10 * 1024 * 1024, alias="LOG_MAX_BYTES")  # 10MB
    log_backup_count: int = Field(default=5, alias="LOG_BACKUP_COUNT")
    enable_debug_logs: bool = Field(default=False, alias="ENABLE_DEBUG_LOGS")

    @property
    def admin_ids(self) -> Set[int]:
        """Telegram user ids allowed to run admin commands."""
        return parse_admin_ids(self.admin_telegram_ids)

    @property
    def asset_codes(self) -> List[str]:
        """Crypto asset codes the rate validator accepts."""
        return [c.strip().upper() for c in self.crypto_asset_codes.split(",") if c.strip()]

    @field_validator("bot_token")
    @classmethod
    def validate_bot_token(cls, v: str) -> str:
        """Validate bot token format when one is configured."""
        if v and not validate_bot_token(v):
            raise ValueError("Invalid BOT_TOKEN format")
        return v

    @field_validator("admin_telegram_ids")
    @classmethod
    def validate_admin_ids(cls, v: str) -> str:
        """Reject non-numeric admin ids early."""
        parse_admin_ids(v)
        return v

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "memory"):
            raise ValueError("STORE_BACKEND must be 'json' or 'memory'")
        return v


# Global settings instance
settings = Settings()
