"""Application configuration via pydantic-settings.

Reads from .env file or environment variables. All settings are validated
at startup: an out-of-range fee rate or a malformed value fails fast with a
clear error message instead of reaching the engine.

Usage:
    from arbitrated_escrow.config import get_settings
    settings = get_settings()
    print(settings.escrow_fee_rate_bps)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from arbitrated_escrow.services.fee_policy import MAX_FEE_RATE_BPS


class Settings(BaseSettings):
    """Central configuration for the escrow service."""

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

    # --- Database ---
    database_url: str = "sqlite+aiosqlite:///./arbitrated_escrow.db"
    db_echo_sql: bool = False

    # --- Escrow Program ---
    escrow_owner_address: str = "0x" + "0" * 39 + "1"
    escrow_arbitrator_address: str = "0x" + "0" * 39 + "2"
    escrow_fee_rate_bps: int = Field(default=250, ge=0, le=MAX_FEE_RATE_BPS)

    # --- Simulated Ledger ---
    faucet_enabled: bool = True

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_in_memory_database(self) -> bool:
        return ":memory:" in self.database_url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton of the application settings."""
    return Settings()
