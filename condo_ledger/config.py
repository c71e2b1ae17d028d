"""Application configuration from environment variables."""

from decimal import Decimal
from typing import Optional

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Ledger settings loaded from environment variables and ``.env``."""

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./condo_ledger.db",
        description="SQLAlchemy async connection string",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/ledger.log", description="Log file path")

    # Formatting
    locale: str = Field(default="es_MX", description="Locale for month names")

    # Ledger defaults
    snapshot_ttl_hours: int = Field(default=24, description="House status snapshot TTL")
    default_penalty_amount: Decimal = Field(
        default=Decimal("100"),
        description="Penalty used when no config provides one",
    )
    default_due_day: int = Field(
        default=15, description="Due day used when no config is active"
    )
    default_maintenance_amount: Decimal = Field(
        default=Decimal("800"),
        description="Maintenance expected when a period has no config at all",
    )


_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the settings instance (lazy, so .env is loaded first)."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


__all__ = ["Settings", "get_settings"]
