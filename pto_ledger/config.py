from decimal import Decimal
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "PTO Ledger"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "postgresql+asyncpg://pto_ledger:pto_ledger@db:5432/pto_ledger"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]
    log_level: str = "INFO"

    # Connection pool (ignored for SQLite URLs)
    db_pool_size: int = Field(default=5, ge=1)
    db_max_overflow: int = Field(default=10, ge=0)

    # Organization-wide leave policy
    annual_sick_hours: Decimal = Field(default=Decimal(40), ge=0)
    annual_vac_hours: Decimal = Field(default=Decimal(40), ge=0)
    rollover_cap_hours: Decimal | None = Field(default=None, ge=0)

    # Transaction conflict handling
    max_conflict_retries: int = Field(default=3, ge=1)
    conflict_backoff_seconds: float = Field(default=0.05, ge=0)

    audit_log_default_limit: int = Field(default=500, ge=1)
    audit_log_max_limit: int = Field(default=1000, ge=1)

    worker_interval_seconds: int = Field(default=86400, ge=1)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
