"""Configuration for Ledger Connect.

Settings are read from environment variables prefixed with ``LEDGER_`` (or a
``.env`` file) through pydantic-settings. Use ``get_settings()`` rather than
instantiating ``Settings`` directly so the whole process shares one copy.
"""

from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine, logging and HTTP settings."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        extra="ignore",
    )

    # Ledger
    timezone: str = Field(
        default="UTC",
        description="IANA timezone used to derive an event's local calendar day"
    )
    currency_symbol: str = Field(default="₱", description="Prefix for display amounts")
    minor_units: int = Field(default=2, ge=0, le=4, description="Decimal places of the currency")

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # API
    api_title: str = "Ledger Connect API"
    api_prefix: str = "/v1"

    # HTTP client
    api_base_url: str = "http://localhost:8000"
    request_timeout: float = 30.0

    # Persistence
    snapshot_path: Optional[str] = None

    # Credentials
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
