"""Environment configuration and validation.

Settings come from environment variables, optionally through a local `.env` file.
"""

from __future__ import annotations

import re

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fitbounty.challenges.escrow import DEFAULT_INITIAL_DELAY_S, DEFAULT_INTERVAL_S
from fitbounty.intent.validation import INVOICE_EXPIRY_SECONDS

_HEX_KEY_RE = re.compile(r"^[0-9a-f]{64}$")


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Without `DATABASE_URL` the bot keeps challenges in memory (suitable for local runs only).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str | None = Field(default=None, alias="DATABASE_URL")
    db_timezone: str = Field(default="UTC", alias="DB_TIMEZONE")

    lnbits_url: str = Field(default="https://legend.lnbits.com", alias="LNBITS_URL")
    lnbits_api_key: str = Field(alias="LNBITS_API_KEY")
    lnbits_timeout_s: float = Field(default=30.0, gt=0, alias="LNBITS_TIMEOUT_S")

    bot_pubkey: str | None = Field(default=None, alias="BOT_PUBKEY")
    invoice_expiry_s: int = Field(default=INVOICE_EXPIRY_SECONDS, gt=0, alias="INVOICE_EXPIRY_S")
    monitor_initial_delay_s: float = Field(
        default=DEFAULT_INITIAL_DELAY_S, ge=0, alias="MONITOR_INITIAL_DELAY_S"
    )
    monitor_interval_s: float = Field(default=DEFAULT_INTERVAL_S, gt=0, alias="MONITOR_INTERVAL_S")

    console_identity: str = Field(default="console", alias="CONSOLE_IDENTITY")

    @field_validator("db_timezone")
    @classmethod
    def validate_db_timezone_is_utc(cls, value: str) -> str:
        """Challenge end dates are compared in UTC; any other session timezone is rejected."""

        if value.upper() != "UTC":
            raise ValueError("DB_TIMEZONE must be UTC")
        return "UTC"

    @field_validator("bot_pubkey")
    @classmethod
    def validate_bot_pubkey(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        key = value.strip().lower()
        if not _HEX_KEY_RE.match(key):
            raise ValueError("BOT_PUBKEY must be a 64-character hex public key")
        return key


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Raises:
        RuntimeError: If the environment configuration is missing or invalid.
    """

    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"Invalid environment configuration: {exc}") from exc
