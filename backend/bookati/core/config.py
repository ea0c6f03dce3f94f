# backend/bookati/core/config.py
import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_BACKEND_ROOT = Path(__file__).resolve().parents[2]


# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = _BACKEND_ROOT / ".env"
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    """Runtime configuration for the booking core."""

    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        alias="ENVIRONMENT",
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    database_url: str = Field(
        default=f"sqlite:///{_BACKEND_ROOT / 'bookati.db'}",
        alias="DATABASE_URL",
        description="SQLAlchemy URL for the primary database",
    )
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    api_host: str = Field(default="127.0.0.1", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT", ge=1, le=65535)

    # Capacity / locking
    slot_lock_timeout_ms: int = Field(
        default=5000,
        alias="SLOT_LOCK_TIMEOUT_MS",
        description="Maximum wait for a slot or package row lock before failing",
        ge=1,
    )
    slot_hold_ttl_seconds: int = Field(
        default=120,
        alias="SLOT_HOLD_TTL_SECONDS",
        description="Lifetime of a checkout hold on slot capacity",
        ge=1,
    )
    enforce_resource_overlap: bool = Field(
        default=False,
        alias="ENFORCE_RESOURCE_OVERLAP",
        description="Block time-overlapping slots of the same resource on admission",
    )

    # Billing
    currency_quantum: Decimal = Field(
        default=Decimal("0.01"),
        alias="CURRENCY_QUANTUM",
        description="Rounding step for booking prices",
    )

    model_config = SettingsConfigDict(
        env_file=str(_BACKEND_ROOT / ".env"),
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = (value or "INFO").strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {value}")
        return level


settings = Settings()
