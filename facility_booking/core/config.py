# facility_booking/core/config.py
"""
Runtime configuration for the facility booking engine.

`Settings` is read once from the environment (and an optional `.env` file).
Booking policy is then frozen into a `BookingConfig` value that services
receive by injection instead of reading a settings table per request.
"""

from decimal import Decimal
from functools import lru_cache
import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz

logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).resolve().parents[2] / ".env"
    if env_path.exists():
        logger.info(f"[CONFIG] Loading environment from {env_path}")
        load_dotenv(env_path)


WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

DEFAULT_OPERATING_HOURS: Dict[str, Dict[str, str]] = {
    day: {"open": "06:00", "close": "22:00"} for day in WEEKDAYS
}


class Settings(BaseSettings):
    environment: Literal["development", "test", "staging", "production"] = "development"
    database_url: str = Field(
        default="sqlite:///./facility_booking.db",
        description="SQLAlchemy database URL (PostgreSQL in production)",
    )
    database_echo: bool = False
    platform_timezone: str = Field(
        default="Asia/Kathmandu",
        description="Timezone used to evaluate 'today' and booking start times",
    )
    log_level: str = "INFO"
    celery_broker_url: str = "redis://localhost:6379/0"

    # Booking policy
    default_commission_rate: Decimal = Field(default=Decimal("0.10"), gt=0, le=1)
    min_booking_duration_minutes: int = Field(default=30, ge=1)
    max_booking_duration_minutes: Optional[int] = Field(
        default=240,
        ge=1,
        description="Upper bound on booking length; unset to disable the cap",
    )
    max_advance_booking_days: int = Field(default=30, ge=0)
    cancellation_notice_hours: int = Field(default=24, ge=0)
    slot_granularity_minutes: int = Field(default=30, ge=5, le=240)
    max_active_bookings_per_user: int = Field(default=3, ge=1)
    booking_code_length: int = Field(default=8, ge=4, le=10)
    max_code_attempts: int = Field(default=20, ge=1)
    max_transaction_attempts: int = Field(default=3, ge=1, le=10)
    pending_booking_ttl_minutes: Optional[int] = Field(
        default=30,
        ge=1,
        description="Pending bookings older than this are expired; unset to keep them indefinitely",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("platform_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        if v not in pytz.all_timezones_set:
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @field_validator("max_booking_duration_minutes", "pending_booking_ttl_minutes", mode="before")
    @classmethod
    def empty_as_none(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().lower() in {"", "none", "null"}:
            return None
        return v


class BookingConfig(BaseModel):
    """Immutable booking policy handed to the engine's services."""

    model_config = ConfigDict(frozen=True)

    default_commission_rate: Decimal = Decimal("0.10")
    min_duration_minutes: int = 30
    max_duration_minutes: Optional[int] = 240
    max_advance_days: int = 30
    cancellation_notice_hours: int = 24
    slot_granularity_minutes: int = 30
    max_active_bookings_per_user: int = 3
    booking_code_length: int = 8
    max_code_attempts: int = 20
    max_transaction_attempts: int = 3
    pending_booking_ttl_minutes: Optional[int] = 30
    platform_timezone: str = "Asia/Kathmandu"
    default_operating_hours: Dict[str, Dict[str, str]] = Field(
        default_factory=lambda: dict(DEFAULT_OPERATING_HOURS)
    )

    @model_validator(mode="after")
    def validate_duration_bounds(self) -> "BookingConfig":
        if (
            self.max_duration_minutes is not None
            and self.max_duration_minutes < self.min_duration_minutes
        ):
            raise ValueError("max_duration_minutes must be >= min_duration_minutes")
        return self

    @classmethod
    def from_settings(cls, source: Settings) -> "BookingConfig":
        return cls(
            default_commission_rate=source.default_commission_rate,
            min_duration_minutes=source.min_booking_duration_minutes,
            max_duration_minutes=source.max_booking_duration_minutes,
            max_advance_days=source.max_advance_booking_days,
            cancellation_notice_hours=source.cancellation_notice_hours,
            slot_granularity_minutes=source.slot_granularity_minutes,
            max_active_bookings_per_user=source.max_active_bookings_per_user,
            booking_code_length=source.booking_code_length,
            max_code_attempts=source.max_code_attempts,
            max_transaction_attempts=source.max_transaction_attempts,
            pending_booking_ttl_minutes=source.pending_booking_ttl_minutes,
            platform_timezone=source.platform_timezone,
        )


settings = Settings()


@lru_cache(maxsize=1)
def get_booking_config() -> BookingConfig:
    """Booking policy built once from process settings."""
    config = BookingConfig.from_settings(settings)
    logger.info(
        "[CONFIG] Booking policy loaded: timezone=%s min=%s max=%s advance_days=%s notice_hours=%s",
        config.platform_timezone,
        config.min_duration_minutes,
        config.max_duration_minutes,
        config.max_advance_days,
        config.cancellation_notice_hours,
    )
    return config
