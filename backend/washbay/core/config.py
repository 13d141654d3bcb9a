# backend/washbay/core/config.py
from datetime import time
from ipaddress import IPv4Network, IPv6Network, ip_network
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_BACKEND_ROOT = Path(__file__).resolve().parents[2]

logger = logging.getLogger(__name__)

load_dotenv(_BACKEND_ROOT / ".env", override=False)


def parse_clock_time(value: object) -> time:
    """Parse an ``HH:MM`` wall-clock value (or pass a ``time`` through)."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str):
        raise ValueError("time must be a string in HH:MM format")
    raw = value.strip()
    parts = raw.split(":")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise ValueError(f"invalid time '{raw}', expected HH:MM")
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"invalid time '{raw}', expected HH:MM")
    return time(hour, minute)


class Settings(BaseSettings):
    """Runtime configuration for the booking engine."""

    environment: str = Field(default="development", description="development|test|production")

    database_url: str = Field(
        default="sqlite:///./washbay.db",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements")
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL for shared rate-limit state; in-memory store when unset",
    )

    # Business calendar
    business_hours_start: time = Field(default=time(8, 0), description="Opening time (HH:MM)")
    business_hours_end: time = Field(default=time(16, 0), description="Closing time (HH:MM)")
    slot_step_minutes: int = Field(default=30, ge=5, le=240)
    weekend_days: str = Field(
        default="6,7",
        description="Comma-separated ISO weekday numbers that are always closed (Mon=1 .. Sun=7)",
    )
    observe_public_holidays: bool = Field(default=True)
    long_service_threshold_minutes: int = Field(default=360, ge=0)
    long_service_extension_minutes: int = Field(default=120, ge=0)
    latest_closing_time: time = Field(default=time(20, 0))

    # Booking creation throttle (unauthenticated callers)
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    booking_rate_limit_max_attempts: int = Field(default=5, ge=1)
    booking_rate_limit_window_seconds: int = Field(default=900, ge=1)
    booking_rate_limit_lockout_seconds: int = Field(default=1800, ge=0)
    rate_limit_namespace: str = Field(default="washbay")
    trusted_proxies: str = Field(
        default="",
        description="Proxy addresses or CIDR ranges whose forwarding headers are trusted",
    )

    # Admin gate
    admin_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Shared secret presented in X-Admin-Key by staff tooling",
    )

    # Notifications
    notifications_enabled: bool = Field(default=True)
    notification_workers: int = Field(default=2, ge=1, le=16)
    business_name: str = Field(default="Washbay")

    # Monitoring
    slow_operation_threshold_ms: int = Field(default=100, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator(
        "business_hours_start", "business_hours_end", "latest_closing_time", mode="before"
    )
    @classmethod
    def _parse_hhmm(cls, value: object) -> time:
        return parse_clock_time(value)

    @field_validator("weekend_days", mode="before")
    @classmethod
    def _parse_weekend_days(cls, value: object) -> str:
        if value is None:
            return ""
        if isinstance(value, (list, tuple, set)):
            value = ",".join(str(token) for token in value)
        if not isinstance(value, str):
            raise ValueError("weekend_days must be a comma-separated string or list")
        tokens = [token.strip() for token in value.split(",") if token.strip()]
        if any(not token.isdigit() or not 1 <= int(token) <= 7 for token in tokens):
            raise ValueError("weekend_days must contain ISO weekday numbers 1..7")
        return ",".join(tokens)

    @field_validator("trusted_proxies", mode="before")
    @classmethod
    def _parse_trusted_proxies(cls, value: object) -> str:
        if value is None:
            return ""
        if isinstance(value, (list, tuple, set)):
            value = ",".join(str(token) for token in value)
        if not isinstance(value, str):
            raise ValueError("trusted_proxies must be a comma-separated string or list")
        tokens = [token.strip() for token in value.split(",") if token.strip()]
        for token in tokens:
            try:
                ip_network(token, strict=False)
            except ValueError:
                raise ValueError(f"invalid trusted proxy '{token}'")
        return ",".join(tokens)

    @model_validator(mode="after")
    def _check_business_hours(self) -> "Settings":
        if self.business_hours_end <= self.business_hours_start:
            raise ValueError("business_hours_end must be after business_hours_start")
        if self.latest_closing_time < self.business_hours_end:
            raise ValueError("latest_closing_time must not be before business_hours_end")
        return self

    @property
    def weekend_isoweekdays(self) -> frozenset[int]:
        return frozenset(int(token) for token in self.weekend_days.split(",") if token)

    @property
    def trusted_proxy_networks(self) -> tuple[IPv4Network | IPv6Network, ...]:
        return tuple(
            ip_network(token, strict=False) for token in self.trusted_proxies.split(",") if token
        )


settings = Settings()
