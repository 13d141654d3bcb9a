"""FastAPI dependencies: database sessions, services and the admin gate."""

from .auth import get_is_privileged, require_admin
from .database import get_db
from .services import (
    get_availability_service,
    get_booking_service,
    get_calendar_service,
    get_clock,
    get_event_publisher,
    get_settings,
)

__all__ = [
    "get_availability_service",
    "get_booking_service",
    "get_calendar_service",
    "get_clock",
    "get_db",
    "get_event_publisher",
    "get_is_privileged",
    "get_settings",
    "require_admin",
]
