# backend/washbay/models/__init__.py
"""SQLAlchemy models. Importing this package registers every table on ``Base.metadata``."""

from .booking import (
    ALLOWED_TRANSITIONS,
    BLOCKING_STATUSES,
    TERMINAL_STATUSES,
    Booking,
    BookingServiceItem,
    BookingStatus,
    BookingVehicle,
    can_transition,
)
from .calendar import ClosedDate, ClosedDateType
from .catalog import Service, ServicePrice, VehicleType
from .customer import Customer
from .invoice import Invoice

__all__ = [
    "ALLOWED_TRANSITIONS",
    "BLOCKING_STATUSES",
    "TERMINAL_STATUSES",
    "Booking",
    "BookingServiceItem",
    "BookingStatus",
    "BookingVehicle",
    "ClosedDate",
    "ClosedDateType",
    "Customer",
    "Invoice",
    "Service",
    "ServicePrice",
    "VehicleType",
    "can_transition",
]
