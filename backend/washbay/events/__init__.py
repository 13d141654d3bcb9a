from .booking_events import (
    BookingCreated,
    BookingDeleted,
    BookingRescheduled,
    BookingStatusChanged,
)
from .publisher import EventPublisher, SynchronousDispatcher, ThreadPoolDispatcher

__all__ = [
    "BookingCreated",
    "BookingDeleted",
    "BookingRescheduled",
    "BookingStatusChanged",
    "EventPublisher",
    "SynchronousDispatcher",
    "ThreadPoolDispatcher",
]
