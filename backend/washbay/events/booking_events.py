"""Booking domain events.

Events carry everything a notification needs so handlers never touch the
database from a background thread.
"""
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class BookingCreated:
    """Fired after a booking is committed."""

    booking_id: str
    customer_name: str
    customer_email: Optional[str]
    customer_phone: Optional[str]
    scheduled_time: datetime
    estimated_end: datetime
    total_price: str
    total_duration: int
    admin_override: bool = False
    send_email: bool = True
    send_sms: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingRescheduled:
    """Fired after a booking's start time was moved."""

    booking_id: str
    customer_name: str
    customer_email: Optional[str]
    customer_phone: Optional[str]
    previous_time: datetime
    scheduled_time: datetime
    estimated_end: datetime
    notify_customer: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingStatusChanged:
    """Fired after a lifecycle transition."""

    booking_id: str
    customer_name: str
    customer_email: Optional[str]
    customer_phone: Optional[str]
    previous_status: str
    status: str
    scheduled_time: datetime
    notify_customer: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingDeleted:
    """Fired after a booking row was removed."""

    booking_id: str
    customer_name: str
    customer_email: Optional[str]
    customer_phone: Optional[str]
    scheduled_time: datetime
    notify_customer: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
