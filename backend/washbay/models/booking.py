# backend/washbay/models/booking.py
"""
Booking aggregate: Booking 1-* BookingVehicle 1-* BookingServiceItem.

A booking occupies the single wash bay for ``[scheduled_time, estimated_end)``.
Totals on the booking are derived from its line items and are recomputed by
``recompute_totals`` whenever lines or the start time change.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
import logging
from typing import Iterator, Optional

from sqlalchemy import (
    DDL,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)

MONEY_QUANT = Decimal("0.01")


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "PENDING"  # Reserved for an approval step
    CONFIRMED = "CONFIRMED"  # Default for new bookings
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Statuses that occupy the bay
BLOCKING_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS}
)
TERMINAL_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
)

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {
            BookingStatus.CONFIRMED,
            BookingStatus.IN_PROGRESS,
            BookingStatus.CANCELLED,
            BookingStatus.NO_SHOW,
        }
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.IN_PROGRESS: frozenset(
        {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class Booking(Base):
    """
    One appointment for the wash bay.

    ``scheduled_time`` and ``estimated_end`` are naive wall-clock datetimes in
    the business's local time zone.
    """

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    customer_id = Column(String(26), ForeignKey("customers.id"), nullable=False, index=True)
    # Contract customers live in an external system; stored verbatim
    company_id = Column(String(26), nullable=True, index=True)

    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_time = Column(DateTime, nullable=False)
    estimated_end = Column(DateTime, nullable=False)
    total_duration = Column(Integer, nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))

    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value, index=True)
    admin_override = Column(Boolean, nullable=False, default=False)

    customer_notes = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    customer = relationship("Customer", back_populates="bookings")
    vehicles = relationship(
        "BookingVehicle",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingVehicle.position",
    )
    invoices = relationship("Invoice", back_populates="booking")

    __table_args__ = (
        CheckConstraint("total_duration > 0", name="check_booking_duration_positive"),
        CheckConstraint("total_price >= 0", name="check_booking_price_non_negative"),
        CheckConstraint("estimated_end > scheduled_time", name="check_booking_time_order"),
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'IN_PROGRESS', "
            "'COMPLETED', 'CANCELLED', 'NO_SHOW')",
            name="check_booking_status",
        ),
        Index("ix_bookings_date_status", "scheduled_date", "status"),
    )

    def __init__(self, **kwargs):
        if "status" not in kwargs:
            kwargs["status"] = BookingStatus.CONFIRMED.value
        elif isinstance(kwargs["status"], BookingStatus):
            kwargs["status"] = kwargs["status"].value
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id} {self.scheduled_time:%Y-%m-%d %H:%M}-"
            f"{self.estimated_end:%H:%M} {self.status}>"
        )

    @property
    def status_enum(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status_enum in TERMINAL_STATUSES

    def iter_lines(self) -> Iterator["BookingServiceItem"]:
        for vehicle in self.vehicles:
            yield from vehicle.services

    def recompute_totals(self) -> None:
        """Derive duration, price and end from the full current line set."""
        total_duration = 0
        total_price = Decimal("0.00")
        for line in self.iter_lines():
            total_duration += line.duration * line.quantity
            total_price += Decimal(line.total_price)
        self.total_duration = total_duration
        self.total_price = total_price.quantize(MONEY_QUANT)
        self.estimated_end = self.scheduled_time + timedelta(minutes=total_duration)

    def reschedule_to(self, start: datetime) -> None:
        self.scheduled_date = start.date()
        self.scheduled_time = start
        self.estimated_end = start + timedelta(minutes=self.total_duration)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start < self.estimated_end and end > self.scheduled_time


class BookingVehicle(Base):
    """One vehicle or vessel within a booking."""

    __tablename__ = "booking_vehicles"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    vehicle_type_id = Column(String(26), ForeignKey("vehicle_types.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    vehicle_info = Column(String(255), nullable=True)
    vehicle_notes = Column(Text, nullable=True)

    booking = relationship("Booking", back_populates="vehicles")
    vehicle_type = relationship("VehicleType")
    services = relationship(
        "BookingServiceItem",
        back_populates="vehicle",
        cascade="all, delete-orphan",
        order_by="BookingServiceItem.position",
    )

    @property
    def total_duration(self) -> int:
        return sum(line.duration * line.quantity for line in self.services)

    @property
    def total_price(self) -> Decimal:
        return sum((Decimal(line.total_price) for line in self.services), Decimal("0.00"))

    def find_line(self, service_id: str) -> Optional["BookingServiceItem"]:
        for line in self.services:
            if line.service_id == service_id:
                return line
        return None


class BookingServiceItem(Base):
    """One priced line item: a service performed on a booking vehicle."""

    __tablename__ = "booking_services"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_vehicle_id = Column(
        String(26),
        ForeignKey("booking_vehicles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_id = Column(String(26), ForeignKey("services.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    # Minutes per unit, copied from the catalog when the line was created
    duration = Column(Integer, nullable=False)

    vehicle = relationship("BookingVehicle", back_populates="services")
    service = relationship("Service")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="check_line_quantity_positive"),
        CheckConstraint("duration > 0", name="check_line_duration_positive"),
        CheckConstraint("unit_price >= 0", name="check_line_price_non_negative"),
    )

    def set_quantity(self, quantity: int) -> None:
        self.quantity = quantity
        self.total_price = (Decimal(self.unit_price) * quantity).quantize(MONEY_QUANT)


# Storage-level guard against overlapping blocking bookings (PostgreSQL only).
# Override bookings are allowed to overlap and are excluded from the constraint.
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        """
        ALTER TABLE bookings
          ADD CONSTRAINT bookings_no_overlap
          EXCLUDE USING gist (
            tsrange(scheduled_time, estimated_end, '[)') WITH &&
          )
          WHERE (status IN ('PENDING', 'CONFIRMED', 'IN_PROGRESS') AND NOT admin_override)
        """
    ).execute_if(dialect="postgresql"),
)

OVERLAP_CONSTRAINT_NAME = "bookings_no_overlap"
