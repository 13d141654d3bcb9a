# backend/washbay/schemas/booking.py
"""
Booking request and response schemas.

Every request is validated here, at the boundary, before any service code
runs. Services receive plain dataclasses built from these models.
"""

from datetime import date, datetime, time
import re
from typing import Any, List, Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from ..core.exceptions import ValidationException
from ..models.booking import BookingStatus
from ..services.booking_service import NewBooking, ScheduleChange
from ..services.customer_identity import (
    AnonymousContact,
    ContactIdentity,
    CustomerIdentity,
    ExistingCustomer,
)
from ..services.pricing_service import (
    ServiceAddition,
    ServiceLineRequest,
    VehicleRequest,
    normalize_quantity,
)
from ._strict_base import StrictRequestModel
from .base import Money, StandardizedModel

DATE_ONLY_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _ensure_date_only(value: object, field_name: str) -> object:
    if isinstance(value, str):
        candidate = value.strip()
        if not DATE_ONLY_REGEX.fullmatch(candidate):
            raise ValueError(f"{field_name} must be a YYYY-MM-DD date-only string")
        return candidate
    return value


def _parse_time_string(value: object) -> object:
    if isinstance(value, str):
        try:
            hour, minute = value.strip().split(":")[:2]
            return time(int(hour), int(minute))
        except (ValueError, AttributeError):
            raise ValueError(f"Invalid time format: {value}. Expected HH:MM format.")
    return value


def _coerce_quantity(value: Any) -> int:
    try:
        return normalize_quantity(value)
    except ValidationException as exc:
        raise ValueError(exc.message) from exc


class ServiceLineIn(StrictRequestModel):
    service_id: str = Field(..., min_length=1)
    quantity: int = Field(..., description="Units of this service; floored to 1 when invalid")

    @field_validator("quantity", mode="before")
    @classmethod
    def _normalize_quantity(cls, v: Any) -> int:
        return _coerce_quantity(v)


class VehicleIn(StrictRequestModel):
    vehicle_type_id: str = Field(..., min_length=1)
    services: List[ServiceLineIn] = Field(..., min_length=1)
    vehicle_info: Optional[str] = Field(None, max_length=255)
    vehicle_notes: Optional[str] = Field(None, max_length=1000)

    def to_request(self) -> VehicleRequest:
        return VehicleRequest(
            vehicle_type_id=self.vehicle_type_id,
            services=[ServiceLineRequest(line.service_id, line.quantity) for line in self.services],
            vehicle_info=self.vehicle_info,
            vehicle_notes=self.vehicle_notes,
        )


class CustomerIn(StrictRequestModel):
    """
    Who the booking is for. Exactly one shape is accepted:

    - ``customer_id`` for a known customer
    - ``email`` with ``first_name`` and ``last_name`` for a private customer
    - ``name`` (and optionally ``phone``) for a walk-in without email
    """

    customer_id: Optional[str] = None
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=30)

    @field_validator("first_name", "last_name", "name", "phone")
    @classmethod
    def _strip(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None

    @model_validator(mode="after")
    def _exactly_one_identity(self) -> "CustomerIn":
        if self.customer_id:
            return self
        if self.email:
            if not self.first_name or not self.last_name:
                raise ValueError("first_name and last_name are required together with email")
            return self
        if self.name:
            return self
        raise ValueError("Provide customer_id, email with first and last name, or name")

    def to_identity(self) -> CustomerIdentity:
        if self.customer_id:
            return ExistingCustomer(self.customer_id)
        if self.email:
            return ContactIdentity(
                email=str(self.email),
                first_name=self.first_name or "",
                last_name=self.last_name or "",
                phone=self.phone,
            )
        return AnonymousContact(name=self.name or "", phone=self.phone)


class BookingCreate(StrictRequestModel):
    """Create a booking for one or more vehicles at a single start time."""

    vehicles: List[VehicleIn] = Field(..., min_length=1, description="Vehicles and services")
    scheduled_date: date = Field(..., description="Date of the booking")
    scheduled_time: time = Field(..., description="Start time, HH:MM")
    customer: CustomerIn
    company_id: Optional[str] = Field(None, description="Contract customer, stored verbatim")
    customer_notes: Optional[str] = Field(None, max_length=1000)
    admin_override: bool = Field(False, description="Bypass calendar and conflict checks")
    send_email: bool = True
    send_sms: bool = False

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return _ensure_date_only(v, "scheduled_date")

    @field_validator("scheduled_time", mode="before")
    @classmethod
    def parse_time_string(cls, v: object) -> object:
        return _parse_time_string(v)

    @field_validator("customer_notes")
    @classmethod
    def clean_note(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v

    def to_vehicle_requests(self) -> List[VehicleRequest]:
        return [vehicle.to_request() for vehicle in self.vehicles]

    def to_new_booking(self) -> NewBooking:
        return NewBooking(
            vehicles=self.to_vehicle_requests(),
            scheduled_date=self.scheduled_date,
            scheduled_time=self.scheduled_time,
            identity=self.customer.to_identity(),
            company_id=self.company_id,
            customer_notes=self.customer_notes,
            send_email=self.send_email,
            send_sms=self.send_sms,
        )


class BookingReschedule(StrictRequestModel):
    """Move a booking and optionally update its status or notes in the same write."""

    scheduled_date: Optional[date] = None
    scheduled_time: Optional[time] = None
    status: Optional[BookingStatus] = None
    customer_notes: Optional[str] = Field(None, max_length=1000)
    admin_notes: Optional[str] = Field(None, max_length=1000)
    notify_customer: bool = False
    admin_override: bool = False

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return _ensure_date_only(v, "scheduled_date")

    @field_validator("scheduled_time", mode="before")
    @classmethod
    def parse_time_string(cls, v: object) -> object:
        return _parse_time_string(v)

    @model_validator(mode="after")
    def _has_change(self) -> "BookingReschedule":
        if (
            self.scheduled_date is None
            and self.scheduled_time is None
            and self.status is None
            and self.customer_notes is None
            and self.admin_notes is None
        ):
            raise ValueError("Nothing to update")
        return self

    def to_change(self) -> ScheduleChange:
        return ScheduleChange(
            scheduled_date=self.scheduled_date,
            scheduled_time=self.scheduled_time,
            status=self.status,
            customer_notes=self.customer_notes,
            admin_notes=self.admin_notes,
            notify_customer=self.notify_customer,
        )


class ServiceAdditionIn(StrictRequestModel):
    booking_vehicle_id: str = Field(..., min_length=1)
    service_id: str = Field(..., min_length=1)
    quantity: int = Field(...)

    @field_validator("quantity", mode="before")
    @classmethod
    def _normalize_quantity(cls, v: Any) -> int:
        return _coerce_quantity(v)

    def to_addition(self) -> ServiceAddition:
        return ServiceAddition(self.booking_vehicle_id, self.service_id, self.quantity)


class AddServicesRequest(StrictRequestModel):
    additions: List[ServiceAdditionIn] = Field(..., min_length=1)
    admin_override: bool = False

    def to_additions(self) -> List[ServiceAddition]:
        return [addition.to_addition() for addition in self.additions]


class BookingStatusUpdate(StrictRequestModel):
    status: BookingStatus
    notify_customer: bool = False


class BookingServiceResponse(StandardizedModel):
    id: str
    service_id: str
    quantity: int
    unit_price: Money
    total_price: Money
    duration: int


class BookingVehicleResponse(StandardizedModel):
    id: str
    vehicle_type_id: str
    vehicle_info: Optional[str] = None
    vehicle_notes: Optional[str] = None
    services: List[BookingServiceResponse] = Field(default_factory=list)


class BookingResponse(StandardizedModel):
    """Booking with its vehicles and priced lines."""

    id: str
    customer_id: str
    company_id: Optional[str] = None
    scheduled_date: date
    scheduled_time: datetime
    estimated_end: datetime
    total_duration: int
    total_price: Money
    status: BookingStatus
    admin_override: bool
    customer_notes: Optional[str] = None
    admin_notes: Optional[str] = None
    vehicles: List[BookingVehicleResponse] = Field(default_factory=list)


class BookingDeletedResponse(StandardizedModel):
    id: str
    deleted: bool = True
