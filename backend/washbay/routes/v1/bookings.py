# backend/washbay/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    POST /                       - Create a booking (rate limited unless admin)
    GET /{booking_id}            - Full booking details
    PATCH /{booking_id}/schedule - Reschedule, optionally with status/notes (admin)
    POST /{booking_id}/services  - Add services to a booking (admin)
    PATCH /{booking_id}/status   - Lifecycle transition (admin)
    DELETE /{booking_id}         - Delete a booking without invoices (admin)
"""

import asyncio
import logging
from typing import NoReturn

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.params import Path

from ...api.dependencies import get_booking_service, get_is_privileged, require_admin
from ...core.admin_gate import check_customer_reference, resolve_override
from ...core.exceptions import DomainException
from ...ratelimit.dependency import booking_rate_limit
from ...schemas.booking import (
    AddServicesRequest,
    BookingCreate,
    BookingDeletedResponse,
    BookingReschedule,
    BookingResponse,
    BookingStatusUpdate,
)
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(booking_rate_limit)],
)
async def create_booking(
    booking_data: BookingCreate = Body(...),
    privileged: bool = Depends(get_is_privileged),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Create a booking.

    ``admin_override`` is honoured only for callers presenting the admin key;
    anyone else asking for it gets 403. The same goes for booking under a bare
    ``customer_id``, and only admin callers may fill in a known customer's
    missing phone number.
    """
    try:
        admin_override = resolve_override(booking_data.admin_override, privileged)
        check_customer_reference(booking_data.customer.customer_id, privileged)
        booking = await asyncio.to_thread(
            booking_service.create_booking,
            booking_data.to_new_booking(),
            admin_override=admin_override,
            update_contact=privileged,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, booking_id)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch(
    "/{booking_id}/schedule",
    response_model=BookingResponse,
    dependencies=[Depends(require_admin)],
)
async def reschedule_booking(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    payload: BookingReschedule = Body(...),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Move a booking; 409 when the new interval overlaps another booking."""
    try:
        booking = await asyncio.to_thread(
            booking_service.reschedule_booking,
            booking_id,
            payload.to_change(),
            admin_override=payload.admin_override,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/services",
    response_model=BookingResponse,
    dependencies=[Depends(require_admin)],
)
async def add_services(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    payload: AddServicesRequest = Body(...),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.add_services,
            booking_id,
            payload.to_additions(),
            admin_override=payload.admin_override,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch(
    "/{booking_id}/status",
    response_model=BookingResponse,
    dependencies=[Depends(require_admin)],
)
async def update_booking_status(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    payload: BookingStatusUpdate = Body(...),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.update_status,
            booking_id,
            payload.status,
            notify_customer=payload.notify_customer,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete(
    "/{booking_id}",
    response_model=BookingDeletedResponse,
    dependencies=[Depends(require_admin)],
)
async def delete_booking(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    notify_customer: bool = Query(True),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingDeletedResponse:
    """Delete a booking. Bookings with invoices must be cancelled instead (400)."""
    try:
        await asyncio.to_thread(
            booking_service.delete_booking, booking_id, notify_customer=notify_customer
        )
        return BookingDeletedResponse(id=booking_id)
    except DomainException as e:
        handle_domain_exception(e)
