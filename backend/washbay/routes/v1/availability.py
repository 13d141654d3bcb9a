# backend/washbay/routes/v1/availability.py
"""
Availability routes - API v1

Endpoints:
    GET /             - Offerable start times for a date and total duration
    GET /capacity     - Booked and free windows for a date
"""

import asyncio
from datetime import date
import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...api.dependencies import get_availability_service
from ...core.exceptions import DomainException
from ...schemas.availability import AvailabilityResponse, DayCapacityResponse
from ...services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["availability-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("", response_model=AvailabilityResponse)
async def get_available_slots(
    date: date = Query(..., description="Date to check (YYYY-MM-DD)"),
    duration: int = Query(..., description="Total duration of the selected services in minutes"),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    """
    Start times that can be offered for a booking of ``duration`` minutes.

    An empty list always comes with a message; ``reason`` tells a closed day,
    a past date, a fully booked day and a too-long duration apart.
    """
    try:
        result = await asyncio.to_thread(availability_service.compute_slots, date, duration)
        return AvailabilityResponse.from_result(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/capacity", response_model=DayCapacityResponse)
async def get_day_capacity(
    date: date = Query(..., description="Date to summarise (YYYY-MM-DD)"),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> DayCapacityResponse:
    try:
        capacity = await asyncio.to_thread(availability_service.get_day_capacity, date)
        return DayCapacityResponse.from_capacity(capacity)
    except DomainException as e:
        handle_domain_exception(e)
