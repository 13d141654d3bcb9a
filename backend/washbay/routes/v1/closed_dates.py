# backend/washbay/routes/v1/closed_dates.py
"""
Closed-date management routes - API v1 (admin only)

Endpoints:
    GET /                   - Closed dates between two dates
    PUT /                   - Create or replace the closed date for (date, type)
    DELETE /{closed_date_id} - Remove a closed date
"""

import asyncio
from datetime import date
from typing import List, NoReturn

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status

from ...api.dependencies import get_calendar_service, require_admin
from ...core.exceptions import DomainException
from ...schemas.calendar import ClosedDateIn, ClosedDateResponse
from ...services.calendar_service import CalendarService

router = APIRouter(tags=["closed-dates-v1"], dependencies=[Depends(require_admin)])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("", response_model=List[ClosedDateResponse])
async def list_closed_dates(
    start: date = Query(...),
    end: date = Query(...),
    calendar_service: CalendarService = Depends(get_calendar_service),
) -> List[ClosedDateResponse]:
    try:
        rows = await asyncio.to_thread(calendar_service.list_closed_dates, start, end)
        return [ClosedDateResponse.model_validate(row) for row in rows]
    except DomainException as e:
        handle_domain_exception(e)


@router.put("", response_model=ClosedDateResponse)
async def set_closed_date(
    payload: ClosedDateIn = Body(...),
    calendar_service: CalendarService = Depends(get_calendar_service),
) -> ClosedDateResponse:
    try:
        row = await asyncio.to_thread(
            calendar_service.set_closed_date,
            payload.date,
            payload.type,
            payload.reason,
            payload.is_recurring,
            payload.start_time,
            payload.end_time,
        )
        return ClosedDateResponse.model_validate(row)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/{closed_date_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_closed_date(
    closed_date_id: str,
    calendar_service: CalendarService = Depends(get_calendar_service),
) -> Response:
    try:
        await asyncio.to_thread(calendar_service.remove_closed_date, closed_date_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as e:
        handle_domain_exception(e)
