"""Availability query responses."""

from datetime import date as DateType, datetime, time
from typing import List, Optional

from pydantic import Field

from ..services.availability_service import AvailabilityResult, DayCapacity, TimeWindow
from .base import StandardizedModel


class AvailabilityResponse(StandardizedModel):
    """Offerable start times as ``HH:MM`` strings, in ascending order."""

    date: DateType
    duration_minutes: int
    slots: List[str] = Field(default_factory=list)
    message: Optional[str] = None
    reason: Optional[str] = None
    max_duration_minutes: Optional[int] = None

    @classmethod
    def from_result(cls, result: AvailabilityResult) -> "AvailabilityResponse":
        return cls(
            date=result.date,
            duration_minutes=result.duration_minutes,
            slots=[slot.strftime("%H:%M") for slot in result.slots],
            message=result.message,
            reason=result.reason.value if result.reason else None,
            max_duration_minutes=result.max_duration_minutes,
        )


class TimeWindowResponse(StandardizedModel):
    start: datetime
    end: datetime
    duration_minutes: int

    @classmethod
    def from_window(cls, window: TimeWindow) -> "TimeWindowResponse":
        return cls(start=window.start, end=window.end, duration_minutes=window.duration_minutes)


class DayCapacityResponse(StandardizedModel):
    date: DateType
    closed: bool
    reason: Optional[str] = None
    opening: time
    closing: time
    booked_windows: List[TimeWindowResponse] = Field(default_factory=list)
    free_windows: List[TimeWindowResponse] = Field(default_factory=list)
    max_available_minutes: int = 0

    @classmethod
    def from_capacity(cls, capacity: DayCapacity) -> "DayCapacityResponse":
        return cls(
            date=capacity.date,
            closed=capacity.closed,
            reason=capacity.reason,
            opening=capacity.opening,
            closing=capacity.closing,
            booked_windows=[TimeWindowResponse.from_window(w) for w in capacity.booked_windows],
            free_windows=[TimeWindowResponse.from_window(w) for w in capacity.free_windows],
            max_available_minutes=capacity.max_available_minutes,
        )
