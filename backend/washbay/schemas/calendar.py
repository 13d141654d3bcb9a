"""Closed-date management schemas."""

from datetime import date as DateType, time
from typing import Optional

from pydantic import Field, field_validator, model_validator

from ..models.calendar import ClosedDateType
from ._strict_base import StrictRequestModel
from .base import StandardizedModel


class ClosedDateIn(StrictRequestModel):
    """Full-day closure when no times are given; partial closure otherwise."""

    date: DateType
    type: ClosedDateType = ClosedDateType.MANUAL
    reason: Optional[str] = Field(None, max_length=255)
    is_recurring: bool = False
    start_time: Optional[time] = None
    end_time: Optional[time] = None

    @field_validator("reason")
    @classmethod
    def clean_reason(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v

    @model_validator(mode="after")
    def _check_range(self) -> "ClosedDateIn":
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("start_time and end_time must be given together")
        if self.start_time is not None and self.end_time is not None:
            if self.end_time <= self.start_time:
                raise ValueError("end_time must be after start_time")
        return self


class ClosedDateResponse(StandardizedModel):
    id: str
    date: DateType
    type: ClosedDateType
    reason: Optional[str] = None
    is_recurring: bool
    start_time: Optional[time] = None
    end_time: Optional[time] = None
