# backend/washbay/services/calendar_service.py
"""
Calendar rules: which days and hours the wash bay is open.

Whole-day closure is decided in a fixed order, first match wins:
1. weekend days
2. public holidays and HOLIDAY rows (recurring rows match on month/day)
3. other full-day closed-date rows

Partial-day rows never close the whole day; they are returned as blocked
time ranges for the availability calculator. Any failure to read the rules
raises ``CalendarUnavailableException`` so a day is never assumed open by
accident.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings
from ..core.exceptions import (
    CalendarUnavailableException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..core.holidays import holiday_name
from ..models.calendar import ClosedDate, ClosedDateType
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

_WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def _minutes_of(value: time) -> int:
    return value.hour * 60 + value.minute


@dataclass(frozen=True)
class ClosureStatus:
    closed: bool
    reason: Optional[str] = None
    source: Optional[str] = None  # weekend | holiday | closed_date


@dataclass(frozen=True)
class BlockedRange:
    start: time
    end: time
    reason: Optional[str] = None

    def as_datetimes(self, day: date) -> tuple[datetime, datetime]:
        return datetime.combine(day, self.start), datetime.combine(day, self.end)


@dataclass(frozen=True)
class BusinessHours:
    opening: time
    closing: time

    def window(self, day: date) -> tuple[datetime, datetime]:
        return datetime.combine(day, self.opening), datetime.combine(day, self.closing)

    @property
    def minutes(self) -> int:
        return _minutes_of(self.closing) - _minutes_of(self.opening)


@dataclass(frozen=True)
class DayRules:
    day: date
    status: ClosureStatus
    partial_closures: List[BlockedRange] = field(default_factory=list)


OPEN = ClosureStatus(closed=False)


class CalendarService(BaseService):
    """Answers whether the bay is open on a date and during which hours."""

    def __init__(self, db: Session, config: Optional[Settings] = None):
        super().__init__(db)
        self.config = config or settings
        self.repository = RepositoryFactory.create_closed_date_repository(db)

    # Queries

    def is_closed(self, day: date) -> ClosureStatus:
        return self.get_day_rules(day).status

    def get_partial_closures(self, day: date) -> List[BlockedRange]:
        return self.get_day_rules(day).partial_closures

    @BaseService.measure_operation("get_day_rules")
    def get_day_rules(self, day: date) -> DayRules:
        """Closure status plus partial-day blocked ranges for ``day``."""
        if day.isoweekday() in self.config.weekend_isoweekdays:
            return DayRules(
                day=day,
                status=ClosureStatus(
                    True, f"Closed on {_WEEKDAY_NAMES[day.weekday()]}s", "weekend"
                ),
            )

        try:
            rows = self.repository.get_rules_for_date(day)
        except RepositoryException as exc:
            self.logger.error(f"Closed-date lookup failed for {day}: {exc}")
            raise CalendarUnavailableException() from exc

        status = self._holiday_status(day, rows) or self._closed_date_status(rows) or OPEN
        partial = [
            BlockedRange(row.start_time, row.end_time, row.describe())
            for row in rows
            if not row.is_full_day
        ]
        partial.sort(key=lambda blocked: blocked.start)
        return DayRules(day=day, status=status, partial_closures=partial)

    def business_hours(self, duration_minutes: Optional[int] = None) -> BusinessHours:
        """
        Opening hours, extended for long services.

        Services longer than the configured threshold may run past normal
        closing, up to the latest allowed closing time.
        """
        opening = self.config.business_hours_start
        closing = self.config.business_hours_end
        if (
            duration_minutes is not None
            and duration_minutes > self.config.long_service_threshold_minutes
            and self.config.long_service_extension_minutes > 0
        ):
            latest = self.config.latest_closing_time
            extended = min(
                _minutes_of(closing) + self.config.long_service_extension_minutes,
                _minutes_of(latest),
            )
            closing = time(extended // 60, extended % 60)
        return BusinessHours(opening=opening, closing=closing)

    def _holiday_status(self, day: date, rows: List[ClosedDate]) -> Optional[ClosureStatus]:
        if self.config.observe_public_holidays:
            name = holiday_name(day)
            if name:
                return ClosureStatus(True, name, "holiday")
        for row in rows:
            if row.type == ClosedDateType.HOLIDAY.value and row.is_full_day:
                return ClosureStatus(True, row.describe(), "holiday")
        return None

    def _closed_date_status(self, rows: List[ClosedDate]) -> Optional[ClosureStatus]:
        for row in rows:
            if row.is_full_day:
                return ClosureStatus(True, row.describe(), "closed_date")
        return None

    # Management

    @BaseService.measure_operation("set_closed_date")
    def set_closed_date(
        self,
        day: date,
        type_: ClosedDateType = ClosedDateType.MANUAL,
        reason: Optional[str] = None,
        is_recurring: bool = False,
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
    ) -> ClosedDate:
        """Create or replace the closed-date row for (day, type)."""
        if (start_time is None) != (end_time is None):
            raise ValidationException(
                "Both start_time and end_time are required for a partial closure",
                code="INVALID_CLOSED_RANGE",
            )
        if start_time is not None and end_time is not None and start_time >= end_time:
            raise ValidationException(
                "Closed range must end after it starts", code="INVALID_CLOSED_RANGE"
            )

        self.log_operation("set_closed_date", day=str(day), closed_type=type_.value)
        with self.transaction():
            row = self.repository.get_by_date_and_type(day, type_.value)
            if row is None:
                row = self.repository.create(date=day, type=type_.value)
            row.reason = reason
            row.is_recurring = is_recurring
            row.start_time = start_time
            row.end_time = end_time
            self.repository.flush()
        return row

    def remove_closed_date(self, closed_date_id: str) -> None:
        with self.transaction():
            if not self.repository.delete(closed_date_id):
                raise NotFoundException(f"Closed date {closed_date_id} not found")

    def list_closed_dates(self, start: date, end: date) -> List[ClosedDate]:
        if end < start:
            raise ValidationException("end must not be before start")
        return self.repository.list_between(start, end)
