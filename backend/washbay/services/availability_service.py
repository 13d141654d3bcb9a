# backend/washbay/services/availability_service.py
"""
Availability Service

Computes which start times can be offered for a requested total duration:

1. A whole-day closure (weekend, holiday, closed date) yields no slots and
   carries the closure reason.
2. Candidates run from opening time in fixed steps; a candidate is valid only
   if ``start + duration <= closing``.
3. Candidates overlapping a blocking booking or a partial-day closure are
   dropped.
4. A duration longer than the whole business day is reported with its own
   message so callers can tell it apart from a fully booked day.

Slot generation is a pure generator over already fetched data; nothing is
carried between calls.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
import logging
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.config import Settings, settings
from ..core.exceptions import InvalidDurationException
from .base import BaseService
from .calendar_service import BusinessHours, CalendarService
from .conflict_checker import ConflictChecker, first_overlap

logger = logging.getLogger(__name__)

Interval = Tuple[datetime, datetime]


class AvailabilityReason(str, Enum):
    CLOSED = "CLOSED"
    DURATION_TOO_LONG = "DURATION_TOO_LONG"
    PAST_DATE = "PAST_DATE"
    FULLY_BOOKED = "FULLY_BOOKED"


@dataclass(frozen=True)
class AvailabilityResult:
    date: date
    duration_minutes: int
    slots: List[time]
    message: Optional[str] = None
    reason: Optional[AvailabilityReason] = None
    max_duration_minutes: Optional[int] = None


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


@dataclass(frozen=True)
class DayCapacity:
    date: date
    closed: bool
    reason: Optional[str]
    opening: time
    closing: time
    booked_windows: List[TimeWindow] = field(default_factory=list)
    free_windows: List[TimeWindow] = field(default_factory=list)

    @property
    def max_available_minutes(self) -> int:
        return max((window.duration_minutes for window in self.free_windows), default=0)


def iter_candidate_starts(
    opening: datetime, closing: datetime, duration: timedelta, step: timedelta
) -> Iterator[datetime]:
    """Every ``step`` from ``opening`` while ``start + duration <= closing``."""
    start = opening
    while start + duration <= closing:
        yield start
        start += step


def iter_free_starts(
    opening: datetime,
    closing: datetime,
    duration: timedelta,
    step: timedelta,
    blocked: Sequence[Interval],
) -> Iterator[datetime]:
    for start in iter_candidate_starts(opening, closing, duration, step):
        if first_overlap(start, start + duration, blocked) is None:
            yield start


def free_windows(
    opening: datetime, closing: datetime, blocked: Sequence[Interval]
) -> List[TimeWindow]:
    """Gaps inside ``[opening, closing)`` not covered by any blocked interval."""
    windows: List[TimeWindow] = []
    cursor = opening
    for start, end in sorted(blocked):
        if end <= cursor or start >= closing:
            continue
        if start > cursor:
            windows.append(TimeWindow(cursor, min(start, closing)))
        cursor = max(cursor, end)
        if cursor >= closing:
            break
    if cursor < closing:
        windows.append(TimeWindow(cursor, closing))
    return windows


def _format_duration(minutes: int) -> str:
    hours, rest = divmod(minutes, 60)
    if hours and rest:
        return f"{hours} h {rest} min"
    if hours:
        return f"{hours} h"
    return f"{rest} min"


class AvailabilityService(BaseService):
    """Offers start times for the wash bay."""

    def __init__(
        self,
        db: Session,
        config: Optional[Settings] = None,
        calendar: Optional[CalendarService] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__(db)
        self.config = config or settings
        self.calendar = calendar or CalendarService(db, self.config)
        self.conflict_checker = conflict_checker or ConflictChecker(db)
        self.clock = clock or datetime.now

    @BaseService.measure_operation("compute_slots")
    def compute_slots(
        self,
        day: date,
        duration_minutes: int,
        exclude_booking_id: Optional[str] = None,
    ) -> AvailabilityResult:
        """
        Offerable start times on ``day`` for a booking of ``duration_minutes``.

        Raises:
            InvalidDurationException: duration is zero or negative
            CalendarUnavailableException: closed-date rules could not be read
        """
        if duration_minutes <= 0:
            raise InvalidDurationException(duration_minutes)

        if day < self.clock().date():
            return AvailabilityResult(
                day,
                duration_minutes,
                [],
                message="The selected date is in the past",
                reason=AvailabilityReason.PAST_DATE,
            )

        rules = self.calendar.get_day_rules(day)
        if rules.status.closed:
            return AvailabilityResult(
                day,
                duration_minutes,
                [],
                message=rules.status.reason,
                reason=AvailabilityReason.CLOSED,
            )

        hours = self.calendar.business_hours(duration_minutes)
        if duration_minutes > hours.minutes:
            return AvailabilityResult(
                day,
                duration_minutes,
                [],
                message=(
                    f"The selected services take {_format_duration(duration_minutes)}, "
                    f"which is longer than one working day "
                    f"({_format_duration(hours.minutes)}). Please contact us to arrange "
                    "the booking."
                ),
                reason=AvailabilityReason.DURATION_TOO_LONG,
                max_duration_minutes=hours.minutes,
            )

        free_starts = self.iter_slots(
            day, duration_minutes, hours, rules.partial_closures, exclude_booking_id
        )
        slots = [start.time() for start in free_starts]
        if not slots:
            return AvailabilityResult(
                day,
                duration_minutes,
                [],
                message="No available times on this date for the selected services",
                reason=AvailabilityReason.FULLY_BOOKED,
            )
        return AvailabilityResult(day, duration_minutes, slots)

    def iter_slots(
        self,
        day: date,
        duration_minutes: int,
        hours: Optional[BusinessHours] = None,
        partial_closures: Optional[Sequence] = None,
        exclude_booking_id: Optional[str] = None,
    ) -> Iterator[datetime]:
        """
        Lazily yield free start datetimes on an open ``day``.

        Bookings and partial closures are read once, when iteration starts.
        """
        hours = hours or self.calendar.business_hours(duration_minutes)
        if partial_closures is None:
            partial_closures = self.calendar.get_partial_closures(day)
        blocked = self._blocked_intervals(day, partial_closures, exclude_booking_id)
        opening, closing = hours.window(day)
        yield from iter_free_starts(
            opening,
            closing,
            timedelta(minutes=duration_minutes),
            timedelta(minutes=self.config.slot_step_minutes),
            blocked,
        )

    def is_offerable(self, start: datetime, duration_minutes: int) -> Tuple[bool, Optional[str]]:
        """
        Whether ``[start, start + duration)`` fits inside opening hours and
        avoids partial closures. Bookings are not considered here.
        """
        hours = self.calendar.business_hours(duration_minutes)
        opening, closing = hours.window(start.date())
        end = start + timedelta(minutes=duration_minutes)
        if start < opening or end > closing:
            return False, f"Outside opening hours {hours.opening:%H:%M}-{hours.closing:%H:%M}"
        closures = [
            blocked.as_datetimes(start.date())
            for blocked in self.calendar.get_partial_closures(start.date())
        ]
        hit = first_overlap(start, end, closures)
        if hit is not None:
            return False, f"Closed between {hit[0]:%H:%M} and {hit[1]:%H:%M}"
        return True, None

    @BaseService.measure_operation("get_day_capacity")
    def get_day_capacity(self, day: date) -> DayCapacity:
        """Booked and free windows within normal business hours on ``day``."""
        hours = self.calendar.business_hours()
        rules = self.calendar.get_day_rules(day)
        if rules.status.closed:
            return DayCapacity(day, True, rules.status.reason, hours.opening, hours.closing)

        opening, closing = hours.window(day)
        booked = self.conflict_checker.get_booked_intervals(day)
        blocked = booked + [blocked.as_datetimes(day) for blocked in rules.partial_closures]
        return DayCapacity(
            date=day,
            closed=False,
            reason=None,
            opening=hours.opening,
            closing=hours.closing,
            booked_windows=[TimeWindow(start, end) for start, end in booked],
            free_windows=free_windows(opening, closing, blocked),
        )

    def _blocked_intervals(
        self,
        day: date,
        partial_closures: Sequence,
        exclude_booking_id: Optional[str],
    ) -> List[Interval]:
        blocked = self.conflict_checker.get_booked_intervals(day, exclude_booking_id)
        blocked.extend(closure.as_datetimes(day) for closure in partial_closures)
        return blocked
