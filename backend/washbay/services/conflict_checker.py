# backend/washbay/services/conflict_checker.py
"""
Conflict Checker Service

Handles booking conflict detection for the single wash bay:
- Overlap of a candidate interval with blocking bookings on the same date
- Same-customer duplicate submissions at the same start instant
- Same-contact (email or phone) duplicates at the same start instant

Intervals are half-open ``[start, end)``: a booking that ends at 10:00 does
not conflict with one that starts at 10:00.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
import logging
import re
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.exceptions import (
    DuplicateBookingException,
    SlotConflictException,
    SuspiciousDuplicateException,
    ValidationException,
)
from ..models.booking import Booking
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

_PHONE_STRIP = re.compile(r"[\s\-()]")


def intervals_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    """Half-open interval overlap; touching endpoints do not overlap."""
    return start_a < end_b and end_a > start_b


def first_overlap(
    start: datetime, end: datetime, intervals: Iterable[Tuple[datetime, datetime]]
) -> Optional[Tuple[datetime, datetime]]:
    for other_start, other_end in intervals:
        if intervals_overlap(start, end, other_start, other_end):
            return other_start, other_end
    return None


def normalize_email(email: Optional[str]) -> Optional[str]:
    if not email:
        return None
    normalized = email.strip().lower()
    return normalized or None


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Strip spaces, dashes and parentheses."""
    if not phone:
        return None
    normalized = _PHONE_STRIP.sub("", phone)
    return normalized or None


class ConflictKind(str, Enum):
    OVERLAP = "OVERLAP"
    DUPLICATE_BOOKING = "DUPLICATE_BOOKING"
    SUSPICIOUS_DUPLICATE = "SUSPICIOUS_DUPLICATE"


@dataclass(frozen=True)
class ConflictReport:
    kind: ConflictKind
    booking_id: str
    start: datetime
    end: datetime
    matched_on: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "booking_id": self.booking_id,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "matched_on": self.matched_on,
        }


class ConflictChecker(BaseService):
    """
    Service for checking booking conflicts and time validation.

    Callers that go on to write must hold the per-date booking lock for the
    checked date, so that the read and the write form one isolated unit.
    """

    def __init__(self, db: Session, repository: Optional[ConflictCheckerRepository] = None):
        super().__init__(db)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    def validate_time_range(self, start: datetime, end: datetime) -> None:
        if end <= start:
            raise ValidationException(
                "End time must be after start time",
                code="INVALID_TIME_RANGE",
                details={"start": start.isoformat(), "end": end.isoformat()},
            )

    @BaseService.measure_operation("find_conflict")
    def find_conflict(
        self,
        check_date: date,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> Optional[ConflictReport]:
        """
        First blocking booking on ``check_date`` overlapping ``[start, end)``.

        Args:
            check_date: Calendar date the interval belongs to
            start: Candidate start
            end: Candidate end
            exclude_booking_id: Booking being modified, ignored in the check

        Returns:
            A ConflictReport for the earliest overlapping booking, or None
        """
        self.validate_time_range(start, end)
        overlapping = self.repository.find_overlapping(check_date, start, end, exclude_booking_id)
        if not overlapping:
            return None

        booking = overlapping[0]
        self.logger.warning(
            f"Found {len(overlapping)} overlapping bookings on {check_date} "
            f"between {start:%H:%M}-{end:%H:%M}"
        )
        return ConflictReport(
            kind=ConflictKind.OVERLAP,
            booking_id=booking.id,
            start=booking.scheduled_time,
            end=booking.estimated_end,
        )

    @BaseService.measure_operation("find_duplicate")
    def find_duplicate(
        self,
        start: datetime,
        customer_id: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Optional[ConflictReport]:
        """
        Detect an accidental double submission at exactly ``start``.

        A booking by the same customer wins over a contact match, since the
        two are resolved differently by the caller.
        """
        same_start = self.repository.get_blocking_bookings_starting_at(start)
        if not same_start:
            return None

        for booking in same_start:
            if booking.customer_id == customer_id:
                return self._report(ConflictKind.DUPLICATE_BOOKING, booking)

        wanted_email = normalize_email(email)
        wanted_phone = normalize_phone(phone)
        for booking in same_start:
            customer = booking.customer
            if customer is None:
                continue
            if wanted_email and normalize_email(customer.email) == wanted_email:
                return self._report(ConflictKind.SUSPICIOUS_DUPLICATE, booking, "email")
            if wanted_phone and normalize_phone(customer.phone) == wanted_phone:
                return self._report(ConflictKind.SUSPICIOUS_DUPLICATE, booking, "phone")
        return None

    def ensure_slot_free(
        self,
        check_date: date,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        report = self.find_conflict(check_date, start, end, exclude_booking_id)
        if report is not None:
            raise SlotConflictException(details={"conflict": report.to_dict()})

    def ensure_not_duplicate(
        self,
        start: datetime,
        customer_id: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> None:
        report = self.find_duplicate(start, customer_id, email, phone)
        if report is None:
            return
        if report.kind is ConflictKind.DUPLICATE_BOOKING:
            raise DuplicateBookingException(report.booking_id)
        raise SuspiciousDuplicateException(report.matched_on or "contact")

    def get_booked_intervals(
        self, check_date: date, exclude_booking_id: Optional[str] = None
    ) -> List[Tuple[datetime, datetime]]:
        bookings = self.repository.get_blocking_bookings_for_date(check_date, exclude_booking_id)
        return [(booking.scheduled_time, booking.estimated_end) for booking in bookings]

    def _report(
        self, kind: ConflictKind, booking: Booking, matched_on: Optional[str] = None
    ) -> ConflictReport:
        self.logger.warning(
            f"Duplicate booking attempt ({kind.value}) at {booking.scheduled_time} "
            f"matching booking {booking.id}"
        )
        return ConflictReport(
            kind=kind,
            booking_id=booking.id,
            start=booking.scheduled_time,
            end=booking.estimated_end,
            matched_on=matched_on,
        )
