from datetime import date, datetime, time, timedelta

from hypothesis import given, settings as hypothesis_settings, strategies as st
import pytest

from washbay.core.exceptions import (
    DuplicateBookingException,
    SlotConflictException,
    SuspiciousDuplicateException,
    ValidationException,
)
from washbay.models import Booking, BookingStatus, Customer
from washbay.services.conflict_checker import (
    ConflictChecker,
    ConflictKind,
    first_overlap,
    intervals_overlap,
    normalize_email,
    normalize_phone,
)

WEDNESDAY = date(2030, 3, 6)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime.combine(WEDNESDAY, time(hour, minute))


@pytest.fixture
def checker(db):
    return ConflictChecker(db)


@pytest.fixture
def ola(db):
    customer = Customer(
        email="ola@example.com", first_name="Ola", last_name="Hansen", phone="+47 912 34 567"
    )
    db.add(customer)
    db.commit()
    return customer


@pytest.fixture
def book(db):
    def _book(customer, start: datetime, minutes: int, status=BookingStatus.CONFIRMED):
        booking = Booking(
            customer_id=customer.id,
            scheduled_date=start.date(),
            scheduled_time=start,
            estimated_end=start + timedelta(minutes=minutes),
            total_duration=minutes,
            total_price=0,
            status=status,
        )
        db.add(booking)
        db.commit()
        return booking

    return _book


def test_touching_intervals_do_not_overlap():
    assert not intervals_overlap(at(9), at(10), at(10), at(11))
    assert not intervals_overlap(at(10), at(11), at(9), at(10))


def test_contained_interval_overlaps():
    assert intervals_overlap(at(9), at(12), at(10), at(11))
    assert intervals_overlap(at(10), at(11), at(9), at(12))


def test_first_overlap_returns_the_hit():
    intervals = [(at(8), at(9)), (at(10), at(11)), (at(10, 30), at(12))]
    assert first_overlap(at(10, 45), at(11, 15), intervals) == (at(10), at(11))
    assert first_overlap(at(9), at(10), intervals) is None


@hypothesis_settings(max_examples=300, deadline=None)
@given(
    a=st.tuples(st.integers(0, 600), st.integers(1, 240)),
    b=st.tuples(st.integers(0, 600), st.integers(1, 240)),
)
def test_overlap_matches_minute_sets(a, b):
    """Half-open intervals overlap exactly when they share a minute."""
    start_a, start_b = at(8) + timedelta(minutes=a[0]), at(8) + timedelta(minutes=b[0])
    end_a, end_b = start_a + timedelta(minutes=a[1]), start_b + timedelta(minutes=b[1])
    minutes_a = set(range(a[0], a[0] + a[1]))
    minutes_b = set(range(b[0], b[0] + b[1]))

    assert intervals_overlap(start_a, end_a, start_b, end_b) == bool(minutes_a & minutes_b)
    assert intervals_overlap(start_a, end_a, start_b, end_b) == intervals_overlap(
        start_b, end_b, start_a, end_a
    )


def test_find_conflict_reports_overlapping_booking(checker, ola, book):
    existing = book(ola, at(10), 90)

    report = checker.find_conflict(WEDNESDAY, at(11), at(12))

    assert report.kind is ConflictKind.OVERLAP
    assert report.booking_id == existing.id
    assert (report.start, report.end) == (at(10), at(11, 30))


def test_adjacent_booking_is_not_a_conflict(checker, ola, book):
    book(ola, at(10), 90)
    assert checker.find_conflict(WEDNESDAY, at(11, 30), at(12)) is None
    assert checker.find_conflict(WEDNESDAY, at(9), at(10)) is None


@pytest.mark.parametrize(
    "status", [BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW]
)
def test_terminal_bookings_do_not_block(checker, ola, book, status):
    book(ola, at(10), 90, status=status)
    assert checker.find_conflict(WEDNESDAY, at(10), at(11)) is None


@pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.IN_PROGRESS])
def test_other_blocking_statuses_block(checker, ola, book, status):
    book(ola, at(10), 90, status=status)
    assert checker.find_conflict(WEDNESDAY, at(10), at(11)) is not None


def test_excluded_booking_does_not_conflict_with_itself(checker, ola, book):
    existing = book(ola, at(10), 90)
    assert checker.find_conflict(WEDNESDAY, at(10), at(11, 30), existing.id) is None


def test_other_dates_are_ignored(checker, ola, book):
    book(ola, datetime(2030, 3, 7, 10, 0), 90)
    assert checker.find_conflict(WEDNESDAY, at(10), at(11)) is None


def test_invalid_range_is_rejected(checker):
    with pytest.raises(ValidationException):
        checker.find_conflict(WEDNESDAY, at(11), at(10))


def test_ensure_slot_free_raises(checker, ola, book):
    book(ola, at(10), 90)
    with pytest.raises(SlotConflictException) as exc_info:
        checker.ensure_slot_free(WEDNESDAY, at(9, 30), at(10, 30))
    assert exc_info.value.details["conflict"]["kind"] == "OVERLAP"


def test_same_customer_same_start_is_duplicate(checker, ola, book):
    existing = book(ola, at(10), 60)

    with pytest.raises(DuplicateBookingException) as exc_info:
        checker.ensure_not_duplicate(at(10), ola.id)
    assert exc_info.value.details["existing_booking_id"] == existing.id


def test_same_email_other_customer_is_suspicious(checker, ola, book):
    book(ola, at(10), 60)

    report = checker.find_duplicate(at(10), "someone-else", email="  OLA@Example.com ")
    assert report.kind is ConflictKind.SUSPICIOUS_DUPLICATE
    assert report.matched_on == "email"


def test_same_phone_other_customer_is_suspicious(checker, ola, book):
    book(ola, at(10), 60)

    with pytest.raises(SuspiciousDuplicateException) as exc_info:
        checker.ensure_not_duplicate(at(10), "someone-else", phone="+47 (912) 34-567")
    assert exc_info.value.details["matched_on"] == "phone"


def test_different_start_is_not_a_duplicate(checker, ola, book):
    book(ola, at(10), 60)
    assert checker.find_duplicate(at(11), ola.id, email="ola@example.com") is None


def test_cancelled_booking_is_not_a_duplicate(checker, ola, book):
    book(ola, at(10), 60, status=BookingStatus.CANCELLED)
    assert checker.find_duplicate(at(10), ola.id) is None


def test_normalizers():
    assert normalize_email("  Kari@Example.COM ") == "kari@example.com"
    assert normalize_email("   ") is None
    assert normalize_phone("(+47) 912-34 567") == "+4791234567"
    assert normalize_phone(None) is None


def test_booked_intervals_are_sorted(checker, ola, book):
    book(ola, at(13), 30)
    book(ola, at(9), 60)

    assert checker.get_booked_intervals(WEDNESDAY) == [(at(9), at(10)), (at(13), at(13, 30))]
