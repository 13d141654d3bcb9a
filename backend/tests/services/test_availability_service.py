from datetime import date, datetime, time, timedelta

from hypothesis import given, settings as hypothesis_settings, strategies as st
import pytest

from washbay.core.exceptions import InvalidDurationException
from washbay.models import Booking, BookingStatus, ClosedDateType, Customer
from washbay.services.availability_service import (
    AvailabilityReason,
    AvailabilityService,
    free_windows,
    iter_candidate_starts,
    iter_free_starts,
)
from washbay.services.calendar_service import CalendarService

NOW = datetime(2030, 3, 4, 7, 30)
WEDNESDAY = date(2030, 3, 6)
SATURDAY = date(2030, 3, 9)


def at(hour: int, minute: int = 0, day: date = WEDNESDAY) -> datetime:
    return datetime.combine(day, time(hour, minute))


@pytest.fixture
def availability(db, test_settings):
    return AvailabilityService(db, test_settings, clock=lambda: NOW)


@pytest.fixture
def add_booking(db):
    customer = Customer(email="existing@example.com", first_name="Ola", last_name="Hansen")
    db.add(customer)
    db.commit()

    def _add(start: datetime, minutes: int, status: BookingStatus = BookingStatus.CONFIRMED):
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

    return _add


def test_empty_day_offers_every_step(availability):
    result = availability.compute_slots(WEDNESDAY, 60)

    assert result.slots[0] == time(8, 0)
    assert result.slots[-1] == time(15, 0)
    assert len(result.slots) == 15
    assert result.reason is None


def test_booking_blocks_overlapping_starts(availability, add_booking):
    add_booking(at(10), 90)

    slots = availability.compute_slots(WEDNESDAY, 60).slots

    for blocked in (time(9, 30), time(10, 0), time(10, 30), time(11, 0)):
        assert blocked not in slots
    assert time(9, 0) in slots
    assert time(11, 30) in slots


def test_ninety_minute_request_around_existing_booking(availability, add_booking):
    add_booking(at(10), 90)

    slots = availability.compute_slots(WEDNESDAY, 90).slots

    for blocked in (time(9, 0), time(10, 0), time(10, 30), time(11, 0)):
        assert blocked not in slots
    assert time(8, 30) in slots
    assert time(11, 30) in slots


def test_non_blocking_bookings_are_ignored(availability, add_booking):
    add_booking(at(10), 90, status=BookingStatus.CANCELLED)
    add_booking(at(12), 60, status=BookingStatus.NO_SHOW)

    assert len(availability.compute_slots(WEDNESDAY, 60).slots) == 15


def test_slot_ending_exactly_at_closing_is_offered(availability):
    slots = availability.compute_slots(WEDNESDAY, 60).slots
    assert time(15, 0) in slots


def test_slot_ending_one_minute_after_closing_is_not_offered(availability):
    slots = availability.compute_slots(WEDNESDAY, 61).slots
    assert time(15, 0) not in slots
    assert slots[-1] == time(14, 30)


def test_closed_day_returns_reason(availability):
    result = availability.compute_slots(SATURDAY, 60)
    assert result.slots == []
    assert result.reason is AvailabilityReason.CLOSED
    assert result.message == "Closed on Saturdays"


def test_duration_longer_than_a_day_is_distinguishable(availability):
    result = availability.compute_slots(WEDNESDAY, 660)

    assert result.slots == []
    assert result.reason is AvailabilityReason.DURATION_TOO_LONG
    # 6 h threshold exceeded, so the day runs 08:00-18:00
    assert result.max_duration_minutes == 600
    assert "11 h" in result.message
    assert "10 h" in result.message


def test_long_service_uses_extended_hours(availability):
    slots = availability.compute_slots(WEDNESDAY, 420).slots
    assert slots[0] == time(8, 0)
    assert slots[-1] == time(11, 0)


def test_fully_booked_day(availability, add_booking):
    add_booking(at(8), 480)

    result = availability.compute_slots(WEDNESDAY, 30)
    assert result.slots == []
    assert result.reason is AvailabilityReason.FULLY_BOOKED
    assert result.message


def test_past_date_has_no_slots(availability):
    result = availability.compute_slots(date(2030, 3, 1), 60)
    assert result.slots == []
    assert result.reason is AvailabilityReason.PAST_DATE


@pytest.mark.parametrize("duration", [0, -30])
def test_non_positive_duration_is_an_error(availability, duration):
    with pytest.raises(InvalidDurationException):
        availability.compute_slots(WEDNESDAY, duration)


def test_partial_closure_blocks_its_range(db, test_settings, availability):
    CalendarService(db, test_settings).set_closed_date(
        WEDNESDAY, ClosedDateType.MANUAL, start_time=time(12, 0), end_time=time(13, 0)
    )

    slots = availability.compute_slots(WEDNESDAY, 60).slots
    assert time(11, 0) in slots
    assert time(11, 30) not in slots
    assert time(12, 30) not in slots
    assert time(13, 0) in slots


def test_exclude_booking_frees_its_own_interval(availability, add_booking):
    booking = add_booking(at(10), 90)

    slots = availability.compute_slots(WEDNESDAY, 90, exclude_booking_id=booking.id).slots
    assert time(10, 0) in slots


def test_iter_slots_is_lazy_and_restartable(availability):
    first = availability.iter_slots(WEDNESDAY, 60)
    assert next(first) == at(8)
    assert next(first) == at(8, 30)

    again = availability.iter_slots(WEDNESDAY, 60)
    assert next(again) == at(8)


def test_is_offerable(availability):
    assert availability.is_offerable(at(9), 60) == (True, None)

    offerable, reason = availability.is_offerable(at(15, 30), 60)
    assert not offerable
    assert "08:00-16:00" in reason

    offerable, _ = availability.is_offerable(at(7, 30), 60)
    assert not offerable


def test_day_capacity(availability, add_booking):
    add_booking(at(10), 90)
    add_booking(at(14), 60)

    capacity = availability.get_day_capacity(WEDNESDAY)

    assert not capacity.closed
    assert [(w.start, w.end) for w in capacity.booked_windows] == [
        (at(10), at(11, 30)),
        (at(14), at(15)),
    ]
    assert [(w.start, w.end) for w in capacity.free_windows] == [
        (at(8), at(10)),
        (at(11, 30), at(14)),
        (at(15), at(16)),
    ]
    assert capacity.max_available_minutes == 150


def test_day_capacity_on_closed_day(availability):
    capacity = availability.get_day_capacity(SATURDAY)
    assert capacity.closed
    assert capacity.free_windows == []
    assert capacity.max_available_minutes == 0


def test_free_windows_merge_overlapping_blocks():
    windows = free_windows(
        at(8), at(16), [(at(9), at(11)), (at(10), at(12)), (at(15, 30), at(17))]
    )
    assert [(w.start, w.end) for w in windows] == [(at(8), at(9)), (at(12), at(15, 30))]


@hypothesis_settings(max_examples=200, deadline=None)
@given(
    duration=st.integers(min_value=1, max_value=600),
    step=st.sampled_from([5, 10, 15, 30, 60]),
)
def test_candidates_always_fit_inside_hours(duration, step):
    opening, closing = at(8), at(16)
    starts = list(
        iter_candidate_starts(
            opening, closing, timedelta(minutes=duration), timedelta(minutes=step)
        )
    )

    for start in starts:
        assert opening <= start
        assert start + timedelta(minutes=duration) <= closing
    if starts:
        # The next step would no longer fit
        assert starts[-1] + timedelta(minutes=step + duration) > closing
    else:
        assert duration > 480


@hypothesis_settings(max_examples=200, deadline=None)
@given(
    blocked=st.lists(
        st.tuples(st.integers(min_value=0, max_value=47), st.integers(min_value=1, max_value=8)),
        max_size=5,
    ),
    duration=st.integers(min_value=1, max_value=8).map(lambda n: n * 30),
)
def test_free_starts_never_overlap_blocked(blocked, duration):
    intervals = []
    for begin, length in blocked:
        start = at(8) + timedelta(minutes=10 * begin)
        intervals.append((start, start + timedelta(minutes=30 * length)))
    span = timedelta(minutes=duration)

    for start in iter_free_starts(at(8), at(16), span, timedelta(minutes=30), intervals):
        for other_start, other_end in intervals:
            assert not (start < other_end and start + span > other_start)
