from datetime import date, time
from decimal import Decimal

from pydantic import ValidationError
import pytest

from washbay.schemas.availability import AvailabilityResponse
from washbay.schemas.base import Money, StandardizedModel
from washbay.schemas.booking import (
    AddServicesRequest,
    BookingCreate,
    BookingReschedule,
    CustomerIn,
    ServiceLineIn,
)
from washbay.schemas.calendar import ClosedDateIn
from washbay.services.availability_service import AvailabilityReason, AvailabilityResult
from washbay.services.customer_identity import (
    AnonymousContact,
    ContactIdentity,
    ExistingCustomer,
)
from washbay.services.pricing_service import normalize_quantity


def booking_body(**overrides):
    body = {
        "vehicles": [
            {"vehicle_type_id": "car", "services": [{"service_id": "wash", "quantity": 1}]}
        ],
        "scheduled_date": "2030-03-06",
        "scheduled_time": "10:00",
        "customer": {"customer_id": "01HCUSTOMER"},
    }
    body.update(overrides)
    return body


@pytest.mark.parametrize(
    "raw, expected", [(2, 2), ("3", 3), (0, 1), (-1, 1), (2.5, 1), ("two", 1), (False, 1)]
)
def test_quantity_is_floored_to_one(raw, expected):
    assert ServiceLineIn(service_id="wash", quantity=raw).quantity == expected


def test_missing_quantity_is_rejected():
    with pytest.raises(ValidationError):
        ServiceLineIn(service_id="wash")
    with pytest.raises(ValidationError) as exc_info:
        ServiceLineIn(service_id="wash", quantity=None)
    assert "Quantity is required" in str(exc_info.value)


@pytest.mark.parametrize("raw", [7, "12", 4.0, 4.5, " 5 ", "-3", True, object()])
def test_request_quantity_matches_pricing(raw):
    assert ServiceLineIn(service_id="wash", quantity=raw).quantity == normalize_quantity(raw)


def test_customer_shapes_map_to_identities():
    assert CustomerIn(customer_id="01HX").to_identity() == ExistingCustomer("01HX")

    contact = CustomerIn(
        email="kari@example.com", first_name=" Kari ", last_name="Nordmann", phone="912 34 567"
    ).to_identity()
    assert contact == ContactIdentity(
        email="kari@example.com", first_name="Kari", last_name="Nordmann", phone="912 34 567"
    )

    assert CustomerIn(name="Walk-in", phone="41234567").to_identity() == AnonymousContact(
        name="Walk-in", phone="41234567"
    )


@pytest.mark.parametrize(
    "customer",
    [
        {},
        {"email": "kari@example.com", "first_name": "Kari"},
        {"email": "not-an-email", "first_name": "Kari", "last_name": "Nordmann"},
        {"name": "   "},
    ],
)
def test_invalid_customer_shapes(customer):
    with pytest.raises(ValidationError):
        CustomerIn(**customer)


def test_booking_create_builds_new_booking():
    payload = BookingCreate(**booking_body(customer_notes="  Roof box  "))

    request = payload.to_new_booking()

    assert request.scheduled_date == date(2030, 3, 6)
    assert request.scheduled_time == time(10, 0)
    assert request.customer_notes == "Roof box"
    assert request.vehicles[0].services[0].service_id == "wash"
    assert request.identity == ExistingCustomer("01HCUSTOMER")


@pytest.mark.parametrize("value", ["2030-03-06T10:00:00", "06.03.2030", "2030-3-6"])
def test_scheduled_date_must_be_date_only(value):
    with pytest.raises(ValidationError):
        BookingCreate(**booking_body(scheduled_date=value))


@pytest.mark.parametrize("value", ["10", "ten:thirty", "25:00"])
def test_scheduled_time_must_be_hh_mm(value):
    with pytest.raises(ValidationError):
        BookingCreate(**booking_body(scheduled_time=value))


def test_booking_create_needs_vehicles_and_services():
    with pytest.raises(ValidationError):
        BookingCreate(**booking_body(vehicles=[]))
    with pytest.raises(ValidationError):
        BookingCreate(**booking_body(vehicles=[{"vehicle_type_id": "car", "services": []}]))


def test_unknown_fields_are_forbidden():
    with pytest.raises(ValidationError):
        BookingCreate(**booking_body(price_override="0"))


def test_reschedule_needs_a_change():
    with pytest.raises(ValidationError) as exc_info:
        BookingReschedule()
    assert "Nothing to update" in str(exc_info.value)

    change = BookingReschedule(scheduled_time="13:30", admin_notes="Customer called").to_change()
    assert change.scheduled_time == time(13, 30)
    assert change.scheduled_date is None
    assert change.admin_notes == "Customer called"


def test_add_services_request():
    request = AddServicesRequest(
        additions=[{"booking_vehicle_id": "v1", "service_id": "polish", "quantity": "0"}]
    )
    (addition,) = request.to_additions()
    assert (addition.booking_vehicle_id, addition.service_id, addition.quantity) == (
        "v1",
        "polish",
        1,
    )

    with pytest.raises(ValidationError):
        AddServicesRequest(additions=[])


def test_partial_closure_needs_both_times():
    with pytest.raises(ValidationError):
        ClosedDateIn(date="2030-03-06", start_time="12:00")
    with pytest.raises(ValidationError):
        ClosedDateIn(date="2030-03-06", start_time="13:00", end_time="12:00")

    closed = ClosedDateIn(date="2030-03-06", reason="  Staff training ")
    assert closed.reason == "Staff training"


class PriceOut(StandardizedModel):
    price: Money


def test_money_serializes_with_two_decimals():
    assert PriceOut(price=Decimal("899.5")).model_dump(mode="json") == {"price": "899.50"}
    assert PriceOut(price="10.5").price == Decimal("10.50")


def test_availability_response_formats_slots():
    result = AvailabilityResult(
        date=date(2030, 3, 6),
        duration_minutes=60,
        slots=[time(8, 0), time(8, 30)],
    )
    response = AvailabilityResponse.from_result(result)

    assert response.slots == ["08:00", "08:30"]
    assert response.reason is None

    closed = AvailabilityResponse.from_result(
        AvailabilityResult(
            date=date(2030, 3, 9),
            duration_minutes=60,
            slots=[],
            reason=AvailabilityReason.CLOSED,
            message="Closed on Saturdays",
        )
    )
    assert closed.reason == "CLOSED"
