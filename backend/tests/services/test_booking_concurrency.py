"""
Concurrent creation against a file-backed SQLite database.

Each worker thread has its own session, as request handlers do; they share
one date lock registry, as workers of one process do.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, time
from decimal import Decimal
import threading

import pytest
from sqlalchemy.orm import sessionmaker

from washbay.core.booking_lock import DateLockRegistry
from washbay.core.exceptions import SlotConflictException
from washbay.database import build_engine, init_db
from washbay.events import EventPublisher, SynchronousDispatcher
from washbay.models import Booking, Customer, Service, ServicePrice, VehicleType
from washbay.services.booking_service import BookingService, NewBooking
from washbay.services.customer_identity import ExistingCustomer
from washbay.services.pricing_service import ServiceLineRequest, VehicleRequest

pytestmark = pytest.mark.concurrency

WEDNESDAY = date(2030, 3, 6)
NOW = datetime(2030, 3, 4, 7, 30)


@pytest.fixture
def file_db(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    init_db(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    session = factory()
    car = VehicleType(name="Car")
    wash = Service(name="Hand wash", duration=60)
    session.add_all([car, wash])
    session.flush()
    session.add(ServicePrice(service_id=wash.id, vehicle_type_id=car.id, price=Decimal("500")))
    customers = [
        Customer(email=f"racer{n}@example.com", first_name="Racer", last_name=str(n))
        for n in range(8)
    ]
    session.add_all(customers)
    session.commit()
    seeded = {
        "car_id": car.id,
        "wash_id": wash.id,
        "customer_ids": [customer.id for customer in customers],
    }
    session.close()

    yield factory, seeded
    engine.dispose()


def _attempt(factory, test_settings, registry, barrier, seeded, customer_id, at):
    session = factory()
    try:
        service = BookingService(
            session,
            test_settings,
            event_publisher=EventPublisher(SynchronousDispatcher()),
            lock_registry=registry,
            clock=lambda: NOW,
        )
        request = NewBooking(
            vehicles=[
                VehicleRequest(seeded["car_id"], [ServiceLineRequest(seeded["wash_id"], 1)])
            ],
            scheduled_date=WEDNESDAY,
            scheduled_time=at,
            identity=ExistingCustomer(customer_id),
        )
        barrier.wait(timeout=5)
        try:
            return service.create_booking(request).id
        except SlotConflictException as exc:
            return exc
    finally:
        session.close()


def _race(file_db, test_settings, starts):
    factory, seeded = file_db
    registry = DateLockRegistry(timeout_s=10)
    barrier = threading.Barrier(len(starts))
    with ThreadPoolExecutor(max_workers=len(starts)) as pool:
        futures = [
            pool.submit(
                _attempt,
                factory,
                test_settings,
                registry,
                barrier,
                seeded,
                seeded["customer_ids"][n],
                start,
            )
            for n, start in enumerate(starts)
        ]
        return [future.result(timeout=30) for future in futures]


def test_two_requests_for_the_same_slot(file_db, test_settings):
    results = _race(file_db, test_settings, [time(10, 0), time(10, 0)])

    winners = [result for result in results if isinstance(result, str)]
    losers = [result for result in results if isinstance(result, SlotConflictException)]
    assert len(winners) == 1
    assert len(losers) == 1

    factory, _ = file_db
    session = factory()
    try:
        assert session.query(Booking).count() == 1
    finally:
        session.close()


def test_many_overlapping_requests_admit_one(file_db, test_settings):
    starts = [time(10, 0), time(10, 30), time(9, 30), time(10, 0), time(10, 30), time(9, 30)]
    results = _race(file_db, test_settings, starts)

    assert sum(isinstance(result, str) for result in results) >= 1
    factory, _ = file_db
    session = factory()
    try:
        bookings = session.query(Booking).order_by(Booking.scheduled_time).all()
    finally:
        session.close()

    for earlier, later in zip(bookings, bookings[1:]):
        assert earlier.estimated_end <= later.scheduled_time


def test_disjoint_requests_all_succeed(file_db, test_settings):
    starts = [time(8, 0), time(9, 0), time(10, 0), time(11, 0)]
    results = _race(file_db, test_settings, starts)

    assert all(isinstance(result, str) for result in results)
