"""
Shared fixtures for the booking engine tests.

Every test gets a fresh in-memory SQLite database with a small seeded catalog
and a clock frozen on Monday 2030-03-04 07:30, so date arithmetic never
depends on when the suite runs.
"""

from datetime import date, datetime, time
from decimal import Decimal
from types import SimpleNamespace
from typing import Callable, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from washbay.api.dependencies import get_db
from washbay.core.booking_lock import DateLockRegistry
from washbay.core.config import Settings
from washbay.database import build_engine, init_db
from washbay.events import EventPublisher, SynchronousDispatcher
from washbay.main import create_app
from washbay.models import Service, ServicePrice, VehicleType
from washbay.ratelimit import BookingRateLimiter, InMemoryRateLimitStore
from washbay.services.booking_service import BookingService, NewBooking
from washbay.services.customer_identity import ContactIdentity, CustomerIdentity
from washbay.services.pricing_service import ServiceLineRequest, VehicleRequest

NOW = datetime(2030, 3, 4, 7, 30)
MONDAY = date(2030, 3, 4)
WEDNESDAY = date(2030, 3, 6)
THURSDAY = date(2030, 3, 7)
SATURDAY = date(2030, 3, 9)
ADMIN_KEY = "test-admin-key"


class FakeClock:
    """Wall clock for the rate limiter, advanced by hand."""

    def __init__(self, start: float = 1_900_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        environment="test",
        database_url="sqlite://",
        admin_api_key=ADMIN_KEY,
        rate_limit_enabled=True,
        booking_rate_limit_max_attempts=3,
        booking_rate_limit_window_seconds=600,
        booking_rate_limit_lockout_seconds=900,
        notifications_enabled=False,
    )


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    """A session on the per-test database."""
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def catalog(db: Session) -> SimpleNamespace:
    """
    Car and van share the wash services; hull cleaning is priced for boats only.
    """
    car = VehicleType(name="Car", sort_order=1)
    van = VehicleType(name="Van", sort_order=2)
    boat = VehicleType(name="Boat", sort_order=3)
    basic = Service(name="Basic wash", duration=30)
    full = Service(name="Full wash", duration=90)
    polish = Service(name="Polish", duration=60)
    hull = Service(name="Hull cleaning", category="boat", duration=120)
    db.add_all([car, van, boat, basic, full, polish, hull])
    db.flush()

    db.add_all(
        [
            ServicePrice(service_id=basic.id, vehicle_type_id=car.id, price=Decimal("299.00")),
            ServicePrice(service_id=basic.id, vehicle_type_id=van.id, price=Decimal("399.00")),
            ServicePrice(service_id=full.id, vehicle_type_id=car.id, price=Decimal("899.50")),
            ServicePrice(service_id=full.id, vehicle_type_id=van.id, price=Decimal("1199.00")),
            ServicePrice(service_id=polish.id, vehicle_type_id=car.id, price=Decimal("450.00")),
            ServicePrice(service_id=polish.id, vehicle_type_id=van.id, price=Decimal("550.00")),
            ServicePrice(service_id=hull.id, vehicle_type_id=boat.id, price=Decimal("2500.00")),
        ]
    )
    db.commit()
    return SimpleNamespace(
        car=car, van=van, boat=boat, basic=basic, full=full, polish=polish, hull=hull
    )


@pytest.fixture
def dispatcher() -> SynchronousDispatcher:
    return SynchronousDispatcher()


@pytest.fixture
def publisher(dispatcher: SynchronousDispatcher) -> EventPublisher:
    return EventPublisher(dispatcher)


@pytest.fixture
def booking_service(
    db: Session, test_settings: Settings, publisher: EventPublisher
) -> BookingService:
    return BookingService(
        db,
        test_settings,
        event_publisher=publisher,
        lock_registry=DateLockRegistry(timeout_s=5),
        clock=lambda: NOW,
    )


def vehicle(vehicle_type, *services, quantity: int = 1, info: Optional[str] = None):
    return VehicleRequest(
        vehicle_type_id=vehicle_type.id,
        services=[ServiceLineRequest(service.id, quantity) for service in services],
        vehicle_info=info,
    )


@pytest.fixture
def make_request(catalog) -> Callable[..., NewBooking]:
    """Build a ``NewBooking``; defaults to one car with a full wash (90 min)."""

    def _make(
        day: date = WEDNESDAY,
        at: time = time(10, 0),
        vehicles=None,
        identity: Optional[CustomerIdentity] = None,
        **kwargs,
    ) -> NewBooking:
        return NewBooking(
            vehicles=vehicles or [vehicle(catalog.car, catalog.full)],
            scheduled_date=day,
            scheduled_time=at,
            identity=identity
            or ContactIdentity(email="kari@example.com", first_name="Kari", last_name="Nordmann"),
            **kwargs,
        )

    return _make


@pytest.fixture
def vehicle_request():
    return vehicle


@pytest.fixture
def rate_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app(test_settings: Settings, db: Session, publisher: EventPublisher, rate_clock: FakeClock):
    application = create_app(
        test_settings,
        clock=lambda: NOW,
        event_publisher=publisher,
        rate_limiter=BookingRateLimiter(
            InMemoryRateLimitStore(), namespace="test", clock=rate_clock
        ),
        lock_registry=DateLockRegistry(timeout_s=5),
        create_tables=False,
    )

    def override_get_db():
        yield db

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    """Create a test client with the test database."""
    test_client = TestClient(app)
    yield test_client
    test_client.close()


@pytest.fixture
def admin_headers() -> dict:
    return {"X-Admin-Key": ADMIN_KEY}
