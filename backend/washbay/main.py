# backend/washbay/main.py
"""
FastAPI application for the wash bay booking engine.

Run with ``uvicorn washbay.main:app``.
"""

from contextlib import asynccontextmanager
from datetime import datetime
import logging
from typing import AsyncGenerator, Callable, Optional

from fastapi import APIRouter, FastAPI

from . import __version__
from .core.booking_lock import DateLockRegistry, date_locks
from .core.config import Settings, settings
from .database import init_db
from .errors import register_error_handlers
from .events import EventPublisher, ThreadPoolDispatcher
from .events.handlers import build_event_processor
from .ratelimit import BookingRateLimiter
from .routes import health, prometheus
from .routes.v1 import availability as availability_v1
from .routes.v1 import bookings as bookings_v1
from .routes.v1 import closed_dates as closed_dates_v1
from .services.notification_service import NotificationService

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    config: Settings = app.state.settings
    logger.info(f"{config.business_name} booking API starting up...")
    logger.info(f"Environment: {config.environment}")
    if app.state.create_tables:
        init_db()

    yield

    dispatcher = getattr(app.state.event_publisher, "dispatcher", None)
    if isinstance(dispatcher, ThreadPoolDispatcher):
        dispatcher.shutdown(wait=True)
    logger.info("Booking API shut down")


def _default_publisher(config: Settings) -> EventPublisher:
    notifier = NotificationService(business_name=config.business_name)
    return EventPublisher(
        ThreadPoolDispatcher(
            build_event_processor(notifier), max_workers=config.notification_workers
        )
    )


def create_app(
    config: Optional[Settings] = None,
    *,
    clock: Optional[Callable[[], datetime]] = None,
    event_publisher: Optional[EventPublisher] = None,
    rate_limiter: Optional[BookingRateLimiter] = None,
    lock_registry: Optional[DateLockRegistry] = None,
    create_tables: bool = True,
) -> FastAPI:
    """
    Build the application.

    Process-wide collaborators are created once here and shared by every
    request through ``app.state``.
    """
    config = config or settings
    app = FastAPI(
        title=f"{config.business_name} Booking API",
        version=__version__,
        lifespan=app_lifespan,
    )
    app.state.settings = config
    app.state.clock = clock or datetime.now
    app.state.event_publisher = event_publisher or _default_publisher(config)
    app.state.rate_limiter = rate_limiter or BookingRateLimiter.from_settings(config)
    app.state.lock_registry = lock_registry or date_locks
    app.state.create_tables = create_tables

    register_error_handlers(app)

    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(availability_v1.router, prefix="/availability")
    api_v1.include_router(bookings_v1.router, prefix="/bookings")
    api_v1.include_router(closed_dates_v1.router, prefix="/closed-dates")
    app.include_router(api_v1)
    app.include_router(health.router)
    app.include_router(prometheus.router)
    return app


app = create_app()
