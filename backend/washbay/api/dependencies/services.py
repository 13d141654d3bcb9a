# backend/washbay/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Process-wide collaborators (settings, clock, event publisher, date locks)
live on ``app.state`` so that tests can swap them per application.
"""

from datetime import datetime
import logging
from typing import Callable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ...core.booking_lock import DateLockRegistry, date_locks
from ...core.config import Settings, settings
from ...events import EventPublisher, SynchronousDispatcher
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.calendar_service import CalendarService
from .database import get_db

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or settings


def get_clock(request: Request) -> Callable[[], datetime]:
    return getattr(request.app.state, "clock", None) or datetime.now


def get_event_publisher(request: Request) -> EventPublisher:
    publisher = getattr(request.app.state, "event_publisher", None)
    if publisher is None:
        logger.warning("No event publisher configured; events are recorded but not delivered")
        publisher = EventPublisher(SynchronousDispatcher())
        request.app.state.event_publisher = publisher
    return publisher


def get_lock_registry(request: Request) -> DateLockRegistry:
    return getattr(request.app.state, "lock_registry", None) or date_locks


def get_calendar_service(
    db: Session = Depends(get_db), config: Settings = Depends(get_settings)
) -> CalendarService:
    return CalendarService(db, config)


def get_availability_service(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> AvailabilityService:
    return AvailabilityService(db, config, clock=clock)


def get_booking_service(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
    event_publisher: EventPublisher = Depends(get_event_publisher),
    lock_registry: DateLockRegistry = Depends(get_lock_registry),
) -> BookingService:
    """
    Get BookingService instance with proper dependencies.

    Returns:
        BookingService instance
    """
    return BookingService(
        db,
        config,
        event_publisher=event_publisher,
        lock_registry=lock_registry,
        clock=clock,
    )
