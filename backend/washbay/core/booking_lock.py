"""
Per-date write serialization for bookings.

Every operation that checks for conflicts and then writes a booking holds the
lock for the affected calendar date(s) across the whole read-then-write
sequence. Within one process a ``threading.Lock`` per date does this; across
processes on PostgreSQL a transaction-scoped advisory lock keyed by the date
does the same and is released automatically on commit or rollback.
"""

from __future__ import annotations

from contextlib import ExitStack, contextmanager
from datetime import date
import logging
import threading
import time
from typing import Dict, Iterable, Iterator

from sqlalchemy import text
from sqlalchemy.orm import Session

from ..database.session_utils import is_postgres
from ..monitoring.prometheus_metrics import prometheus_metrics
from .exceptions import ServiceUnavailableException

logger = logging.getLogger(__name__)

# High bits namespace the advisory key so it cannot collide with other users
_ADVISORY_NAMESPACE = 0x57A5 << 32

DEFAULT_LOCK_TIMEOUT_S = 10.0


class BookingLockTimeout(ServiceUnavailableException):
    def __init__(self, day: date):
        super().__init__(
            "The booking calendar is busy. Please try again.",
            code="BOOKING_LOCK_TIMEOUT",
            details={"date": day.isoformat()},
        )


def advisory_key(day: date) -> int:
    return _ADVISORY_NAMESPACE + day.toordinal()


class DateLockRegistry:
    """Process-wide mutex per calendar date."""

    def __init__(self, timeout_s: float = DEFAULT_LOCK_TIMEOUT_S):
        self.timeout_s = timeout_s
        self._locks: Dict[date, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, day: date) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(day)
            if lock is None:
                lock = self._locks[day] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, day: date) -> Iterator[None]:
        lock = self._lock_for(day)
        started = time.perf_counter()
        if not lock.acquire(timeout=self.timeout_s):
            logger.warning("booking_date_lock_timeout", extra={"date": day.isoformat()})
            raise BookingLockTimeout(day)
        prometheus_metrics.observe_lock_wait(time.perf_counter() - started)
        try:
            yield
        finally:
            lock.release()

    @contextmanager
    def hold_many(self, days: Iterable[date]) -> Iterator[None]:
        """Hold several dates at once, always acquired in ascending order."""
        with ExitStack() as stack:
            for day in sorted(set(days)):
                stack.enter_context(self.hold(day))
            yield


def acquire_advisory_locks(db: Session, days: Iterable[date]) -> None:
    """Take PostgreSQL transaction-scoped advisory locks; a no-op elsewhere."""
    if not is_postgres(db):
        return
    for day in sorted(set(days)):
        db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": advisory_key(day)})


@contextmanager
def booking_dates_locked(
    db: Session, days: Iterable[date], registry: DateLockRegistry | None = None
) -> Iterator[None]:
    """
    Serialize booking writes for ``days``.

    Must be entered before the conflict check. The caller commits or rolls back
    inside the block so the advisory lock is released with the transaction.
    """
    wanted = sorted(set(days))
    with (registry or date_locks).hold_many(wanted):
        acquire_advisory_locks(db, wanted)
        yield


date_locks = DateLockRegistry()
