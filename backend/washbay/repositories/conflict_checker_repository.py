# backend/washbay/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository

Read-side queries used to decide whether a candidate interval is free.
Only bookings in a blocking status are ever returned.
"""

from datetime import date, datetime
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.exceptions import RepositoryException
from ..models.booking import BLOCKING_STATUSES, Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_BLOCKING_VALUES = sorted(status.value for status in BLOCKING_STATUSES)


class ConflictCheckerRepository(BaseRepository[Booking]):
    """Repository for conflict checking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def get_blocking_bookings_for_date(
        self, check_date: date, exclude_booking_id: Optional[str] = None
    ) -> List[Booking]:
        """
        Blocking bookings on ``check_date`` ordered by start time.

        Args:
            check_date: The calendar day to inspect
            exclude_booking_id: Booking being modified, left out of the result
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.scheduled_date == check_date,
                Booking.status.in_(_BLOCKING_VALUES),
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return query.order_by(Booking.scheduled_time).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting bookings for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get bookings: {str(e)}")

    def find_overlapping(
        self,
        check_date: date,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """Blocking bookings on the date whose interval overlaps ``[start, end)``."""
        try:
            query = self.db.query(Booking).filter(
                Booking.scheduled_date == check_date,
                Booking.status.in_(_BLOCKING_VALUES),
                Booking.scheduled_time < end,
                Booking.estimated_end > start,
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return query.order_by(Booking.scheduled_time).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding overlapping bookings: {str(e)}")
            raise RepositoryException(f"Failed to find overlapping bookings: {str(e)}")

    def get_blocking_bookings_starting_at(self, start: datetime) -> List[Booking]:
        """Blocking bookings that start at exactly ``start``, with their customers."""
        try:
            return (
                self.db.query(Booking)
                .options(joinedload(Booking.customer))
                .filter(
                    Booking.scheduled_date == start.date(),
                    Booking.scheduled_time == start,
                    Booking.status.in_(_BLOCKING_VALUES),
                )
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting bookings starting at {start}: {str(e)}")
            raise RepositoryException(f"Failed to get bookings: {str(e)}")
