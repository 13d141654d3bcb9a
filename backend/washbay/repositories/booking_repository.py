# backend/washbay/repositories/booking_repository.py
"""
Booking Repository

Loads and persists the Booking aggregate (vehicles and line items).
"""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, selectinload

from ..core.exceptions import RepositoryException
from ..models.booking import Booking, BookingVehicle
from ..models.invoice import Invoice
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            selectinload(Booking.vehicles).selectinload(BookingVehicle.services),
            selectinload(Booking.customer),
        )

    def get_booking_with_details(self, booking_id: str) -> Optional[Booking]:
        return self.get_by_id(booking_id, load_relationships=True)

    def count_invoices(self, booking_id: str) -> int:
        try:
            return int(
                self.db.query(func.count(Invoice.id))
                .filter(Invoice.booking_id == booking_id)
                .scalar()
                or 0
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting invoices for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to count invoices: {str(e)}")
