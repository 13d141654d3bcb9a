# backend/washbay/repositories/closed_date_repository.py
"""
ClosedDate Repository

Recurring rows are matched on month and day in Python; the table is small and
this keeps the query portable across SQLite and PostgreSQL.
"""

from datetime import date
import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.calendar import ClosedDate
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ClosedDateRepository(BaseRepository[ClosedDate]):
    def __init__(self, db: Session):
        super().__init__(db, ClosedDate)

    def get_rules_for_date(self, day: date) -> List[ClosedDate]:
        """Every closed-date row that applies to ``day`` (exact or recurring)."""
        try:
            candidates = (
                self.db.query(ClosedDate)
                .filter(or_(ClosedDate.date == day, ClosedDate.is_recurring.is_(True)))
                .order_by(ClosedDate.start_time)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading closed dates for {day}: {str(e)}")
            raise RepositoryException(f"Failed to load closed dates: {str(e)}")
        return [row for row in candidates if row.applies_to(day)]

    def get_by_date_and_type(self, day: date, type_: str) -> Optional[ClosedDate]:
        return self.find_one_by(date=day, type=type_)

    def list_between(self, start: date, end: date) -> List[ClosedDate]:
        try:
            return (
                self.db.query(ClosedDate)
                .filter(ClosedDate.date >= start, ClosedDate.date <= end)
                .order_by(ClosedDate.date, ClosedDate.start_time)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing closed dates: {str(e)}")
            raise RepositoryException(f"Failed to list closed dates: {str(e)}")
