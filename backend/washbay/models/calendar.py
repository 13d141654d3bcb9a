# backend/washbay/models/calendar.py
"""
Calendar exceptions: holidays, vacations and manual closures.

A row without ``start_time``/``end_time`` closes the whole day. A row with both
set only blocks that part of the day. Recurring rows repeat every year on the
same month and day.
"""

from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.sql import func
import ulid

from ..database import Base


class ClosedDateType(str, Enum):
    HOLIDAY = "HOLIDAY"
    VACATION = "VACATION"
    MANUAL = "MANUAL"
    OTHER = "OTHER"


class ClosedDate(Base):
    __tablename__ = "closed_dates"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    date = Column(Date, nullable=False, index=True)
    type = Column(String(20), nullable=False, default=ClosedDateType.MANUAL.value)
    reason = Column(String(255), nullable=True)
    is_recurring = Column(Boolean, nullable=False, default=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("date", "type", name="uq_closed_date_type"),
        CheckConstraint(
            "(start_time IS NULL AND end_time IS NULL) "
            "OR (start_time IS NOT NULL AND end_time IS NOT NULL AND start_time < end_time)",
            name="check_closed_date_range",
        ),
        Index("ix_closed_dates_recurring", "is_recurring"),
    )

    @property
    def is_full_day(self) -> bool:
        return self.start_time is None and self.end_time is None

    def applies_to(self, day) -> bool:
        if self.is_recurring:
            return (self.date.month, self.date.day) == (day.month, day.day)
        return self.date == day

    def describe(self) -> str:
        return self.reason or self.type.replace("_", " ").capitalize()

    def __repr__(self) -> str:
        span = "all day" if self.is_full_day else f"{self.start_time}-{self.end_time}"
        return f"<ClosedDate {self.date} {self.type} {span}>"
