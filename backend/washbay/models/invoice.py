# backend/washbay/models/invoice.py
"""
Invoice reference rows.

Invoices are produced by the billing subsystem; the booking engine only needs
to know whether a booking has any, since such bookings may not be deleted.
"""

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    invoice_number = Column(String(50), nullable=False, unique=True)
    issued_at = Column(DateTime(timezone=True), server_default=func.now())

    booking = relationship("Booking", back_populates="invoices")
