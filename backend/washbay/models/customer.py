# backend/washbay/models/customer.py
"""
Customer identities that own bookings.

Identified customers are unique per normalized email. Anonymous walk-in
contacts have no email at all; they are never given a synthetic one.
"""

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), nullable=True, unique=True, index=True)
    phone = Column(String(32), nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    bookings = relationship("Booking", back_populates="customer")

    @property
    def display_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.email or "Customer"

    def __repr__(self) -> str:
        return f"<Customer {self.id} {self.email or '(anonymous)'}>"
