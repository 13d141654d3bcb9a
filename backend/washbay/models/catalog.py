# backend/washbay/models/catalog.py
"""
Service catalog and rate card.

``ServicePrice`` is the only valid price source: a service without a price row
for a vehicle type cannot be booked for that vehicle type.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class VehicleType(Base):
    """Rate card dimension (car, van, boat, camper, ...)."""

    __tablename__ = "vehicle_types"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)

    prices = relationship("ServicePrice", back_populates="vehicle_type")

    def __repr__(self) -> str:
        return f"<VehicleType {self.name}>"


class Service(Base):
    """Catalog entry with its base duration in minutes."""

    __tablename__ = "services"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(150), nullable=False)
    category = Column(String(50), nullable=False, default="wash")
    description = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    prices = relationship("ServicePrice", back_populates="service", cascade="all, delete-orphan")

    __table_args__ = (CheckConstraint("duration > 0", name="check_service_duration_positive"),)

    def __repr__(self) -> str:
        return f"<Service {self.name} {self.duration}min>"


class ServicePrice(Base):
    """Price of one service for one vehicle type."""

    __tablename__ = "service_prices"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    service_id = Column(
        String(26), ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True
    )
    vehicle_type_id = Column(
        String(26), ForeignKey("vehicle_types.id", ondelete="CASCADE"), nullable=False
    )
    price = Column(Numeric(10, 2), nullable=False)

    service = relationship("Service", back_populates="prices")
    vehicle_type = relationship("VehicleType", back_populates="prices")

    __table_args__ = (
        UniqueConstraint("service_id", "vehicle_type_id", name="uq_service_price_pair"),
        CheckConstraint("price >= 0", name="check_service_price_non_negative"),
    )
