# backend/washbay/services/pricing_service.py
"""
Price/Duration aggregation for bookings.

Prices are looked up, never computed: each (service, vehicle type) pair must
have a ``ServicePrice`` row. Pricing is all-or-nothing, so every missing pair
in a request is reported together and nothing is built.

All money arithmetic uses ``Decimal`` quantized to two places.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException, UnpricedServiceException, ValidationException
from ..models.booking import Booking, BookingServiceItem, BookingVehicle
from ..models.catalog import Service
from ..repositories.catalog_repository import CatalogRepository
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

MONEY_QUANT = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def normalize_quantity(value: Any) -> int:
    """
    Coerce a requested quantity to a positive integer.

    A missing quantity is an input error. A quantity that is present but not a
    positive whole number is floored to 1.
    """
    if value is None:
        raise ValidationException("Quantity is required", code="QUANTITY_REQUIRED")
    if isinstance(value, bool):
        return 1
    if isinstance(value, int):
        return value if value >= 1 else 1
    if isinstance(value, float) and value.is_integer() and value >= 1:
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return max(1, int(value.strip()))
    return 1


@dataclass(frozen=True)
class ServiceLineRequest:
    service_id: str
    quantity: int = 1


@dataclass(frozen=True)
class VehicleRequest:
    vehicle_type_id: str
    services: Sequence[ServiceLineRequest]
    vehicle_info: Optional[str] = None
    vehicle_notes: Optional[str] = None


@dataclass(frozen=True)
class ServiceAddition:
    booking_vehicle_id: str
    service_id: str
    quantity: int = 1


@dataclass
class PricedLine:
    service_id: str
    service_name: str
    quantity: int
    unit_price: Decimal
    duration: int

    @property
    def total_price(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)

    @property
    def total_duration(self) -> int:
        return self.duration * self.quantity


@dataclass
class PricedVehicle:
    vehicle_type_id: str
    lines: List[PricedLine] = field(default_factory=list)
    vehicle_info: Optional[str] = None
    vehicle_notes: Optional[str] = None

    @property
    def total_price(self) -> Decimal:
        return to_money(sum((line.total_price for line in self.lines), Decimal("0")))

    @property
    def total_duration(self) -> int:
        return sum(line.total_duration for line in self.lines)


@dataclass
class PriceQuote:
    vehicles: List[PricedVehicle]

    @property
    def total_price(self) -> Decimal:
        return to_money(sum((vehicle.total_price for vehicle in self.vehicles), Decimal("0")))

    @property
    def total_duration(self) -> int:
        return sum(vehicle.total_duration for vehicle in self.vehicles)


class PricingService(BaseService):
    """Resolves unit prices and durations and folds them into booking totals."""

    def __init__(self, db: Session, repository: Optional[CatalogRepository] = None):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_catalog_repository(db)

    @BaseService.measure_operation("price_vehicles")
    def price_vehicles(self, vehicles: Sequence[VehicleRequest]) -> PriceQuote:
        """
        Price a full booking request.

        Identical services on the same vehicle are merged into one line.

        Raises:
            ValidationException: no vehicles, a vehicle without services, or
                unknown catalog ids
            UnpricedServiceException: one or more pairs have no price row
        """
        if not vehicles:
            raise ValidationException("At least one vehicle is required", code="NO_VEHICLES")
        for index, vehicle in enumerate(vehicles):
            if not vehicle.services:
                raise ValidationException(
                    "Each vehicle needs at least one service",
                    code="NO_SERVICES",
                    details={"vehicle_index": index},
                )

        service_ids = {line.service_id for vehicle in vehicles for line in vehicle.services}
        vehicle_type_ids = {vehicle.vehicle_type_id for vehicle in vehicles}
        services = self._load_services(service_ids)
        vehicle_types = self.repository.get_vehicle_types(vehicle_type_ids)
        unknown_types = sorted(vehicle_type_ids - set(vehicle_types))
        if unknown_types:
            raise ValidationException(
                "Unknown vehicle type",
                code="UNKNOWN_VEHICLE_TYPE",
                details={"vehicle_type_ids": unknown_types},
            )

        pairs = {
            (line.service_id, vehicle.vehicle_type_id)
            for vehicle in vehicles
            for line in vehicle.services
        }
        prices = self.repository.get_prices(pairs)
        missing = [
            {
                "service_id": service_id,
                "service_name": services[service_id].name,
                "vehicle_type_id": vehicle_type_id,
                "vehicle_type_name": vehicle_types[vehicle_type_id].name,
            }
            for service_id, vehicle_type_id in sorted(pairs)
            if (service_id, vehicle_type_id) not in prices
        ]
        if missing:
            self.logger.warning(f"Booking request references {len(missing)} unpriced services")
            raise UnpricedServiceException(missing)

        quote = PriceQuote(vehicles=[])
        for vehicle in vehicles:
            merged: Dict[str, PricedLine] = {}
            for line in vehicle.services:
                quantity = normalize_quantity(line.quantity)
                existing = merged.get(line.service_id)
                if existing is not None:
                    existing.quantity += quantity
                    continue
                service = services[line.service_id]
                merged[line.service_id] = PricedLine(
                    service_id=service.id,
                    service_name=service.name,
                    quantity=quantity,
                    unit_price=to_money(prices[(service.id, vehicle.vehicle_type_id)].price),
                    duration=service.duration,
                )
            quote.vehicles.append(
                PricedVehicle(
                    vehicle_type_id=vehicle.vehicle_type_id,
                    lines=list(merged.values()),
                    vehicle_info=vehicle.vehicle_info,
                    vehicle_notes=vehicle.vehicle_notes,
                )
            )
        return quote

    def build_vehicles(self, quote: PriceQuote) -> List[BookingVehicle]:
        """ORM vehicles and line items for a quote, not yet attached to a session."""
        vehicles = []
        for position, priced in enumerate(quote.vehicles):
            vehicle = BookingVehicle(
                vehicle_type_id=priced.vehicle_type_id,
                position=position,
                vehicle_info=priced.vehicle_info,
                vehicle_notes=priced.vehicle_notes,
            )
            for line_position, line in enumerate(priced.lines):
                vehicle.services.append(
                    BookingServiceItem(
                        service_id=line.service_id,
                        position=line_position,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        total_price=line.total_price,
                        duration=line.duration,
                    )
                )
            vehicles.append(vehicle)
        return vehicles

    @BaseService.measure_operation("apply_additions")
    def apply_additions(
        self, booking: Booking, additions: Sequence[ServiceAddition]
    ) -> List[BookingServiceItem]:
        """
        Add services to an existing booking in place.

        An addition for a (vehicle, service) pair that already has a line
        increments that line and keeps its stored unit price. Otherwise a new
        line is priced from the catalog. Booking totals are then recomputed
        from the full line set.

        Returns:
            The lines that were created or changed
        """
        if not additions:
            raise ValidationException("No services to add", code="NO_SERVICES")

        vehicles_by_id = {vehicle.id: vehicle for vehicle in booking.vehicles}
        unknown = sorted(
            {a.booking_vehicle_id for a in additions if a.booking_vehicle_id not in vehicles_by_id}
        )
        if unknown:
            raise NotFoundException(
                "Vehicle not found on this booking",
                code="BOOKING_VEHICLE_NOT_FOUND",
                details={"booking_vehicle_ids": unknown},
            )

        new_pairs: set[Tuple[str, str]] = set()
        for addition in additions:
            vehicle = vehicles_by_id[addition.booking_vehicle_id]
            if vehicle.find_line(addition.service_id) is None:
                new_pairs.add((addition.service_id, vehicle.vehicle_type_id))

        services = self._load_services({service_id for service_id, _ in new_pairs})
        prices = self.repository.get_prices(new_pairs)
        missing = [
            {
                "service_id": service_id,
                "service_name": services[service_id].name,
                "vehicle_type_id": vehicle_type_id,
            }
            for service_id, vehicle_type_id in sorted(new_pairs)
            if (service_id, vehicle_type_id) not in prices
        ]
        if missing:
            raise UnpricedServiceException(missing)

        touched: List[BookingServiceItem] = []
        for addition in additions:
            quantity = normalize_quantity(addition.quantity)
            vehicle = vehicles_by_id[addition.booking_vehicle_id]
            line = vehicle.find_line(addition.service_id)
            if line is not None:
                line.set_quantity(line.quantity + quantity)
            else:
                service = services[addition.service_id]
                unit_price = to_money(prices[(service.id, vehicle.vehicle_type_id)].price)
                line = BookingServiceItem(
                    service_id=service.id,
                    position=len(vehicle.services),
                    quantity=quantity,
                    unit_price=unit_price,
                    total_price=to_money(unit_price * quantity),
                    duration=service.duration,
                )
                vehicle.services.append(line)
            if line not in touched:
                touched.append(line)

        booking.recompute_totals()
        return touched

    def _load_services(self, service_ids: set[str]) -> Dict[str, Service]:
        services = self.repository.get_services(service_ids)
        unknown = sorted(
            service_id
            for service_id in service_ids
            if service_id not in services or not services[service_id].is_active
        )
        if unknown:
            raise ValidationException(
                "Unknown or inactive service",
                code="UNKNOWN_SERVICE",
                details={"service_ids": unknown},
            )
        return services
