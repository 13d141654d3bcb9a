# backend/washbay/repositories/catalog_repository.py
"""
Catalog Repository

Batch lookups of services, vehicle types and the rate card so that pricing a
whole booking costs three queries regardless of the number of lines.
"""

import logging
from typing import Dict, Iterable, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.catalog import Service, ServicePrice, VehicleType
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

PricePair = Tuple[str, str]


class CatalogRepository(BaseRepository[Service]):
    def __init__(self, db: Session):
        super().__init__(db, Service)

    def get_services(self, service_ids: Iterable[str]) -> Dict[str, Service]:
        ids = set(service_ids)
        if not ids:
            return {}
        try:
            rows = self.db.query(Service).filter(Service.id.in_(ids)).all()
            return {row.id: row for row in rows}
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading services: {str(e)}")
            raise RepositoryException(f"Failed to load services: {str(e)}")

    def get_vehicle_types(self, vehicle_type_ids: Iterable[str]) -> Dict[str, VehicleType]:
        ids = set(vehicle_type_ids)
        if not ids:
            return {}
        try:
            rows = self.db.query(VehicleType).filter(VehicleType.id.in_(ids)).all()
            return {row.id: row for row in rows}
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading vehicle types: {str(e)}")
            raise RepositoryException(f"Failed to load vehicle types: {str(e)}")

    def get_prices(self, pairs: Iterable[PricePair]) -> Dict[PricePair, ServicePrice]:
        """Price rows for the requested (service_id, vehicle_type_id) pairs."""
        wanted = set(pairs)
        if not wanted:
            return {}
        service_ids = {service_id for service_id, _ in wanted}
        try:
            rows = (
                self.db.query(ServicePrice).filter(ServicePrice.service_id.in_(service_ids)).all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading service prices: {str(e)}")
            raise RepositoryException(f"Failed to load service prices: {str(e)}")
        return {
            (row.service_id, row.vehicle_type_id): row
            for row in rows
            if (row.service_id, row.vehicle_type_id) in wanted
        }
