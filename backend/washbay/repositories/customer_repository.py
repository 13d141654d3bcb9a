# backend/washbay/repositories/customer_repository.py
"""Customer Repository."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models.customer import Customer
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CustomerRepository(BaseRepository[Customer]):
    def __init__(self, db: Session):
        super().__init__(db, Customer)

    def find_by_email(self, email: str) -> Optional[Customer]:
        return self.find_one_by(email=email)
