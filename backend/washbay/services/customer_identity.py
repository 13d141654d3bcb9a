# backend/washbay/services/customer_identity.py
"""
Customer identity resolution.

Three request shapes are accepted:
- ``ExistingCustomer``: a customer id vouched for by an upstream system
- ``ContactIdentity``: a person with an email address; resolution is
  idempotent per normalized email
- ``AnonymousContact``: a walk-in with a name and maybe a phone number; a new
  customer without any email is created every time
"""

from dataclasses import dataclass
import logging
from typing import Optional, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import (
    NotFoundException,
    PersistenceFailureException,
    RepositoryException,
    ValidationException,
)
from ..models.customer import Customer
from ..repositories.customer_repository import CustomerRepository
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .conflict_checker import normalize_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExistingCustomer:
    customer_id: str


@dataclass(frozen=True)
class ContactIdentity:
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None


@dataclass(frozen=True)
class AnonymousContact:
    name: str
    phone: Optional[str] = None


CustomerIdentity = Union[ExistingCustomer, ContactIdentity, AnonymousContact]


class CustomerIdentityService(BaseService):
    """Turns a request identity into a persisted ``Customer``."""

    def __init__(self, db: Session, repository: Optional[CustomerRepository] = None):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_customer_repository(db)

    @BaseService.measure_operation("resolve_customer")
    def resolve(self, identity: CustomerIdentity, *, update_contact: bool = False) -> Customer:
        """
        Return the customer for ``identity``, creating it when needed.

        A known customer is never modified unless ``update_contact`` is set,
        in which case a missing phone number is filled in from the request.

        New customers are committed in their own short transaction, before any
        booking work starts.
        """
        if isinstance(identity, ExistingCustomer):
            customer = self.repository.get_by_id(identity.customer_id, load_relationships=False)
            if customer is None:
                raise NotFoundException(
                    "Customer not found", details={"customer_id": identity.customer_id}
                )
            return customer
        if isinstance(identity, ContactIdentity):
            return self._resolve_contact(identity, update_contact)
        if isinstance(identity, AnonymousContact):
            return self._create_anonymous(identity)
        raise ValidationException("Unsupported customer identity")

    def _resolve_contact(self, identity: ContactIdentity, update_contact: bool) -> Customer:
        email = normalize_email(identity.email)
        if email is None:
            raise ValidationException("Email is required", code="EMAIL_REQUIRED")

        existing = self.repository.find_by_email(email)
        if existing is not None:
            if update_contact and identity.phone and not existing.phone:
                with self.transaction():
                    existing.phone = identity.phone
            return existing

        try:
            customer = self.repository.create(
                email=email,
                first_name=identity.first_name.strip(),
                last_name=identity.last_name.strip(),
                phone=identity.phone,
                is_anonymous=False,
            )
            self.db.commit()
            self.log_operation("customer_created", customer_id=customer.id)
            return customer
        except (RepositoryException, IntegrityError):
            # Lost a race with a concurrent request for the same email
            self.db.rollback()
            winner = self.repository.find_by_email(email)
            if winner is None:
                raise PersistenceFailureException("resolve_customer")
            return winner
        except SQLAlchemyError as exc:
            self.db.rollback()
            self.logger.error(f"Failed to create customer: {exc}")
            raise PersistenceFailureException("resolve_customer") from exc

    def _create_anonymous(self, identity: AnonymousContact) -> Customer:
        name = identity.name.strip()
        if not name:
            raise ValidationException("Name is required", code="NAME_REQUIRED")
        first_name, _, last_name = name.partition(" ")
        try:
            customer = self.repository.create(
                email=None,
                first_name=first_name,
                last_name=last_name or None,
                phone=identity.phone,
                is_anonymous=True,
            )
            self.db.commit()
        except (RepositoryException, SQLAlchemyError) as exc:
            self.db.rollback()
            self.logger.error(f"Failed to create anonymous customer: {exc}")
            raise PersistenceFailureException("resolve_customer") from exc
        self.log_operation("anonymous_customer_created", customer_id=customer.id)
        return customer
