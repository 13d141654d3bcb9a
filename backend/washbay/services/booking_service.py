# backend/washbay/services/booking_service.py
"""
Booking Service

Owns every write to the Booking aggregate:

- create_booking: identity -> calendar -> pricing -> duplicate and overlap
  checks -> insert, as one atomic unit under the per-date lock
- reschedule_booking: move a booking (and optionally change status or notes)
- add_services: merge extra services into a booking and move its end time
- update_status: lifecycle transitions
- delete_booking: hard delete for bookings without invoices

The conflict check and the write that depends on it always run while the
booking lock for the affected date(s) is held, and the transaction is
committed or rolled back before the lock is released. On PostgreSQL an
exclusion constraint backs this up; a violation surfaces as
``SlotNoLongerAvailableException``.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
import logging
from typing import Callable, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.booking_lock import DateLockRegistry, booking_dates_locked
from ..core.config import Settings, settings
from ..core.exceptions import (
    BookingHasInvoicesException,
    BookingNotModifiableException,
    CalendarClosedException,
    DomainException,
    DuplicateBookingException,
    InvalidStatusTransitionException,
    NotFoundException,
    PersistenceFailureException,
    RepositoryException,
    SlotConflictException,
    SlotNoLongerAvailableException,
    SuspiciousDuplicateException,
    UnpricedServiceException,
    ValidationException,
)
from ..database import with_db_retry
from ..events import (
    BookingCreated,
    BookingDeleted,
    BookingRescheduled,
    BookingStatusChanged,
    EventPublisher,
    SynchronousDispatcher,
)
from ..models.booking import OVERLAP_CONSTRAINT_NAME, Booking, BookingStatus, can_transition
from ..models.customer import Customer
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.booking_repository import BookingRepository
from ..repositories.factory import RepositoryFactory
from .availability_service import AvailabilityService
from .base import BaseService
from .calendar_service import CalendarService
from .conflict_checker import ConflictChecker
from .customer_identity import (
    AnonymousContact,
    ContactIdentity,
    CustomerIdentity,
    CustomerIdentityService,
)
from .pricing_service import PriceQuote, PricingService, ServiceAddition, VehicleRequest

logger = logging.getLogger(__name__)

# A booking that keeps moving between read and lock is treated as a lost race
RESCHEDULE_LOCK_ATTEMPTS = 3


@dataclass(frozen=True)
class NewBooking:
    """A validated creation request."""

    vehicles: Sequence[VehicleRequest]
    scheduled_date: date
    scheduled_time: time
    identity: CustomerIdentity
    company_id: Optional[str] = None
    customer_notes: Optional[str] = None
    send_email: bool = True
    send_sms: bool = False

    @property
    def start(self) -> datetime:
        return datetime.combine(self.scheduled_date, self.scheduled_time)


@dataclass(frozen=True)
class ScheduleChange:
    """A validated reschedule request; ``None`` fields are left unchanged."""

    scheduled_date: Optional[date] = None
    scheduled_time: Optional[time] = None
    status: Optional[BookingStatus] = None
    customer_notes: Optional[str] = None
    admin_notes: Optional[str] = None
    notify_customer: bool = False

    def target_start(self, booking: Booking) -> datetime:
        current = booking.scheduled_time
        return datetime.combine(
            self.scheduled_date or current.date(),
            self.scheduled_time or current.time(),
        )


def _outcome_of(exc: Exception) -> str:
    if isinstance(exc, (DuplicateBookingException, SuspiciousDuplicateException)):
        return "duplicate"
    if isinstance(exc, SlotConflictException):
        return "conflict"
    if isinstance(exc, CalendarClosedException):
        return "closed"
    if isinstance(exc, UnpricedServiceException):
        return "unpriced"
    if isinstance(exc, PersistenceFailureException):
        return "persistence_failure"
    return "rejected"


def _contact_of(
    identity: CustomerIdentity, customer: Customer
) -> Tuple[Optional[str], Optional[str]]:
    """Email and phone to match against other bookings at the same instant."""
    if isinstance(identity, ContactIdentity):
        return identity.email, identity.phone or customer.phone
    if isinstance(identity, AnonymousContact):
        return None, identity.phone
    return customer.email, customer.phone


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Collaborators are injected so tests can pin the clock, the lock registry
    and the event dispatcher.
    """

    def __init__(
        self,
        db: Session,
        config: Optional[Settings] = None,
        event_publisher: Optional[EventPublisher] = None,
        lock_registry: Optional[DateLockRegistry] = None,
        clock: Optional[Callable[[], datetime]] = None,
        calendar: Optional[CalendarService] = None,
        availability: Optional[AvailabilityService] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        pricing: Optional[PricingService] = None,
        identity_service: Optional[CustomerIdentityService] = None,
        repository: Optional[BookingRepository] = None,
    ):
        super().__init__(db)
        self.config = config or settings
        self.event_publisher = event_publisher or EventPublisher(SynchronousDispatcher())
        self.lock_registry = lock_registry
        self.clock = clock or datetime.now
        self.calendar = calendar or CalendarService(db, self.config)
        self.conflict_checker = conflict_checker or ConflictChecker(db)
        self.availability = availability or AvailabilityService(
            db,
            self.config,
            calendar=self.calendar,
            conflict_checker=self.conflict_checker,
            clock=self.clock,
        )
        self.pricing = pricing or PricingService(db)
        self.identity_service = identity_service or CustomerIdentityService(db)
        self.repository = repository or RepositoryFactory.create_booking_repository(db)

    # Creation

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self, request: NewBooking, *, admin_override: bool = False, update_contact: bool = False
    ) -> Booking:
        """
        Create a booking atomically.

        Args:
            request: Validated creation request
            admin_override: Skip calendar, hours, duplicate and overlap checks.
                Pricing is always enforced.
            update_contact: Let a known customer pick up a missing phone number
                from the request. Only for callers holding the admin key.

        Returns:
            The committed booking, status CONFIRMED

        Raises:
            ValidationException: past date or malformed catalog references
            CalendarClosedException: closed day or outside opening hours
            UnpricedServiceException: a service has no price for its vehicle type
            DuplicateBookingException / SuspiciousDuplicateException: double submission
            SlotConflictException: overlaps an existing booking
            SlotNoLongerAvailableException: lost a race at commit time
            PersistenceFailureException: the write failed; nothing was stored
        """
        self.log_operation(
            "create_booking",
            date=str(request.scheduled_date),
            time=request.scheduled_time.strftime("%H:%M"),
            admin_override=admin_override,
        )
        try:
            if not admin_override and request.scheduled_date < self.clock().date():
                raise ValidationException(
                    "Cannot book a date in the past",
                    code="PAST_DATE",
                    details={"date": request.scheduled_date.isoformat()},
                )

            customer = self.identity_service.resolve(
                request.identity, update_contact=update_contact
            )
            booking = self._create_with_retry(request, customer, admin_override)
        except DomainException as exc:
            prometheus_metrics.record_booking_outcome("create", _outcome_of(exc), admin_override)
            raise

        prometheus_metrics.record_booking_outcome("create", "created", admin_override)
        self.event_publisher.publish(
            BookingCreated(
                booking_id=booking.id,
                customer_name=customer.display_name,
                customer_email=customer.email,
                customer_phone=_contact_of(request.identity, customer)[1],
                scheduled_time=booking.scheduled_time,
                estimated_end=booking.estimated_end,
                total_price=f"{booking.total_price:.2f}",
                total_duration=booking.total_duration,
                admin_override=admin_override,
                send_email=request.send_email,
                send_sms=request.send_sms,
            )
        )
        return booking

    def _create_with_retry(
        self, request: NewBooking, customer: Customer, admin_override: bool
    ) -> Booking:
        try:
            return with_db_retry(
                "create_booking",
                lambda: self._create_attempt(request, customer, admin_override),
                max_attempts=2,
            )
        except IntegrityError as exc:
            if OVERLAP_CONSTRAINT_NAME in str(exc.orig):
                self.logger.warning(
                    f"Exclusion constraint rejected booking at {request.start:%Y-%m-%d %H:%M}"
                )
                raise SlotNoLongerAvailableException(
                    details={"scheduled_time": request.start.isoformat()}
                ) from exc
            self.logger.error(f"Integrity error creating booking: {exc}", exc_info=True)
            raise PersistenceFailureException("create_booking") from exc
        except (SQLAlchemyError, RepositoryException) as exc:
            self.logger.error(f"Failed to persist booking: {exc}", exc_info=True)
            raise PersistenceFailureException("create_booking") from exc

    def _create_attempt(
        self, request: NewBooking, customer: Customer, admin_override: bool
    ) -> Booking:
        start = request.start
        try:
            with booking_dates_locked(self.db, [request.scheduled_date], self.lock_registry):
                if not admin_override:
                    status = self.calendar.is_closed(request.scheduled_date)
                    if status.closed:
                        raise CalendarClosedException(
                            status.reason or "Closed",
                            details={"source": status.source},
                        )

                # Pricing is never bypassed, and the overlap check needs its duration
                quote = self.pricing.price_vehicles(request.vehicles)
                end = start + timedelta(minutes=quote.total_duration)

                if not admin_override:
                    self._ensure_offerable(start, quote.total_duration)
                    email, phone = _contact_of(request.identity, customer)
                    self.conflict_checker.ensure_not_duplicate(start, customer.id, email, phone)
                    self.conflict_checker.ensure_slot_free(request.scheduled_date, start, end)

                booking = self._build_booking(request, customer, quote, admin_override)
                self.repository.add(booking)
                self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.logger.info(
            f"Created booking {booking.id} {start:%Y-%m-%d %H:%M}-{booking.estimated_end:%H:%M}"
        )
        return booking

    def _build_booking(
        self,
        request: NewBooking,
        customer: Customer,
        quote: PriceQuote,
        admin_override: bool,
    ) -> Booking:
        start = request.start
        booking = Booking(
            customer_id=customer.id,
            company_id=request.company_id,
            scheduled_date=request.scheduled_date,
            scheduled_time=start,
            estimated_end=start + timedelta(minutes=quote.total_duration),
            total_duration=quote.total_duration,
            total_price=quote.total_price,
            status=BookingStatus.CONFIRMED,
            admin_override=admin_override,
            customer_notes=request.customer_notes,
        )
        booking.vehicles.extend(self.pricing.build_vehicles(quote))
        return booking

    def _ensure_offerable(self, start: datetime, duration_minutes: int) -> None:
        offerable, reason = self.availability.is_offerable(start, duration_minutes)
        if not offerable:
            raise CalendarClosedException(
                reason or "Outside opening hours", details={"start": start.isoformat()}
            )

    # Modification

    @BaseService.measure_operation("reschedule_booking")
    def reschedule_booking(
        self, booking_id: str, change: ScheduleChange, *, admin_override: bool = False
    ) -> Booking:
        """
        Move a booking and apply optional status and note changes in one write.

        The new interval is checked against other bookings (never against
        itself) unless overridden. The target is worked out from the row as
        read under the date lock; when a concurrent write moved the booking to
        a date outside that lock, the lock is retaken for the current dates.
        """
        booking = self._get_or_404(booking_id)
        target = change.target_start(booking)
        locked_dates = {booking.scheduled_date, target.date()}

        try:
            for _ in range(RESCHEDULE_LOCK_ATTEMPTS):
                with booking_dates_locked(self.db, locked_dates, self.lock_registry):
                    self.db.refresh(booking)
                    target = change.target_start(booking)
                    needed = {booking.scheduled_date, target.date()}
                    if needed <= locked_dates:
                        previous_time = booking.scheduled_time
                        moving = self._apply_schedule_change(
                            booking, change, target, admin_override
                        )
                        self.db.commit()
                        break
                    self.db.rollback()
                self.logger.info(f"Booking {booking.id} moved during reschedule; relocking")
                locked_dates = needed
            else:
                raise SlotNoLongerAvailableException(details={"booking_id": booking.id})
        except DomainException as exc:
            self.db.rollback()
            prometheus_metrics.record_booking_outcome(
                "reschedule", _outcome_of(exc), admin_override
            )
            raise
        except IntegrityError as exc:
            self.db.rollback()
            if OVERLAP_CONSTRAINT_NAME in str(exc.orig):
                raise SlotNoLongerAvailableException(
                    details={"scheduled_time": target.isoformat()}
                ) from exc
            raise PersistenceFailureException("reschedule_booking") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            self.logger.error(f"Failed to reschedule booking {booking_id}: {exc}", exc_info=True)
            raise PersistenceFailureException("reschedule_booking") from exc

        prometheus_metrics.record_booking_outcome("reschedule", "updated", admin_override)
        if moving:
            self.log_operation(
                "booking_rescheduled",
                booking_id=booking.id,
                previous_time=previous_time.isoformat(),
                scheduled_time=booking.scheduled_time.isoformat(),
            )
            self.event_publisher.publish(
                BookingRescheduled(
                    booking_id=booking.id,
                    customer_name=booking.customer.display_name,
                    customer_email=booking.customer.email,
                    customer_phone=booking.customer.phone,
                    previous_time=previous_time,
                    scheduled_time=booking.scheduled_time,
                    estimated_end=booking.estimated_end,
                    notify_customer=change.notify_customer,
                )
            )
        return booking

    def _apply_schedule_change(
        self, booking: Booking, change: ScheduleChange, target: datetime, admin_override: bool
    ) -> bool:
        """Apply ``change`` to a locked, fresh booking. Returns whether it moved."""
        moving = target != booking.scheduled_time
        if moving and booking.is_terminal:
            raise BookingNotModifiableException(booking.id, booking.status)

        if moving:
            end = target + timedelta(minutes=booking.total_duration)
            if not admin_override:
                status = self.calendar.is_closed(target.date())
                if status.closed:
                    raise CalendarClosedException(status.reason or "Closed")
                self.conflict_checker.ensure_slot_free(
                    target.date(), target, end, exclude_booking_id=booking.id
                )
            booking.reschedule_to(target)
            booking.admin_override = admin_override

        if change.status is not None:
            self._apply_status(booking, change.status)
        if change.customer_notes is not None:
            booking.customer_notes = change.customer_notes
        if change.admin_notes is not None:
            booking.admin_notes = change.admin_notes
        return moving

    @BaseService.measure_operation("add_services")
    def add_services(
        self,
        booking_id: str,
        additions: Sequence[ServiceAddition],
        *,
        admin_override: bool = False,
    ) -> Booking:
        """
        Add services to a booking; totals and end time are recomputed.

        A longer booking must still fit before the next booking unless
        overridden. Nothing is changed when any addition fails.
        """
        booking = self._get_or_404(booking_id)
        try:
            with booking_dates_locked(self.db, [booking.scheduled_date], self.lock_registry):
                self.db.refresh(booking)
                if booking.is_terminal:
                    raise BookingNotModifiableException(booking.id, booking.status)

                self.pricing.apply_additions(booking, additions)
                if not admin_override:
                    self.conflict_checker.ensure_slot_free(
                        booking.scheduled_date,
                        booking.scheduled_time,
                        booking.estimated_end,
                        exclude_booking_id=booking.id,
                    )
                else:
                    booking.admin_override = True
                self.db.commit()
        except DomainException as exc:
            self.db.rollback()
            prometheus_metrics.record_booking_outcome(
                "add_services", _outcome_of(exc), admin_override
            )
            raise
        except IntegrityError as exc:
            self.db.rollback()
            if OVERLAP_CONSTRAINT_NAME in str(exc.orig):
                raise SlotNoLongerAvailableException(details={"booking_id": booking_id}) from exc
            raise PersistenceFailureException("add_services") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            self.logger.error(f"Failed to add services to {booking_id}: {exc}", exc_info=True)
            raise PersistenceFailureException("add_services") from exc

        prometheus_metrics.record_booking_outcome("add_services", "updated", admin_override)
        self.log_operation(
            "services_added",
            booking_id=booking.id,
            total_duration=booking.total_duration,
            total_price=str(booking.total_price),
        )
        return booking

    @BaseService.measure_operation("update_status")
    def update_status(
        self, booking_id: str, status: BookingStatus, *, notify_customer: bool = False
    ) -> Booking:
        """Apply a lifecycle transition. Setting the current status again is a no-op."""
        booking = self._get_or_404(booking_id)
        previous = booking.status_enum
        if previous is status:
            return booking

        with self.transaction():
            self._apply_status(booking, status)

        self.log_operation(
            "booking_status_changed",
            booking_id=booking.id,
            previous_status=previous.value,
            status=status.value,
        )
        self.event_publisher.publish(
            BookingStatusChanged(
                booking_id=booking.id,
                customer_name=booking.customer.display_name,
                customer_email=booking.customer.email,
                customer_phone=booking.customer.phone,
                previous_status=previous.value,
                status=status.value,
                scheduled_time=booking.scheduled_time,
                notify_customer=notify_customer,
            )
        )
        return booking

    def _apply_status(self, booking: Booking, status: BookingStatus) -> None:
        current = booking.status_enum
        if current is status:
            return
        if not can_transition(current, status):
            raise InvalidStatusTransitionException(current.value, status.value)
        booking.status = status.value
        now = datetime.now(timezone.utc)
        if status is BookingStatus.COMPLETED:
            booking.completed_at = now
        elif status is BookingStatus.CANCELLED:
            booking.cancelled_at = now

    # Deletion and reads

    @BaseService.measure_operation("delete_booking")
    def delete_booking(self, booking_id: str, *, notify_customer: bool = True) -> None:
        """
        Hard-delete a booking with its vehicles and lines.

        Raises:
            BookingHasInvoicesException: the booking must be cancelled instead
        """
        booking = self._get_or_404(booking_id)
        invoice_count = self.repository.count_invoices(booking_id)
        if invoice_count:
            raise BookingHasInvoicesException(booking_id, invoice_count)

        event = BookingDeleted(
            booking_id=booking.id,
            customer_name=booking.customer.display_name,
            customer_email=booking.customer.email,
            customer_phone=booking.customer.phone,
            scheduled_time=booking.scheduled_time,
            notify_customer=notify_customer,
        )
        with self.transaction():
            self.db.delete(booking)

        self.log_operation("booking_deleted", booking_id=booking_id)
        self.event_publisher.publish(event)

    def get_booking(self, booking_id: str) -> Booking:
        return self._get_or_404(booking_id)

    def _get_or_404(self, booking_id: str) -> Booking:
        booking = self.repository.get_booking_with_details(booking_id)
        if booking is None:
            raise NotFoundException(
                f"Booking {booking_id} not found",
                code="BOOKING_NOT_FOUND",
                details={"booking_id": booking_id},
            )
        return booking
