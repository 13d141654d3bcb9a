# backend/washbay/services/notification_service.py
"""
Customer notifications for booking lifecycle events.

Delivery goes through a ``NotificationSender``. The default sender only logs;
deployments plug in a real email/SMS gateway. Every public method is
best-effort: failures are logged and counted, never raised, because the
booking they describe is already committed.
"""

from datetime import datetime
import logging
import re
from typing import Any, Dict, Optional, Protocol

from ..core.config import settings
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

# Norwegian mobile numbers: 8 digits starting with 4 or 9
_MOBILE_PATTERN = re.compile(r"^[49]\d{7}$")


def normalize_mobile_number(phone: Optional[str]) -> Optional[str]:
    """Return the 8-digit national number for a Norwegian mobile, else None."""
    if not phone:
        return None
    digits = re.sub(r"[\s\-()]", "", phone)
    if digits.startswith("+47"):
        digits = digits[3:]
    elif digits.startswith("0047"):
        digits = digits[4:]
    return digits if _MOBILE_PATTERN.match(digits) else None


class NotificationSender(Protocol):
    def send_email(self, to_email: str, subject: str, body: str) -> None:
        ...

    def send_sms(self, to_number: str, message: str) -> None:
        ...


class LoggingNotificationSender:
    """Writes outgoing messages to the log instead of delivering them."""

    def send_email(self, to_email: str, subject: str, body: str) -> None:
        logger.info("[email] to=%s subject=%s\n%s", to_email, subject, body)

    def send_sms(self, to_number: str, message: str) -> None:
        logger.info("[sms] to=%s %s", to_number, message)


def _format_when(value: str) -> str:
    return datetime.fromisoformat(value).strftime("%d.%m.%Y kl. %H:%M")


class NotificationService:
    """Renders and sends booking notifications."""

    def __init__(
        self,
        sender: Optional[NotificationSender] = None,
        business_name: Optional[str] = None,
    ):
        self.sender = sender or LoggingNotificationSender()
        self.business_name = business_name or settings.business_name

    def send_booking_confirmation(self, payload: Dict[str, Any]) -> None:
        when = _format_when(payload["scheduled_time"])
        subject = f"Booking confirmed - {when}"
        body = (
            f"Hi {payload['customer_name']},\n\n"
            f"Your booking with {self.business_name} is confirmed for {when}.\n"
            f"Estimated duration: {payload['total_duration']} minutes.\n"
            f"Total price: {payload['total_price']} NOK.\n\n"
            f"Reference: {payload['booking_id']}"
        )
        if payload.get("send_email", True):
            self._email("BookingCreated", payload.get("customer_email"), subject, body)
        if payload.get("send_sms"):
            self._sms(
                "BookingCreated",
                payload.get("customer_phone"),
                f"{self.business_name}: booking confirmed {when}. Ref {payload['booking_id']}",
            )

    def send_reschedule_notice(self, payload: Dict[str, Any]) -> None:
        previous = _format_when(payload["previous_time"])
        when = _format_when(payload["scheduled_time"])
        body = (
            f"Hi {payload['customer_name']},\n\n"
            f"Your booking has been moved from {previous} to {when}.\n\n"
            f"Reference: {payload['booking_id']}"
        )
        self._email("BookingRescheduled", payload.get("customer_email"), "Booking moved", body)
        self._sms(
            "BookingRescheduled",
            payload.get("customer_phone"),
            f"{self.business_name}: your booking is moved to {when}.",
        )

    def send_status_notice(self, payload: Dict[str, Any]) -> None:
        status = payload["status"].replace("_", " ").lower()
        when = _format_when(payload["scheduled_time"])
        body = (
            f"Hi {payload['customer_name']},\n\n"
            f"Your booking on {when} is now {status}.\n\n"
            f"Reference: {payload['booking_id']}"
        )
        self._email(
            "BookingStatusChanged", payload.get("customer_email"), f"Booking {status}", body
        )

    def send_deletion_notice(self, payload: Dict[str, Any]) -> None:
        when = _format_when(payload["scheduled_time"])
        body = (
            f"Hi {payload['customer_name']},\n\n"
            f"Your booking on {when} has been removed. Contact us if this is unexpected.\n\n"
            f"Reference: {payload['booking_id']}"
        )
        self._email("BookingDeleted", payload.get("customer_email"), "Booking removed", body)

    def _email(self, event_type: str, to_email: Optional[str], subject: str, body: str) -> None:
        if not settings.notifications_enabled:
            return
        if not to_email:
            prometheus_metrics.record_notification(event_type, "email", "skipped")
            return
        try:
            self.sender.send_email(to_email, subject, body)
            prometheus_metrics.record_notification(event_type, "email", "sent")
        except Exception as exc:
            prometheus_metrics.record_notification(event_type, "email", "failed")
            logger.error("Email notification (%s) failed: %s", event_type, exc, exc_info=True)

    def _sms(self, event_type: str, phone: Optional[str], message: str) -> None:
        if not settings.notifications_enabled:
            return
        number = normalize_mobile_number(phone)
        if number is None:
            prometheus_metrics.record_notification(event_type, "sms", "skipped")
            return
        try:
            self.sender.send_sms(f"+47{number}", message)
            prometheus_metrics.record_notification(event_type, "sms", "sent")
        except Exception as exc:
            prometheus_metrics.record_notification(event_type, "sms", "failed")
            logger.error("SMS notification (%s) failed: %s", event_type, exc, exc_info=True)
