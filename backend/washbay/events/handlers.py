"""Event handlers - turn booking events into customer notifications."""
import json
import logging
from typing import Callable, Dict

from washbay.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def handle_booking_created(payload_str: str, notifier: NotificationService) -> None:
    """Send booking confirmation by email and, when requested, SMS."""
    payload = json.loads(payload_str)
    notifier.send_booking_confirmation(payload)
    logger.info("Processed booking confirmation for %s", payload["booking_id"])


def handle_booking_rescheduled(payload_str: str, notifier: NotificationService) -> None:
    payload = json.loads(payload_str)
    if not payload.get("notify_customer"):
        return
    notifier.send_reschedule_notice(payload)
    logger.info("Processed reschedule notice for %s", payload["booking_id"])


def handle_booking_status_changed(payload_str: str, notifier: NotificationService) -> None:
    payload = json.loads(payload_str)
    if not payload.get("notify_customer"):
        return
    notifier.send_status_notice(payload)
    logger.info("Processed status notice for %s", payload["booking_id"])


def handle_booking_deleted(payload_str: str, notifier: NotificationService) -> None:
    payload = json.loads(payload_str)
    if not payload.get("notify_customer"):
        return
    notifier.send_deletion_notice(payload)
    logger.info("Processed deletion notice for %s", payload["booking_id"])


# Registry of event type -> handler function
EVENT_HANDLERS: Dict[str, Callable[[str, NotificationService], None]] = {
    "event:BookingCreated": handle_booking_created,
    "event:BookingRescheduled": handle_booking_rescheduled,
    "event:BookingStatusChanged": handle_booking_status_changed,
    "event:BookingDeleted": handle_booking_deleted,
}


def process_event(job_type: str, payload: str, notifier: NotificationService) -> bool:
    """
    Process an event job.

    Returns True if a handler ran, False if the job type is unknown. Handler
    failures are logged and never propagate to the publisher.
    """
    handler = EVENT_HANDLERS.get(job_type)
    if handler is None:
        logger.debug("No handler registered for %s", job_type)
        return False
    try:
        handler(payload, notifier)
    except Exception as exc:
        logger.error("Notification for %s failed: %s", job_type, exc, exc_info=True)
    return True


def build_event_processor(notifier: NotificationService) -> Callable[[str, str], bool]:
    def processor(job_type: str, payload: str) -> bool:
        return process_event(job_type, payload, notifier)

    return processor
