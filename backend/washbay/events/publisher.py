"""Event publisher - hands committed domain events to a background dispatcher."""
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from decimal import Decimal
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class Event(Protocol):
    """Protocol for event types."""

    def to_dict(self) -> Dict[str, Any]:
        ...


# (job_type, payload_json) -> None
EventProcessor = Callable[[str, str], Any]


class EventDispatcher(Protocol):
    def dispatch(self, job_type: str, payload: str) -> None:
        ...


class ThreadPoolDispatcher:
    """Runs event processing on a small worker pool, off the request thread."""

    def __init__(self, processor: EventProcessor, max_workers: int = 2):
        self._processor = processor
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="washbay-events"
        )

    def dispatch(self, job_type: str, payload: str) -> None:
        future = self._executor.submit(self._processor, job_type, payload)
        future.add_done_callback(_log_failure(job_type))

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class SynchronousDispatcher:
    """Processes events inline. Used by tests and one-off scripts."""

    def __init__(self, processor: Optional[EventProcessor] = None):
        self._processor = processor
        self.dispatched: List[Tuple[str, Dict[str, Any]]] = []

    def dispatch(self, job_type: str, payload: str) -> None:
        self.dispatched.append((job_type, json.loads(payload)))
        if self._processor is not None:
            self._processor(job_type, payload)

    def event_types(self) -> List[str]:
        return [job_type for job_type, _ in self.dispatched]


def _log_failure(job_type: str) -> Callable[[Any], None]:
    def callback(future: Any) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Background processing of %s failed: %s", job_type, exc)

    return callback


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


class EventPublisher:
    """Publishes domain events for async processing after the commit boundary."""

    def __init__(self, dispatcher: EventDispatcher):
        self.dispatcher = dispatcher

    def publish(self, event: Event) -> None:
        """
        Queue an event for background processing.

        Never raises: a failure to queue is logged and the caller's committed
        work stands.
        """
        event_type = type(event).__name__
        try:
            payload = {key: _jsonable(value) for key, value in event.to_dict().items()}
            self.dispatcher.dispatch(f"event:{event_type}", json.dumps(payload))
        except Exception as exc:
            logger.error("Failed to publish %s: %s", event_type, exc, exc_info=True)
