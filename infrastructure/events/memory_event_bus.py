import logging
import threading
from typing import Callable, Dict, List

from .event_bus_interface import EventBus


logger = logging.getLogger(__name__)


class InMemoryEventBus(EventBus):
    """
    Synchronous in-process event bus for tests and single-process runs.

    Handlers run inline in publish(). Every envelope is also kept in
    published_events so tests can assert on what was emitted.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {}
        self._lock = threading.Lock()
        self.published_events: List[dict] = []

    def publish(self, event_type: str, payload: dict):
        envelope = self.build_envelope(event_type, payload)
        with self._lock:
            self.published_events.append(envelope)
            handlers = list(self._subscribers.get(event_type, []))

        logger.debug(f"Published event: {event_type} ({len(handlers)} handlers)")
        self.dispatch(envelope, handlers)

    def subscribe(self, event_type: str, handler: Callable):
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(handler)
        logger.debug(f"Registered handler for event: {event_type}")

    def events_of_type(self, event_type: str) -> List[dict]:
        with self._lock:
            return [event for event in self.published_events if event["event_type"] == event_type]

    def clear(self):
        with self._lock:
            self.published_events = []
