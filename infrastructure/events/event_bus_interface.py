import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterable

from django.utils import timezone


logger = logging.getLogger(__name__)


class EventBus(ABC):
    """
    Publish/subscribe contract for domain events.

    Handlers receive the envelope dict:
        {"event_type": str, "occurred_at": iso8601 str, "payload": dict}

    publish() must never raise; a lost event is logged, not propagated.
    """

    @abstractmethod
    def publish(self, event_type: str, payload: dict):
        pass

    @abstractmethod
    def subscribe(self, event_type: str, handler: Callable):
        pass

    def start_listening(self):
        """Start delivering published events to handlers. No-op for synchronous buses."""
        pass

    @staticmethod
    def build_envelope(event_type: str, payload: dict) -> dict:
        return {"event_type": event_type, "occurred_at": timezone.now().isoformat(), "payload": payload}

    @staticmethod
    def dispatch(envelope: dict, handlers: Iterable[Callable]):
        """Run each handler; one failing listener never stops the others."""
        for handler in handlers:
            try:
                handler(envelope)
            except Exception as e:
                logger.error(f"Handler {getattr(handler, '__name__', handler)} failed for {envelope['event_type']}: {e}")
