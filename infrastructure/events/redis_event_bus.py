import json
import logging
import threading
from typing import Callable, Dict, List, Optional

import redis
from django.conf import settings

from .event_bus_interface import EventBus


logger = logging.getLogger(__name__)


class RedisEventBus(EventBus):
    """
    Redis pub/sub event bus.

    Each event type gets its own channel, "<prefix>.<event_type>". Delivery is
    at-most-once: events published while no listener is subscribed are lost,
    which is acceptable for the notification and audit listeners that use it.
    """

    def __init__(self, redis_url: Optional[str] = None, channel_prefix: Optional[str] = None):
        self.redis_url = redis_url or getattr(settings, "CELERY_BROKER_URL", "redis://localhost:6379/0")
        self.channel_prefix = channel_prefix or getattr(settings, "EVENT_BUS_CHANNEL_PREFIX", "events")

        try:
            self.redis_client = redis.from_url(self.redis_url)
        except (redis.RedisError, ValueError) as e:
            logger.error(f"Event bus cannot use Redis at {self.redis_url}: {e}")
            self.redis_client = None

        self._subscribers: Dict[str, List[Callable]] = {}
        self._lock = threading.Lock()
        self._pubsub = None
        self._thread: Optional[threading.Thread] = None

    def channel_for(self, event_type: str) -> str:
        return f"{self.channel_prefix}.{event_type}"

    def publish(self, event_type: str, payload: dict):
        if self.redis_client is None:
            logger.warning(f"Redis unavailable, event {event_type} dropped")
            return

        body = json.dumps(self.build_envelope(event_type, payload), default=str)
        try:
            receivers = self.redis_client.publish(self.channel_for(event_type), body)
        except (redis.RedisError, OSError) as e:
            logger.error(f"Failed to publish event {event_type}: {e}")
            return
        logger.debug(f"Published event {event_type} to {receivers} subscribers")

    def subscribe(self, event_type: str, handler: Callable):
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(handler)
        logger.debug(f"Registered handler for event: {event_type}")

    def start_listening(self):
        """Subscribe to every channel with a handler and deliver messages on a daemon thread."""
        with self._lock:
            if self._thread is not None or self.redis_client is None or not self._subscribers:
                return
            channels = [self.channel_for(event_type) for event_type in self._subscribers]
            self._pubsub = self.redis_client.pubsub(ignore_subscribe_messages=True)
            self._thread = threading.Thread(target=self._listen, args=(channels,), name="event-bus", daemon=True)
        self._thread.start()

    def stop_listening(self):
        with self._lock:
            pubsub, self._pubsub, self._thread = self._pubsub, None, None
        if pubsub is not None:
            pubsub.close()

    def _listen(self, channels):
        try:
            self._pubsub.subscribe(*channels)
            logger.info(f"Event bus listening on {len(channels)} channels")
            for message in self._pubsub.listen():
                self._handle_message(message)
        except (redis.RedisError, OSError, AttributeError) as e:
            # AttributeError: pubsub closed under us by stop_listening()
            logger.error(f"Event bus listener stopped: {e}")
            with self._lock:
                self._thread = None

    def _handle_message(self, message):
        if message.get("type") != "message":
            return
        try:
            envelope = json.loads(message["data"])
            event_type = envelope["event_type"]
        except (TypeError, ValueError, KeyError) as e:
            logger.error(f"Discarding malformed event message: {e}")
            return

        with self._lock:
            handlers = list(self._subscribers.get(event_type, []))
        self.dispatch(envelope, handlers)
