import logging
import threading

from django.conf import settings

from .event_bus_interface import EventBus
from .memory_event_bus import InMemoryEventBus
from .redis_event_bus import RedisEventBus


logger = logging.getLogger(__name__)

# Singleton instance
_event_bus_instance = None
_event_bus_lock = threading.Lock()


def get_event_bus() -> EventBus:
    """Get singleton event bus instance, backend chosen by settings.EVENT_BUS_BACKEND."""
    global _event_bus_instance
    if _event_bus_instance is None:
        with _event_bus_lock:
            if _event_bus_instance is None:
                backend = getattr(settings, "EVENT_BUS_BACKEND", "redis")
                if backend == "memory":
                    _event_bus_instance = InMemoryEventBus()
                elif backend == "redis":
                    _event_bus_instance = RedisEventBus()
                else:
                    raise ValueError(f"Invalid event bus backend: {backend}. Must be 'redis' or 'memory'")
                logger.info(f"Created event bus: {type(_event_bus_instance).__name__}")
    return _event_bus_instance


def reset_event_bus():
    """Drop the cached bus so the next get_event_bus() re-reads settings."""
    global _event_bus_instance
    with _event_bus_lock:
        _event_bus_instance = None


__all__ = ["EventBus", "InMemoryEventBus", "RedisEventBus", "get_event_bus", "reset_event_bus"]
