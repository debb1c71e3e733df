"""Event bus for the statistics engine.

Provides a publish/subscribe mechanism so any consumer (CLI, exporter, a
GUI living elsewhere) can follow samples, bucket updates and persistence
health without the engine depending on it.

Usage:
    from app.events import EventBus, EventType

    bus = EventBus(async_mode=False)

    # Subscribe to events
    bus.subscribe(EventType.PRIMARY_ADAPTER_CHANGED, lambda e: print(e.data["message"]))

    # Publish events
    bus.publish(EventType.PRIMARY_ADAPTER_CHANGED, {"adapter_id": "wlan0", "message": "Switched to wlan0"})
"""
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional

from config import get_logger

logger = get_logger(__name__)


class EventType(Enum):
    """Types of events that can be published/subscribed."""

    # Sampling events
    SAMPLES_UPDATED = auto()
    PRIMARY_ADAPTER_CHANGED = auto()

    # Aggregation events
    BUCKET_UPDATED = auto()
    HISTORY_FLUSHED = auto()

    # Persistence health
    PERSISTENCE_DEGRADED = auto()
    PERSISTENCE_RECOVERED = auto()
    RETENTION_SWEEP = auto()

    # Lifecycle events
    APP_STARTING = auto()
    APP_STOPPING = auto()
    SETTINGS_CHANGED = auto()


@dataclass
class Event:
    """Represents an event with type and data.

    Attributes:
        event_type: The type of event.
        data: Optional dictionary with event-specific data.
        timestamp: When the event was created.
        source: Optional identifier of the event source.
    """
    event_type: EventType
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    source: Optional[str] = None

    def __str__(self) -> str:
        return f"Event({self.event_type.name}, data={self.data})"


# Type alias for event handlers
EventHandler = Callable[[Event], None]


# Queued after the last event to stop the worker
_STOP = object()


class EventBus:
    """Thread-safe publish/subscribe event bus.

    In async mode events are queued and dispatched by a background thread,
    so a slow subscriber never delays the sampling tick. In sync mode, and
    after ``shutdown()``, they are dispatched on the publishing thread.

    A failing handler is logged and does not affect other handlers.
    """

    def __init__(self, async_mode: bool = True):
        self._subscribers: Dict[EventType, List[EventHandler]] = {}
        self._lock = threading.Lock()
        self._queue: Optional[queue.Queue] = None
        self._worker: Optional[threading.Thread] = None

        if async_mode:
            self._queue = queue.Queue()
            self._worker = threading.Thread(
                target=self._run, args=(self._queue,), daemon=True, name="EventBus-Worker"
            )
            self._worker.start()
            logger.debug("EventBus worker thread started")

    @property
    def is_async(self) -> bool:
        return self._queue is not None

    def _run(self, events: queue.Queue) -> None:
        while True:
            event = events.get()
            try:
                if event is _STOP:
                    return
                self._dispatch(event)
            finally:
                events.task_done()

    def _dispatch(self, event: Event) -> None:
        with self._lock:
            handlers = list(self._subscribers.get(event.event_type, ()))

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Error in event handler for {event.event_type.name}: {e}",
                    exc_info=True
                )

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe a handler to an event type."""
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed to {event_type.name}")

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> bool:
        """Unsubscribe a handler.

        Returns:
            True if handler was found and removed, False otherwise.
        """
        with self._lock:
            handlers = self._subscribers.get(event_type)
            if handlers and handler in handlers:
                handlers.remove(handler)
                return True
        return False

    def subscriber_count(self, event_type: EventType) -> int:
        with self._lock:
            return len(self._subscribers.get(event_type, ()))

    def publish(self, event_type: EventType, data: Optional[Dict[str, Any]] = None,
                source: Optional[str] = None) -> None:
        """Publish an event.

        Args:
            event_type: The type of event to publish.
            data: Optional data to include with the event.
            source: Optional identifier of the event source.
        """
        event = Event(event_type=event_type, data=data or {}, source=source)
        events = self._queue
        if events is not None:
            events.put(event)
        else:
            self._dispatch(event)

    def shutdown(self, timeout: float = 1.0) -> bool:
        """Deliver queued events, then stop the worker thread.

        Events published afterwards are dispatched synchronously.

        Returns:
            True if every queued event was delivered within ``timeout``.
        """
        if self._queue is None:
            return True
        self._queue.put(_STOP)
        self._worker.join(timeout)
        drained = not self._worker.is_alive()
        if not drained:
            logger.warning("EventBus worker still busy at shutdown")
        self._queue = None
        logger.debug("EventBus shut down")
        return drained


# Global event bus instance
_global_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Get or create the global event bus instance."""
    global _global_bus
    if _global_bus is None:
        _global_bus = EventBus(async_mode=True)
    return _global_bus
