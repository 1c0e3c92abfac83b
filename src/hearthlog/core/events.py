"""
Event bus for decoupled communication between pipeline components.

The dispatcher publishes per-channel line events, the controller publishes
diagnostics, lifecycle changes and errors. Consumers subscribe without
knowing who produced the event.

Thread-safe: the watcher may run on a different thread than the consumer.
"""
import logging
import threading
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class EventType(Enum):
    """All event types in the pipeline."""
    # Raw line events, one per applied line of the channel
    POWER_LOG_LINE = auto()
    ARENA_LOG_LINE = auto()
    ACHIEVEMENTS_LOG_LINE = auto()

    # Diagnostics from the tailer and the classifier
    LOG_FILE_FOUND = auto()
    LOG_LINE_IGNORED = auto()

    # Lifecycle
    LIFECYCLE_CHANGED = auto()
    PERMISSION_MISMATCH = auto()
    ERROR_OCCURRED = auto()


@dataclass
class Event:
    """
    Event with type and optional payload.

    Attributes:
        event_type: The type of event being emitted
        data: Optional payload (a raw line, a diagnostic message, a dict, ...)
        source: Optional producer name (e.g. "LogDispatcher")
    """
    event_type: EventType
    data: Any = None
    source: str = ""


Handler = Callable[[Event], None]


class EventBus:
    """
    Per-type publish-subscribe bus.

    Handlers of an event type run synchronously in subscription order. A
    failing handler is logged and the rest still run.
    """
    _instance: Optional['EventBus'] = None
    _lock = threading.Lock()

    def __init__(self):
        self._handlers: Dict[EventType, List[Handler]] = {event_type: [] for event_type in EventType}
        self._handler_lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> 'EventBus':
        """Get the shared EventBus."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = EventBus()
        return cls._instance

    def subscribe(self, event_type: EventType, handler: Handler):
        with self._handler_lock:
            self._handlers[event_type].append(handler)
        logger.debug(f"Subscribed handler to {event_type.name}")

    def unsubscribe(self, event_type: EventType, handler: Handler):
        with self._handler_lock:
            handlers = self._handlers[event_type]
            if handler in handlers:
                handlers.remove(handler)

    def emit(self, event: Event):
        # Copy: a handler may unsubscribe itself
        with self._handler_lock:
            handlers = list(self._handlers[event.event_type])

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in {event.event_type.name} handler: {e}", exc_info=True)

    def emit_simple(self, event_type: EventType, data: Any = None, source: str = ""):
        self.emit(Event(event_type=event_type, data=data, source=source))


def get_event_bus() -> EventBus:
    """Get the shared event bus instance."""
    return EventBus.get_instance()
