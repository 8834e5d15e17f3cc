"""
EventBus for in-process record lifecycle notifications.

The manager and the remote client publish typed events (see events.py);
apps subscribe to refresh lists, show sync badges or log failures.

Usage:
    bus = EventBus()

    bus.subscribe('sync.completed', lambda event: print(f"Synced {event.cid}"))
    bus.subscribe('sync.error', show_retry_banner)

    # Everything
    bus.subscribe('*', lambda event: audit(event.to_dict()))
"""

from typing import Callable, Dict, List, Any, Optional
from threading import Lock
import logging

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], None]


class EventBus:
    """
    Thread-safe publish/subscribe bus.

    Subscriber exceptions are logged and never reach the publisher, so a
    broken listener cannot fail a store write or a sync.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Subscriber]] = {}
        self._lock = Lock()

    def subscribe(self, event_type: str, callback: Subscriber) -> None:
        """
        Subscribe to events of a type.

        Args:
            event_type: e.g. 'sync.completed', or '*' for every event
            callback: Called with the event object
        """
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(callback)
        logger.debug(f"Subscribed to {event_type}: {getattr(callback, '__name__', 'callable')}")

    def unsubscribe(self, event_type: str, callback: Subscriber) -> bool:
        """
        Remove a subscription.

        Returns:
            True if the callback was subscribed
        """
        with self._lock:
            callbacks = self._subscribers.get(event_type)
            if not callbacks or callback not in callbacks:
                return False
            callbacks.remove(callback)
            if not callbacks:
                del self._subscribers[event_type]
        return True

    def publish(self, event: Any) -> None:
        """
        Deliver an event to its type's subscribers, then to '*' subscribers.

        Args:
            event: Object with an 'event_type' attribute
        """
        event_type = getattr(event, "event_type", None)
        if event_type is None:
            logger.warning(f"Event missing 'event_type' attribute: {type(event).__name__}")
            return

        # copy so callbacks can (un)subscribe without holding the lock
        with self._lock:
            callbacks = list(self._subscribers.get(event_type, []))
            callbacks += self._subscribers.get("*", [])

        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in subscriber callback for {event_type}: {e}", exc_info=True)

    def clear(self) -> None:
        """Drop every subscription."""
        with self._lock:
            self._subscribers.clear()

    def subscriber_count(self, event_type: Optional[str] = None) -> int:
        """Count subscribers of one type, or of all types."""
        with self._lock:
            if event_type:
                return len(self._subscribers.get(event_type, []))
            return sum(len(callbacks) for callbacks in self._subscribers.values())


_global_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Get or create the process-wide EventBus."""
    global _global_bus
    if _global_bus is None:
        _global_bus = EventBus()
    return _global_bus


def reset_event_bus() -> None:
    """Replace the process-wide EventBus (mainly for tests)."""
    global _global_bus
    _global_bus = EventBus()
