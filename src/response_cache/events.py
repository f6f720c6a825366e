"""Explicit publish/subscribe channel for cache lifecycle events.

Subscribers register per event type, or with ``"*"`` for every event. A
failing handler is logged and does not affect other handlers or the cache
operation that published the event.
"""

import logging
from collections import defaultdict
from collections.abc import Callable

from response_cache.entities import CacheEvent, CacheEventType

logger = logging.getLogger(__name__)

ALL_EVENTS = "*"

EventHandler = Callable[[CacheEvent], None]


class EventBus:
    """Synchronous in-process event channel.

    Example:
        ```python
        bus = EventBus()
        unsubscribe = bus.subscribe(CacheEventType.HIT, lambda e: print(e.cache_key))
        bus.publish(CacheEvent(type=CacheEventType.HIT, cache_key="abc"))
        unsubscribe()
        ```
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(
        self,
        event_type: CacheEventType | str,
        handler: EventHandler,
    ) -> Callable[[], None]:
        """Register ``handler`` for ``event_type`` (or ``"*"``).

        Returns:
            A callable that removes the registration
        """
        topic = self._topic(event_type)
        self._handlers[topic].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, event: CacheEvent) -> None:
        """Deliver ``event`` to its type's handlers, then to wildcard handlers."""
        for handler in [*self._handlers.get(event.type.value, []), *self._handlers.get(ALL_EVENTS, [])]:
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed for %s event", event.type.value)

    def handler_count(self, event_type: CacheEventType | str | None = None) -> int:
        """Number of registered handlers, optionally for one topic."""
        if event_type is None:
            return sum(len(h) for h in self._handlers.values())
        return len(self._handlers.get(self._topic(event_type), []))

    @staticmethod
    def _topic(event_type: CacheEventType | str) -> str:
        if isinstance(event_type, CacheEventType):
            return event_type.value
        if event_type != ALL_EVENTS:
            # Validate plain strings against the known event types
            return CacheEventType(event_type).value
        return event_type
