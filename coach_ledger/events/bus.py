"""Async event bus for in-process pub/sub.

The event bus decouples the pipeline from whatever observes it
(audit logging, notifications, tests). Publishers emit events,
subscribers receive the event types they registered for.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from coach_ledger.events.base import Event

logger = structlog.get_logger()

T = TypeVar("T", bound=Event)
EventHandler = Callable[[Event], None] | Callable[[Event], Awaitable[None]]


class EventBus:
    """Simple async event bus for in-process pub/sub.

    Features:
    - Type-safe subscriptions
    - Async and sync handler support
    - Error isolation (one handler failure doesn't affect others or the
      publisher)
    """

    def __init__(self) -> None:
        self._subscribers: dict[type[Event], list[EventHandler]] = {}

    def subscribe(
        self,
        event_type: type[T],
        handler: Callable[[T], None] | Callable[[T], Awaitable[None]],
    ) -> None:
        """Subscribe a handler to an event type.

        Args:
            event_type: The event class to subscribe to
            handler: Function to call when event is published
        """
        self._subscribers.setdefault(event_type, []).append(handler)  # type: ignore[arg-type]
        logger.debug("Subscribed handler", event_type=event_type.__name__)

    def unsubscribe(
        self,
        event_type: type[T],
        handler: EventHandler,
    ) -> None:
        """Unsubscribe a handler from an event type."""
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            logger.debug("Unsubscribed handler", event_type=event_type.__name__)

    async def publish(self, event: Event) -> None:
        """Publish an event to all subscribers.

        Handlers run concurrently; their errors are logged, never raised.

        Args:
            event: The event to publish
        """
        handlers = self._subscribers.get(type(event), [])
        if not handlers:
            return

        tasks = []
        for handler in handlers:
            if asyncio.iscoroutinefunction(handler):
                tasks.append(handler(event))
            else:
                tasks.append(asyncio.to_thread(handler, event))

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(
                    "Event handler failed",
                    event_type=event.event_type,
                    error=str(result),
                )

    def subscriber_count(self, event_type: type[Event]) -> int:
        """Get number of subscribers for an event type."""
        return len(self._subscribers.get(event_type, []))
