"""
Event bus connecting the archiver to its telemetry sinks.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Type

from plot_archiver.core.events.domain_event import DomainEvent

# An event handler is an async function that takes a DomainEvent and returns None
EventHandler = Callable[[DomainEvent], Awaitable[None]]


class DomainEventBus:
    """
    Asynchronous publish/subscribe bus.

    A failing handler is logged and never prevents the other handlers from
    running, and never propagates into the publisher. Archiving must not
    fail because a progress display broke.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Type[DomainEvent], List[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)
        logging.debug(f"Handler {getattr(handler, '__name__', handler)} subscribed to {event_type.__name__}")

    def unsubscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, event: DomainEvent) -> None:
        """
        Publishes an event to every handler subscribed to its exact type.

        Handlers run concurrently; errors are logged per handler.
        """
        event_type = type(event)
        handlers = list(self._handlers.get(event_type, []))

        if not handlers:
            return

        # Progress events arrive every second per job, keep them out of INFO
        logging.debug(f"Publishing {event_type.__name__} to {len(handlers)} handler(s)")

        await asyncio.gather(*(self._safe_execute(handler, event) for handler in handlers))

    async def _safe_execute(self, handler: EventHandler, event: DomainEvent) -> None:
        try:
            await handler(event)
        except Exception as e:
            logging.error(
                f"Unhandled exception in handler '{getattr(handler, '__name__', handler)}' for event "
                f"'{type(event).__name__}': {e}",
                exc_info=True,
            )
