"""
In-process publish/subscribe keyed by canonical event type.
The handler table is built once at startup and handed to the dispatcher; publish never waits
for the handler and a handler failure never reaches the publisher.
"""
import asyncio
import logging
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping

from order_tracker.errors import MissingHandlerError
from order_tracker.events import EventType
from order_tracker.metrics import event_handler_failures_total, events_dispatched_total

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[None]]


class EventDispatcher:
    def __init__(self, handlers: Mapping[EventType, Handler]):
        missing = [event_type.value for event_type in EventType if event_type not in handlers]
        if missing:
            raise MissingHandlerError(f"No handler registered for event type(s): {', '.join(missing)}")
        unknown = [key for key in handlers if not isinstance(key, EventType)]
        if unknown:
            raise MissingHandlerError(f"Handlers registered for unknown event type(s): {unknown}")
        self._handlers: Mapping[EventType, Handler] = MappingProxyType(dict(handlers))
        self._tasks: set[asyncio.Task] = set()

    @property
    def handlers(self) -> Mapping[EventType, Handler]:
        return self._handlers

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def publish(self, event_type: EventType, payload: Any) -> asyncio.Task:
        """Schedule the handler for event_type on the running loop and return immediately."""
        handler = self._handlers[event_type]
        task = asyncio.create_task(self._invoke(event_type, handler, payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        events_dispatched_total.labels(event_type=event_type.value).inc()
        logger.info("Dispatched %s event (in flight: %d)", event_type.value, len(self._tasks))
        return task

    async def _invoke(self, event_type: EventType, handler: Handler, payload: Any) -> None:
        try:
            await handler(payload)
        except asyncio.CancelledError:
            raise
        except Exception:
            # Handlers log their own domain failures; anything reaching here escaped them.
            event_handler_failures_total.labels(event_type=event_type.value, reason="escaped").inc()
            logger.exception("Handler for %s event raised", event_type.value)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight handlers; cancel whatever is still running after timeout."""
        if not self._tasks:
            return
        logger.info("Waiting for %d in-flight handler(s) (max %ss) ...", len(self._tasks), timeout)
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout, return_when=asyncio.ALL_COMPLETED)
        for t in pending:
            t.cancel()
        if pending:
            logger.warning("Cancelled %d handler(s) still running after %ss", len(pending), timeout)
            await asyncio.gather(*pending, return_exceptions=True)
