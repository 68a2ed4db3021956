"""
Canonical event handlers: the dispatcher's error boundary.

A bad webhook must not take the process down, and its sender already got 202, so nothing is
raised from here. Expected domain failures are logged as warnings; anything else is a bug and is
logged with its traceback under a separate metric label so it can be alerted on.
"""
import logging

from order_tracker.dispatcher import Handler
from order_tracker.errors import OrderError
from order_tracker.events import CanonicalEvent, EventType
from order_tracker.metrics import event_handler_failures_total
from order_tracker.service import OrderService

logger = logging.getLogger(__name__)


class OrderEventHandlers:
    def __init__(self, service: OrderService):
        self.service = service

    async def _apply(self, expected: EventType, event: CanonicalEvent) -> None:
        try:
            if event.event_type != expected:
                raise ValueError(f"{event.event_type} event routed to the {expected} handler")
            await self.service.update_order_status(event.order_id, expected, event.amount_paid)
        except OrderError as e:
            event_handler_failures_total.labels(event_type=expected.value, reason=type(e).__name__).inc()
            logger.warning("Dropped %s event for order %s: %s", expected.value, event.order_id, e)
            return
        except Exception:
            event_handler_failures_total.labels(event_type=expected.value, reason="unexpected").inc()
            logger.exception("Unexpected error handling %s event for order %s", expected.value, event.order_id)
            return
        logger.info("Order %s %s", event.order_id, expected.value.lower())

    async def handle_confirmed(self, event: CanonicalEvent) -> None:
        await self._apply(EventType.CONFIRMED, event)

    async def handle_cancelled(self, event: CanonicalEvent) -> None:
        await self._apply(EventType.CANCELLED, event)

    async def handle_shipped(self, event: CanonicalEvent) -> None:
        await self._apply(EventType.SHIPPED, event)

    async def handle_delivered(self, event: CanonicalEvent) -> None:
        await self._apply(EventType.DELIVERED, event)


def build_handler_table(handlers: OrderEventHandlers) -> dict[EventType, Handler]:
    return {
        EventType.CONFIRMED: handlers.handle_confirmed,
        EventType.CANCELLED: handlers.handle_cancelled,
        EventType.SHIPPED: handlers.handle_shipped,
        EventType.DELIVERED: handlers.handle_delivered,
    }
