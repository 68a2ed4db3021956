from typing import Any

import redis.asyncio as redis
from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from order_tracker.config import Settings
from order_tracker.dispatcher import EventDispatcher
from order_tracker.events import Notification, parse_notification, to_canonical_event
from order_tracker.metrics import webhooks_duplicate_total, webhooks_received_total
from order_tracker.redis_client import check_idempotency
from order_tracker.routes.deps import get_dispatcher, get_redis_client, get_settings

router = APIRouter(prefix="/v1/webhook", tags=["webhooks"])


def _idempotency_key(notification: Notification) -> str:
    if notification.source == "payment":
        return f"idempotency:payment:{notification.transaction_id}:{notification.status.lower()}"
    return f"idempotency:shipment:{notification.tracking_code}:{notification.status.lower()}"


async def _accept(
    source: str,
    payload: dict[str, Any],
    dispatcher: EventDispatcher,
    r: redis.Redis | None,
    config: Settings,
) -> JSONResponse:
    webhooks_received_total.labels(source=source).inc()
    # The endpoint decides the variant, whatever the body claims.
    notification = parse_notification({**payload, "source": source})
    # Map before the idempotency check so a rejected payload does not burn its key.
    event = to_canonical_event(notification)
    if await check_idempotency(r, _idempotency_key(notification), config.webhook_idempotency_ttl_seconds):
        webhooks_duplicate_total.labels(source=source).inc()
        return JSONResponse(
            status_code=200,
            content={"status": "already_processed", "orderId": event.order_id},
        )
    dispatcher.publish(event.event_type, event)
    return JSONResponse(
        status_code=202,
        content={"status": "accepted", "event": event.event_type.value, "orderId": event.order_id},
    )


@router.post("/payment")
async def payment_webhook(
    payload: dict[str, Any] = Body(...),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
    r: redis.Redis | None = Depends(get_redis_client),
    config: Settings = Depends(get_settings),
) -> JSONResponse:
    """
    Payment provider callback. approved -> CONFIRMED, declined/failed -> CANCELLED.
    Answers 202 before the order is updated; a failed update is logged, not returned.
    """
    return await _accept("payment", payload, dispatcher, r, config)


@router.post("/shipment")
async def shipment_webhook(
    payload: dict[str, Any] = Body(...),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
    r: redis.Redis | None = Depends(get_redis_client),
    config: Settings = Depends(get_settings),
) -> JSONResponse:
    """Carrier callback. shipped -> SHIPPED, delivered -> DELIVERED."""
    return await _accept("shipment", payload, dispatcher, r, config)
