from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from order_tracker.config import Settings
from order_tracker.dispatcher import EventDispatcher
from order_tracker.errors import OrderValidationError
from order_tracker.events import parse_notification, to_canonical_event
from order_tracker.metrics import webhooks_received_total
from order_tracker.models import Order, OrderItem, generate_order_id, validate_order_id
from order_tracker.order_state import OrderStatus, from_string
from order_tracker.routes.deps import get_dispatcher, get_service, get_settings
from order_tracker.service import OrderService

router = APIRouter(prefix="/v1/orders", tags=["orders"])


class OrderItemBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(..., alias="productId", min_length=1)
    quantity: int = Field(..., ge=1)
    unit_price: Decimal = Field(..., alias="unitPrice", ge=0)


class UpsertOrderBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_id: UUID = Field(..., alias="customerId")
    order_id: str | None = Field(default=None, alias="orderId")
    order_date: datetime | None = Field(default=None, alias="orderDate")
    order_items: list[OrderItemBody] = Field(..., alias="orderItems", min_length=1)
    status: str | None = Field(default=None, description="Must match the stored status on update")


def _check_order_id(order_id: str, config: Settings) -> None:
    if not validate_order_id(order_id, prefix=config.order_id_prefix):
        raise OrderValidationError(f"Invalid Order ID: {order_id}")


def _order_response(order: Order, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(order.to_record()))


def _orders_response(orders: list[Order]) -> JSONResponse:
    return JSONResponse(status_code=200, content=jsonable_encoder([o.to_record() for o in orders]))


@router.get("")
async def list_orders(service: OrderService = Depends(get_service)) -> JSONResponse:
    return _orders_response(await service.list_orders())


@router.get("/customer/{customer_id}")
async def list_customer_orders(customer_id: UUID, service: OrderService = Depends(get_service)) -> JSONResponse:
    return _orders_response(await service.list_customer_orders(str(customer_id)))


@router.get("/status/{status}")
async def list_orders_by_status(status: str, service: OrderService = Depends(get_service)) -> JSONResponse:
    return _orders_response(await service.list_orders_by_status(from_string(status)))


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    service: OrderService = Depends(get_service),
    config: Settings = Depends(get_settings),
) -> JSONResponse:
    _check_order_id(order_id, config)
    return _order_response(await service.get_order(order_id))


@router.post("")
async def upsert_order(
    body: UpsertOrderBody,
    service: OrderService = Depends(get_service),
    config: Settings = Depends(get_settings),
) -> JSONResponse:
    """
    Create or replace an order. New orders always start PENDING; on update the status must
    equal the stored one, status changes only happen through webhooks and cancel requests.
    """
    if body.order_id is not None:
        _check_order_id(body.order_id, config)
    order_date = body.order_date or datetime.now(timezone.utc)
    order = Order(
        order_id=body.order_id or generate_order_id(config.order_id_prefix, now=order_date),
        customer_id=str(body.customer_id),
        order_date=order_date,
        order_items=tuple(
            OrderItem(product_id=item.product_id, quantity=item.quantity, unit_price=item.unit_price)
            for item in body.order_items
        ),
        status=from_string(body.status) if body.status is not None else OrderStatus.PENDING,
    )
    stored = await service.upsert_order(order, is_client_origin=True)
    return _order_response(stored)


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    dispatcher: EventDispatcher = Depends(get_dispatcher),
    config: Settings = Depends(get_settings),
) -> JSONResponse:
    """Request cancellation. Goes through the same event path as webhooks."""
    _check_order_id(order_id, config)
    webhooks_received_total.labels(source="cancel").inc()
    event = to_canonical_event(parse_notification({"source": "cancel", "orderId": order_id}))
    dispatcher.publish(event.event_type, event)
    return JSONResponse(
        status_code=202,
        content={"status": "accepted", "event": event.event_type.value, "orderId": order_id},
    )
