"""
Shared builders for the test modules.
"""
from datetime import datetime, timezone
from decimal import Decimal

from fastapi.testclient import TestClient

from order_tracker.models import Order, OrderItem
from order_tracker.order_state import OrderStatus

ORDER_ID = "ORD-25-AB12345678"
CUSTOMER_ID = "3f1c2b9e-8a4d-4e8f-9c1a-6b2d7e5f0a11"
ORDER_DATE = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


def make_items() -> tuple[OrderItem, ...]:
    """2 x 50.10 + 1 x 30.05 = 130.25"""
    return (
        OrderItem(product_id="prod-1", quantity=2, unit_price=Decimal("50.10")),
        OrderItem(product_id="prod-2", quantity=1, unit_price=Decimal("30.05")),
    )


def make_order(
    order_id: str = ORDER_ID,
    status: OrderStatus = OrderStatus.PENDING,
    items: tuple[OrderItem, ...] | None = None,
    customer_id: str = CUSTOMER_ID,
    order_date: datetime = ORDER_DATE,
) -> Order:
    return Order(
        order_id=order_id,
        customer_id=customer_id,
        order_date=order_date,
        order_items=items if items is not None else make_items(),
        status=status,
    )


def order_body(order_id: str | None = ORDER_ID, status: str | None = None, **overrides) -> dict:
    """JSON body for POST /v1/orders."""
    body = {
        "customerId": CUSTOMER_ID,
        "orderDate": ORDER_DATE.isoformat(),
        "orderItems": [
            {"productId": "prod-1", "quantity": 2, "unitPrice": 50.10},
            {"productId": "prod-2", "quantity": 1, "unitPrice": 30.05},
        ],
    }
    if order_id is not None:
        body["orderId"] = order_id
    if status is not None:
        body["status"] = status
    body.update(overrides)
    return body


def payment_payload(status: str = "approved", amount: float = 130.25, order_id: str = ORDER_ID, **overrides) -> dict:
    body = {
        "amount": amount,
        "orderId": order_id,
        "provider": "stripe",
        "status": status,
        "transactionId": "txn-0001",
    }
    body.update(overrides)
    return body


def shipment_payload(status: str = "shipped", order_id: str = ORDER_ID, **overrides) -> dict:
    body = {
        "carrier": "dhl",
        "orderId": order_id,
        "status": status,
        "trackingCode": "TRK-123456",
    }
    body.update(overrides)
    return body


def drain(client: TestClient, timeout: float = 5.0) -> None:
    """Run queued event handlers to completion on the app's loop."""
    client.portal.call(client.app.state.dispatcher.drain, timeout)
