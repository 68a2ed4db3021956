"""
Order aggregate: derived total, item validation, identifier format.
"""
import re
from dataclasses import FrozenInstanceError
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from order_tracker.errors import InvalidStatusError, OrderValidationError
from order_tracker.models import Order, OrderItem, generate_order_id, validate_order_id
from order_tracker.order_state import OrderStatus

from _helper import CUSTOMER_ID, ORDER_ID, make_items, make_order


def test_total_amount_is_sum_of_items() -> None:
    order = make_order()
    assert order.total_amount == Decimal("130.25")


def test_total_amount_cannot_be_set() -> None:
    order = make_order()
    with pytest.raises(AttributeError):
        order.total_amount = Decimal("1")  # type: ignore[misc]


def test_order_is_immutable() -> None:
    order = make_order()
    with pytest.raises(FrozenInstanceError):
        order.status = OrderStatus.CONFIRMED  # type: ignore[misc]


def test_with_status_returns_copy() -> None:
    order = make_order()
    confirmed = order.with_status(OrderStatus.CONFIRMED)
    assert confirmed.status is OrderStatus.CONFIRMED
    assert order.status is OrderStatus.PENDING
    assert confirmed.order_items == order.order_items


def test_replace_details_keeps_status_and_recomputes_total() -> None:
    order = make_order(status=OrderStatus.CONFIRMED)
    updated = order.replace_details(
        customer_id="other-customer",
        order_date=datetime(2025, 4, 1, tzinfo=timezone.utc),
        order_items=[OrderItem(product_id="prod-9", quantity=3, unit_price=Decimal("10"))],
    )
    assert updated.status is OrderStatus.CONFIRMED
    assert updated.total_amount == Decimal("30")
    assert updated.order_id == order.order_id


def test_items_keep_their_order() -> None:
    items = make_items()
    order = make_order(items=items)
    assert [i.product_id for i in order.order_items] == ["prod-1", "prod-2"]


def test_status_is_parsed_from_string() -> None:
    order = make_order(status="confirmed")  # type: ignore[arg-type]
    assert order.status is OrderStatus.CONFIRMED
    with pytest.raises(InvalidStatusError):
        make_order(status="LOST")  # type: ignore[arg-type]


def test_order_needs_items() -> None:
    with pytest.raises(OrderValidationError):
        make_order(items=())


@pytest.mark.parametrize(
    ("quantity", "unit_price"),
    [(0, Decimal("1")), (-2, Decimal("1")), (True, Decimal("1")), (1, Decimal("-0.01")), (1, "abc"), (1, float("nan"))],
)
def test_invalid_items_are_rejected(quantity, unit_price) -> None:
    with pytest.raises(OrderValidationError):
        OrderItem(product_id="prod-1", quantity=quantity, unit_price=unit_price)


def test_float_prices_are_read_as_written() -> None:
    item = OrderItem(product_id="prod-1", quantity=3, unit_price=10.1)  # type: ignore[arg-type]
    assert item.unit_price == Decimal("10.1")
    assert item.subtotal == Decimal("30.3")


@pytest.mark.parametrize("order_id", ["", "12345", None])
def test_order_needs_a_well_formed_id(order_id) -> None:
    with pytest.raises(OrderValidationError, match="Invalid Order ID"):
        Order(order_id=order_id, customer_id=CUSTOMER_ID, order_items=make_items())


def test_order_keeps_a_custom_prefix_id() -> None:
    order_id = generate_order_id("PO")
    assert Order(order_id=order_id, customer_id=CUSTOMER_ID, order_items=make_items()).order_id == order_id


def test_generated_order_id_format() -> None:
    order_id = generate_order_id("ACME", now=datetime(2025, 6, 1, tzinfo=timezone.utc))
    assert re.fullmatch(r"ACME-25-[A-Z0-9]{5}\d{5}", order_id)
    assert validate_order_id(order_id, prefix="ACME")
    assert not validate_order_id(order_id, prefix="ORD")


@pytest.mark.parametrize(
    ("order_id", "valid"),
    [
        (ORDER_ID, True),
        ("ORD-25-abcde00001", True),
        ("ORD-25-AB1234567", False),
        ("ORD-2025-AB12345678", False),
        ("ORD-25-AB123456789", False),
        ("ORD-25-AB123ABCDE", False),
        ("ORD25AB12345678", False),
        ("", False),
        (None, False),
    ],
)
def test_validate_order_id(order_id, valid: bool) -> None:
    assert validate_order_id(order_id) is valid


def test_from_record_derives_total_from_items() -> None:
    record = make_order().to_record()
    record["totalAmount"] = Decimal("999")
    order = Order.from_record(record)
    assert order.total_amount == Decimal("130.25")
    assert order.order_date == make_order().order_date


def test_to_record_shape() -> None:
    record = make_order(status=OrderStatus.SHIPPED).to_record()
    assert set(record) == {"orderId", "customerId", "orderDate", "orderItems", "status", "totalAmount"}
    assert record["status"] == "SHIPPED"
    assert record["orderDate"] == "2025-03-14T09:30:00+00:00"
    assert record["orderItems"][0] == {"productId": "prod-1", "quantity": 2, "unitPrice": Decimal("50.10")}
