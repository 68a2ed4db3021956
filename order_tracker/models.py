"""
Order aggregate: the order plus its items, treated as one consistency boundary.
total_amount is derived from the items and cannot be set on its own.
"""
import re
import secrets
import string
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence

from order_tracker.errors import OrderValidationError
from order_tracker.order_state import OrderStatus, from_string

_ALNUM = string.ascii_uppercase + string.digits
_ORDER_ID_RE = re.compile(r"^(?P<prefix>[A-Za-z0-9]+)-\d{2}-[A-Za-z0-9]{5}\d{5}$")


def generate_order_id(prefix: str = "ORD", now: datetime | None = None) -> str:
    """PREFIX-YY-XXXXXNNNNN: 2-digit year, 5 alphanumerics, 5 digits."""
    now = now or datetime.now(timezone.utc)
    letters = "".join(secrets.choice(_ALNUM) for _ in range(5))
    digits = "".join(secrets.choice(string.digits) for _ in range(5))
    return f"{prefix}-{now:%y}-{letters}{digits}"


def validate_order_id(order_id: object, prefix: str | None = None) -> bool:
    if not isinstance(order_id, str):
        return False
    match = _ORDER_ID_RE.match(order_id)
    if match is None:
        return False
    return prefix is None or match.group("prefix") == prefix


def _to_decimal(value: Any, name: str) -> Decimal:
    if isinstance(value, bool):
        raise OrderValidationError(f"Invalid {name}: {value!r}")
    try:
        # str() keeps floats like 10.1 from turning into 10.0999999...
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise OrderValidationError(f"Invalid {name}: {value!r}") from None
    if not result.is_finite():
        raise OrderValidationError(f"Invalid {name}: {value!r}")
    return result


@dataclass(frozen=True)
class OrderItem:
    product_id: str
    quantity: int
    unit_price: Decimal

    def __post_init__(self) -> None:
        if not self.product_id:
            raise OrderValidationError("Invalid Product ID")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity < 1:
            raise OrderValidationError(f"Invalid Quantity: {self.quantity!r}")
        price = _to_decimal(self.unit_price, "Unit Price")
        if price < 0:
            raise OrderValidationError(f"Invalid Unit Price: {self.unit_price!r}")
        object.__setattr__(self, "unit_price", price)

    @property
    def subtotal(self) -> Decimal:
        return self.quantity * self.unit_price

    def to_record(self) -> dict:
        return {
            "productId": self.product_id,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
        }

    @classmethod
    def from_record(cls, record: dict) -> "OrderItem":
        return cls(
            product_id=record["productId"],
            quantity=record["quantity"],
            unit_price=record["unitPrice"],
        )


@dataclass(frozen=True)
class Order:
    order_id: str
    customer_id: str
    order_items: tuple[OrderItem, ...]
    order_date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: OrderStatus = OrderStatus.PENDING

    def __post_init__(self) -> None:
        if not validate_order_id(self.order_id):
            raise OrderValidationError(f"Invalid Order ID: {self.order_id!r}")
        if not self.customer_id:
            raise OrderValidationError("Invalid Customer ID")
        items = tuple(self.order_items)
        if not items:
            raise OrderValidationError("An order needs at least one item")
        object.__setattr__(self, "order_items", items)
        object.__setattr__(self, "status", from_string(self.status))

    @property
    def total_amount(self) -> Decimal:
        return sum((item.subtotal for item in self.order_items), Decimal("0"))

    def with_status(self, status: OrderStatus) -> "Order":
        return replace(self, status=status)

    def replace_details(
        self,
        customer_id: str,
        order_date: datetime,
        order_items: Sequence[OrderItem],
    ) -> "Order":
        """Copy with new non-status fields; status is kept."""
        return replace(self, customer_id=customer_id, order_date=order_date, order_items=tuple(order_items))

    def to_record(self) -> dict:
        return {
            "orderId": self.order_id,
            "customerId": self.customer_id,
            "orderDate": self.order_date.isoformat(),
            "orderItems": [item.to_record() for item in self.order_items],
            "status": self.status.value,
            "totalAmount": self.total_amount,
        }

    @classmethod
    def from_record(cls, record: dict) -> "Order":
        order_date = record["orderDate"]
        if isinstance(order_date, str):
            order_date = datetime.fromisoformat(order_date)
        # totalAmount in the record is ignored: it is always derived from the items
        return cls(
            order_id=record["orderId"],
            customer_id=record["customerId"],
            order_date=order_date,
            order_items=tuple(OrderItem.from_record(item) for item in record["orderItems"]),
            status=from_string(record["status"]),
        )
