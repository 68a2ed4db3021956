"""
Persistence port consumed by OrderService, and the in-memory adapter used when no DATABASE_URL is set.

store() is conditional: with expected_status it only writes if the stored order still has that
status (optimistic concurrency token); without it, it only creates.
"""
import asyncio
from typing import Protocol

from order_tracker.errors import ConcurrentModificationError, InvalidTransitionError, OrderNotFoundError
from order_tracker.models import Order
from order_tracker.order_state import OrderStatus


class OrderRepository(Protocol):
    async def get_by_id(self, order_id: str) -> Order | None: ...

    async def store(
        self,
        order: Order,
        is_client_origin: bool = False,
        expected_status: OrderStatus | None = None,
    ) -> Order: ...

    async def get_by_status(self, status: OrderStatus) -> list[Order]: ...

    async def get_by_customer(self, customer_id: str) -> list[Order]: ...

    async def list_all(self) -> list[Order]: ...

    async def remove(self, order_id: str) -> None: ...

    async def close(self) -> None: ...


def check_client_status(order: Order, stored_status: OrderStatus, is_client_origin: bool) -> None:
    """Direct client upserts may never change the stored status."""
    if is_client_origin and order.status != stored_status:
        raise InvalidTransitionError(
            current_state=stored_status.value,
            attempted_state=order.status.value,
            reason="Status cannot be changed via direct upsert",
        )


class InMemoryOrderRepository:
    """Orders are frozen values, so holding them directly never leaks a rejected write."""

    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._lock = asyncio.Lock()

    async def get_by_id(self, order_id: str) -> Order | None:
        return self._orders.get(order_id)

    async def store(
        self,
        order: Order,
        is_client_origin: bool = False,
        expected_status: OrderStatus | None = None,
    ) -> Order:
        async with self._lock:
            existing = self._orders.get(order.order_id)
            if expected_status is None:
                if existing is not None:
                    raise ConcurrentModificationError(order.order_id, None)
            else:
                if existing is None or existing.status != expected_status:
                    raise ConcurrentModificationError(order.order_id, expected_status.value)
                check_client_status(order, existing.status, is_client_origin)
            self._orders[order.order_id] = order
            return order

    async def get_by_status(self, status: OrderStatus) -> list[Order]:
        return [o for o in self._orders.values() if o.status == status]

    async def get_by_customer(self, customer_id: str) -> list[Order]:
        return [o for o in self._orders.values() if o.customer_id == customer_id]

    async def list_all(self) -> list[Order]:
        return list(self._orders.values())

    async def remove(self, order_id: str) -> None:
        async with self._lock:
            if self._orders.pop(order_id, None) is None:
                raise OrderNotFoundError(order_id)

    async def close(self) -> None:
        return None
