"""
OrderService: applies canonical events as status transitions and guards client upserts.

Every write is conditional on the status that was read (see OrderRepository.store); a lost race
re-runs the whole load -> validate -> store sequence, at most max_retries more times.
"""
import logging
from decimal import Decimal

from order_tracker.errors import (
    AmountMismatchError,
    ConcurrentModificationError,
    InvalidTransitionError,
    OrderNotFoundError,
)
from order_tracker.events import EventType
from order_tracker.metrics import (
    payment_amount_difference_total,
    status_transitions_total,
    store_conflicts_total,
    transitions_rejected_total,
)
from order_tracker.models import Order
from order_tracker.order_state import OrderStatus, is_terminal, transition
from order_tracker.repository import OrderRepository

logger = logging.getLogger(__name__)


class OrderService:
    def __init__(
        self,
        repository: OrderRepository,
        amount_mismatch_threshold: Decimal = Decimal("0.10"),
        max_retries: int = 3,
    ):
        self.repository = repository
        self.amount_mismatch_threshold = Decimal(amount_mismatch_threshold)
        self.max_retries = max_retries

    # -- reads --

    async def get_order(self, order_id: str) -> Order:
        logger.debug("Getting order details for order_id=%s", order_id)
        order = await self.repository.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def list_orders(self) -> list[Order]:
        return await self.repository.list_all()

    async def list_orders_by_status(self, status: OrderStatus) -> list[Order]:
        return await self.repository.get_by_status(status)

    async def list_customer_orders(self, customer_id: str) -> list[Order]:
        return await self.repository.get_by_customer(customer_id)

    # -- writes --

    def _check_amount_paid(self, order: Order, amount_paid: Decimal | None) -> None:
        if amount_paid is None:
            raise AmountMismatchError("Amount paid is required for CONFIRMED status")
        difference = order.total_amount - Decimal(amount_paid)
        if difference > self.amount_mismatch_threshold:
            raise AmountMismatchError(
                f"Amount paid is less than total amount by {difference:.2f}",
                difference=difference,
            )
        if difference != 0:
            # confirmed at the recorded total, not at the paid amount
            payment_amount_difference_total.inc()
            logger.warning(
                "Paid amount differs from order %s total amount by %.2f",
                order.order_id,
                difference,
            )

    async def update_order_status(
        self,
        order_id: str,
        event: EventType,
        amount_paid: Decimal | None = None,
    ) -> Order:
        logger.debug("Updating order status for order_id=%s event=%s", order_id, event)
        attempt = 0
        while True:
            order = await self.get_order(order_id)
            if event == EventType.CONFIRMED:
                self._check_amount_paid(order, amount_paid)
            try:
                new_status = transition(order.status, event)
            except InvalidTransitionError as e:
                transitions_rejected_total.labels(current_state=e.current_state, attempted_state=e.attempted_state).inc()
                logger.error("Error updating order %s status: %s", order_id, e)
                raise
            try:
                stored = await self.repository.store(
                    order.with_status(new_status),
                    is_client_origin=False,
                    expected_status=order.status,
                )
            except ConcurrentModificationError:
                store_conflicts_total.inc()
                attempt += 1
                if attempt > self.max_retries:
                    raise
                logger.info("Order %s changed concurrently, retrying %s (attempt %d/%d)",
                            order_id, event, attempt, self.max_retries)
                continue
            status_transitions_total.labels(from_state=order.status.value, to_state=new_status.value).inc()
            logger.info("Order %s: %s -> %s%s", order_id, order.status.value, new_status.value,
                        " (terminal)" if is_terminal(new_status) else "")
            return stored

    async def upsert_order(self, order: Order, is_client_origin: bool = False) -> Order:
        logger.debug("Upserting order with order_id=%s", order.order_id)
        attempt = 0
        while True:
            existing = await self.repository.get_by_id(order.order_id)
            if existing is None:
                if order.status != OrderStatus.PENDING:
                    logger.warning("New order %s requested in %s, created as PENDING", order.order_id, order.status.value)
                candidate = order.with_status(OrderStatus.PENDING)
                expected_status = None
            else:
                if is_client_origin and order.status != existing.status:
                    transitions_rejected_total.labels(
                        current_state=existing.status.value, attempted_state=order.status.value
                    ).inc()
                    raise InvalidTransitionError(
                        current_state=existing.status.value,
                        attempted_state=order.status.value,
                        reason="Status cannot be changed via direct upsert",
                    )
                if is_client_origin:
                    candidate = existing.replace_details(order.customer_id, order.order_date, order.order_items)
                else:
                    candidate = order
                expected_status = existing.status
            try:
                return await self.repository.store(
                    candidate,
                    is_client_origin=is_client_origin,
                    expected_status=expected_status,
                )
            except ConcurrentModificationError:
                store_conflicts_total.inc()
                attempt += 1
                if attempt > self.max_retries:
                    raise
                logger.info("Order %s changed concurrently, retrying upsert (attempt %d/%d)",
                            order.order_id, attempt, self.max_retries)
