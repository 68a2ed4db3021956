"""
Async Postgres order store (asyncpg). One row per order, items as JSONB.
Writes are conditional on the status read before the change (optimistic concurrency):
an UPDATE that matches no row means another writer got there first.
"""
import json
import logging
from typing import Any

import asyncpg

from order_tracker.errors import ConcurrentModificationError, OrderNotFoundError, PersistenceError
from order_tracker.models import Order, OrderItem
from order_tracker.order_state import OrderStatus
from order_tracker.repository import check_client_status

logger = logging.getLogger(__name__)

_pool: asyncpg.Pool | None = None

_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

_COLUMNS = "order_id, customer_id, order_date, order_items, status, total_amount"


async def get_pool(database_url: str) -> asyncpg.Pool:
    global _pool
    if _pool is None:
        _pool = await asyncpg.create_pool(
            database_url,
            min_size=1,
            max_size=5,
            command_timeout=60,
        )
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


async def init_schema(pool: asyncpg.Pool) -> None:
    async with pool.acquire() as conn:
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS orders (
                order_id VARCHAR(64) PRIMARY KEY,
                customer_id VARCHAR(255) NOT NULL,
                order_date TIMESTAMPTZ NOT NULL,
                order_items JSONB NOT NULL,
                status VARCHAR(20) NOT NULL,
                total_amount NUMERIC NOT NULL,
                created_at TIMESTAMPTZ DEFAULT NOW(),
                updated_at TIMESTAMPTZ DEFAULT NOW()
            );
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_orders_status
            ON orders(status);
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_orders_customer_id
            ON orders(customer_id);
        """)


def _affected_rows(command_tag: str) -> int:
    """'INSERT 0 1' / 'UPDATE 1' / 'DELETE 0' -> row count."""
    return int(command_tag.rsplit(" ", 1)[-1])


def _row_to_order(row: Any) -> Order:
    items = row["order_items"]
    if isinstance(items, str):
        items = json.loads(items)
    return Order(
        order_id=row["order_id"],
        customer_id=row["customer_id"],
        order_date=row["order_date"],
        order_items=tuple(OrderItem.from_record(item) for item in items),
        status=row["status"],
    )


class PostgresOrderRepository:
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def get_by_id(self, order_id: str) -> Order | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(f"SELECT {_COLUMNS} FROM orders WHERE order_id = $1;", order_id)
        except _DB_ERRORS as e:
            logger.error("Error getting order %s: %s", order_id, e)
            raise PersistenceError(f"Error getting order {order_id}") from e
        return _row_to_order(row) if row is not None else None

    async def store(
        self,
        order: Order,
        is_client_origin: bool = False,
        expected_status: OrderStatus | None = None,
    ) -> Order:
        if expected_status is not None:
            # the UPDATE below only matches while the row still has expected_status
            check_client_status(order, expected_status, is_client_origin)
        items_json = json.dumps([item.to_record() for item in order.order_items], default=str)
        try:
            async with self._pool.acquire() as conn:
                if expected_status is None:
                    tag = await conn.execute(
                        """
                        INSERT INTO orders (order_id, customer_id, order_date, order_items, status, total_amount, updated_at)
                        VALUES ($1, $2, $3, $4::jsonb, $5, $6, NOW())
                        ON CONFLICT (order_id) DO NOTHING;
                        """,
                        order.order_id,
                        order.customer_id,
                        order.order_date,
                        items_json,
                        order.status.value,
                        order.total_amount,
                    )
                else:
                    tag = await conn.execute(
                        """
                        UPDATE orders
                        SET customer_id = $2, order_date = $3, order_items = $4::jsonb,
                            status = $5, total_amount = $6, updated_at = NOW()
                        WHERE order_id = $1 AND status = $7;
                        """,
                        order.order_id,
                        order.customer_id,
                        order.order_date,
                        items_json,
                        order.status.value,
                        order.total_amount,
                        expected_status.value,
                    )
        except _DB_ERRORS as e:
            logger.error("Error storing order %s: %s", order.order_id, e)
            raise PersistenceError(f"Error storing order {order.order_id}") from e

        if _affected_rows(tag) == 0:
            raise ConcurrentModificationError(
                order.order_id,
                expected_status.value if expected_status is not None else None,
            )
        return order

    async def _fetch(self, query: str, *args: Any) -> list[Order]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, *args)
        except _DB_ERRORS as e:
            logger.error("Error listing orders: %s", e)
            raise PersistenceError("Error listing orders") from e
        return [_row_to_order(row) for row in rows]

    async def get_by_status(self, status: OrderStatus) -> list[Order]:
        return await self._fetch(
            f"SELECT {_COLUMNS} FROM orders WHERE status = $1 ORDER BY order_date ASC;",
            status.value,
        )

    async def get_by_customer(self, customer_id: str) -> list[Order]:
        return await self._fetch(
            f"SELECT {_COLUMNS} FROM orders WHERE customer_id = $1 ORDER BY order_date ASC;",
            customer_id,
        )

    async def list_all(self) -> list[Order]:
        return await self._fetch(f"SELECT {_COLUMNS} FROM orders ORDER BY order_date ASC;")

    async def remove(self, order_id: str) -> None:
        try:
            async with self._pool.acquire() as conn:
                tag = await conn.execute("DELETE FROM orders WHERE order_id = $1;", order_id)
        except _DB_ERRORS as e:
            logger.error("Error deleting order %s: %s", order_id, e)
            raise PersistenceError(f"Error deleting order {order_id}") from e
        if _affected_rows(tag) == 0:
            raise OrderNotFoundError(order_id)

    async def close(self) -> None:
        await close_pool()
