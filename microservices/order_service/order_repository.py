"""
Order Repository

Data access layer for the Order aggregate using an asyncpg pool.
Each order is one row: the aggregate as a JSONB document plus scalar
columns for filtering. Saves are compare-and-swap on ``version``.
"""

import logging
from typing import Any, List, Optional, Tuple

import asyncpg

from core.errors import ConcurrentModification, ConflictError

from .models import Order, OrderStatus

logger = logging.getLogger(__name__)


class OrderRepository:
    """
    Repository for order data operations

    Orders are never deleted.
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool
        self.orders_table = "orders"

    @staticmethod
    def _document(order: Order) -> dict:
        return order.model_dump(mode="json", exclude={"version"})

    @staticmethod
    def _hydrate(row) -> Order:
        return Order.model_validate({**row["document"], "version": row["version"]})

    async def insert_order(self, order: Order) -> Order:
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    f'''
                    INSERT INTO {self.orders_table}
                        (order_id, buyer_id, seller_id, listing_id, status, payment_status,
                         version, document, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                    ''',
                    order.order_id, order.buyer_id, order.seller_id, order.listing_id,
                    order.status.value, order.payment_status.value, order.version,
                    self._document(order), order.created_at, order.updated_at,
                )
            return order
        except asyncpg.UniqueViolationError as e:
            raise ConflictError(f"Order {order.order_id} already exists", {"order_id": order.order_id}) from e
        except Exception as e:
            logger.error(f"Failed to insert order {order.order_id}: {e}")
            raise

    async def get_order(self, order_id: str) -> Optional[Order]:
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f'SELECT document, version FROM {self.orders_table} WHERE order_id = $1',
                    order_id,
                )
            return self._hydrate(row) if row else None
        except Exception as e:
            logger.error(f"Failed to get order {order_id}: {e}")
            raise

    async def save_order(self, order: Order) -> Order:
        """Write the order if nobody saved it since it was loaded"""
        saved = order.model_copy(update={"version": order.version + 1})
        try:
            async with self.pool.acquire() as conn:
                result = await conn.execute(
                    f'''
                    UPDATE {self.orders_table}
                    SET status = $2, payment_status = $3, document = $4,
                        updated_at = $5, version = version + 1
                    WHERE order_id = $1 AND version = $6
                    ''',
                    order.order_id, order.status.value, order.payment_status.value,
                    self._document(order), order.updated_at, order.version,
                )
        except Exception as e:
            logger.error(f"Failed to save order {order.order_id}: {e}")
            raise

        if result.split()[-1] != "1":
            logger.warning(f"Version conflict saving order {order.order_id} at version {order.version}")
            raise ConcurrentModification(
                "Order was modified concurrently, please retry",
                {"order_id": order.order_id, "version": order.version},
            )
        return saved

    def _filters(self, buyer_id, seller_id, status) -> Tuple[str, List[Any]]:
        clauses, args = [], []
        if buyer_id:
            args.append(buyer_id)
            clauses.append(f"buyer_id = ${len(args)}")
        if seller_id:
            args.append(seller_id)
            clauses.append(f"seller_id = ${len(args)}")
        if status:
            args.append(status.value if isinstance(status, OrderStatus) else status)
            clauses.append(f"status = ${len(args)}")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, args

    async def list_orders(
        self,
        buyer_id: Optional[str] = None,
        seller_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Order]:
        where, args = self._filters(buyer_id, seller_id, status)
        args.extend([limit, offset])
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f'''
                    SELECT document, version FROM {self.orders_table} {where}
                    ORDER BY created_at DESC
                    LIMIT ${len(args) - 1} OFFSET ${len(args)}
                    ''',
                    *args,
                )
            return [self._hydrate(row) for row in rows]
        except Exception as e:
            logger.error(f"Failed to list orders: {e}")
            raise

    async def count_orders(
        self,
        buyer_id: Optional[str] = None,
        seller_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
    ) -> int:
        where, args = self._filters(buyer_id, seller_id, status)
        async with self.pool.acquire() as conn:
            return await conn.fetchval(f'SELECT COUNT(*) FROM {self.orders_table} {where}', *args)

    async def _find_by_transaction_field(self, field: str, value: str) -> Optional[Order]:
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f'''
                    SELECT document, version FROM {self.orders_table}
                    WHERE document -> 'payment_transactions' @> $1::jsonb
                    ''',
                    [{field: value}],
                )
            return self._hydrate(row) if row else None
        except Exception as e:
            logger.error(f"Failed to find order by {field} {value}: {e}")
            raise

    async def find_by_transaction(self, transaction_id: str) -> Optional[Order]:
        return await self._find_by_transaction_field("transaction_id", transaction_id)

    async def find_by_payment_reference(self, reference_number: str) -> Optional[Order]:
        return await self._find_by_transaction_field("reference_number", reference_number)
