"""
Inventory Repository

Data access layer for the inventory ledger using an asyncpg pool.
Tables: inventory_items, inventory_movements (see migrations/).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import asyncpg

from core.errors import InsufficientStock, InventoryItemNotFound

from .models import AppliedMovement, InventoryItem, PlannedMovement, StockMovement

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"name", "sku", "unit", "price", "reorder_point", "reorder_quantity", "is_active"}


class InventoryRepository:
    """
    Repository for inventory data operations.

    Stock writes lock the touched rows with SELECT ... FOR UPDATE in item id
    order inside one transaction, so two processes racing for the same
    item serialize on its row.
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool
        self.items_table = "inventory_items"
        self.movements_table = "inventory_movements"

    async def create_item(self, item: InventoryItem) -> InventoryItem:
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(
                        f'''
                        INSERT INTO {self.items_table}
                            (item_id, seller_id, name, sku, unit, price, stock,
                             reorder_point, reorder_quantity, is_active, created_at, updated_at)
                        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                        ''',
                        item.item_id, item.seller_id, item.name, item.sku, item.unit, item.price,
                        item.stock, item.reorder_point, item.reorder_quantity, item.is_active,
                        item.created_at, item.updated_at,
                    )
                    for movement in item.stock_history:
                        await self._insert_movement(conn, item.item_id, movement)
            return item
        except Exception as e:
            logger.error(f"Failed to create inventory item {item.item_id}: {e}")
            raise

    async def get_item(self, item_id: str) -> Optional[InventoryItem]:
        items = await self.get_items([item_id])
        return items.get(item_id)

    async def get_items(self, item_ids: Sequence[str]) -> Dict[str, InventoryItem]:
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f'SELECT * FROM {self.items_table} WHERE item_id = ANY($1::text[])',
                    list(item_ids),
                )
                return await self._hydrate(conn, rows)
        except Exception as e:
            logger.error(f"Failed to get inventory items {list(item_ids)}: {e}")
            raise

    async def list_items(self, seller_id: str) -> List[InventoryItem]:
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f'SELECT * FROM {self.items_table} WHERE seller_id = $1 ORDER BY name',
                    seller_id,
                )
                items = await self._hydrate(conn, rows)
            return [items[row["item_id"]] for row in rows]
        except Exception as e:
            logger.error(f"Failed to list inventory for seller {seller_id}: {e}")
            raise

    async def update_item(self, item_id: str, fields: Dict[str, Any]) -> Optional[InventoryItem]:
        columns = [name for name in fields if name in UPDATABLE_FIELDS]
        if not columns:
            return await self.get_item(item_id)

        assignments = ", ".join(f"{name} = ${i + 2}" for i, name in enumerate(columns))
        params = [item_id] + [fields[name] for name in columns] + [datetime.now(timezone.utc)]
        try:
            async with self.pool.acquire() as conn:
                status = await conn.execute(
                    f'UPDATE {self.items_table} SET {assignments}, updated_at = ${len(params)} WHERE item_id = $1',
                    *params,
                )
            if status.endswith(" 0"):
                return None
            return await self.get_item(item_id)
        except Exception as e:
            logger.error(f"Failed to update inventory item {item_id}: {e}")
            raise

    async def apply_movements(self, movements: Sequence[PlannedMovement]) -> List[AppliedMovement]:
        """Apply all movements in one transaction or none of them"""
        item_ids = sorted({m.item_id for m in movements})
        now = datetime.now(timezone.utc)

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                rows = await conn.fetch(
                    f'''
                    SELECT item_id, name, stock FROM {self.items_table}
                    WHERE item_id = ANY($1::text[])
                    ORDER BY item_id
                    FOR UPDATE
                    ''',
                    item_ids,
                )
                locked = {row["item_id"]: row for row in rows}
                previous = {item_id: row["stock"] for item_id, row in locked.items()}

                running = dict(previous)
                for movement in movements:
                    if movement.item_id not in locked:
                        raise InventoryItemNotFound(movement.item_id)
                    running[movement.item_id] += movement.quantity
                    if running[movement.item_id] < 0:
                        row = locked[movement.item_id]
                        raise InsufficientStock(
                            movement.item_id, row["stock"], -movement.quantity, row["name"]
                        )

                for movement in movements:
                    stock_after = await conn.fetchval(
                        f'''
                        UPDATE {self.items_table}
                        SET stock = stock + $2, updated_at = $3
                        WHERE item_id = $1
                        RETURNING stock
                        ''',
                        movement.item_id, movement.quantity, now,
                    )
                    await self._insert_movement(
                        conn,
                        movement.item_id,
                        StockMovement(
                            action=movement.action,
                            quantity=movement.quantity,
                            stock_after=stock_after,
                            timestamp=now,
                            note=movement.note,
                            reference=movement.reference,
                            actor_id=movement.actor_id,
                        ),
                    )

                updated_rows = await conn.fetch(
                    f'SELECT * FROM {self.items_table} WHERE item_id = ANY($1::text[])',
                    item_ids,
                )
                items = await self._hydrate(conn, updated_rows)

        return [AppliedMovement(previous_stock=previous[item_id], item=items[item_id]) for item_id in item_ids]

    async def delete_item(self, item_id: str) -> bool:
        try:
            async with self.pool.acquire() as conn:
                status = await conn.execute(
                    f'DELETE FROM {self.items_table} WHERE item_id = $1', item_id
                )
            return not status.endswith(" 0")
        except Exception as e:
            logger.error(f"Failed to delete inventory item {item_id}: {e}")
            raise

    # ====================
    # Helpers
    # ====================

    async def _insert_movement(self, conn: asyncpg.Connection, item_id: str, movement: StockMovement):
        await conn.execute(
            f'''
            INSERT INTO {self.movements_table}
                (item_id, action, quantity, stock_after, note, reference, actor_id, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            ''',
            item_id, movement.action.value, movement.quantity, movement.stock_after,
            movement.note, movement.reference, movement.actor_id, movement.timestamp,
        )

    async def _hydrate(self, conn: asyncpg.Connection, rows) -> Dict[str, InventoryItem]:
        if not rows:
            return {}
        ids = [row["item_id"] for row in rows]
        movement_rows = await conn.fetch(
            f'''
            SELECT * FROM {self.movements_table}
            WHERE item_id = ANY($1::text[])
            ORDER BY movement_id
            ''',
            ids,
        )
        history: Dict[str, List[StockMovement]] = {item_id: [] for item_id in ids}
        for m in movement_rows:
            history[m["item_id"]].append(
                StockMovement(
                    action=m["action"],
                    quantity=m["quantity"],
                    stock_after=m["stock_after"],
                    timestamp=m["created_at"],
                    note=m["note"],
                    reference=m["reference"],
                    actor_id=m["actor_id"],
                )
            )
        return {
            row["item_id"]: InventoryItem(
                item_id=row["item_id"],
                seller_id=row["seller_id"],
                name=row["name"],
                sku=row["sku"],
                unit=row["unit"],
                price=row["price"],
                stock=row["stock"],
                reorder_point=row["reorder_point"],
                reorder_quantity=row["reorder_quantity"],
                is_active=row["is_active"],
                stock_history=history[row["item_id"]],
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
            for row in rows
        }
