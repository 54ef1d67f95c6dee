"""
In-memory repositories for component testing

Both mocks store deep copies so callers never share state with the store,
and yield to the event loop inside every call the way a database round
trip would, which lets concurrency tests interleave.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from core.errors import ConcurrentModification, ConflictError, InsufficientStock, InventoryItemNotFound
from microservices.inventory_service.models import (
    AppliedMovement,
    InventoryItem,
    PlannedMovement,
    StockMovement,
)
from microservices.order_service.models import Order, OrderStatus


class MockInventoryRepository:
    """Mock implementation of InventoryRepositoryProtocol"""

    def __init__(self):
        self.items: Dict[str, InventoryItem] = {}
        self.calls: List[Dict[str, Any]] = []
        self._fail_next: Optional[Exception] = None

    def _record_call(self, method: str, **kwargs):
        """Record method call for test verification"""
        self.calls.append({"method": method, "kwargs": kwargs})

    def fail_next_apply(self, error: Exception):
        """Raise ``error`` from the next apply_movements call"""
        self._fail_next = error

    async def create_item(self, item: InventoryItem) -> InventoryItem:
        self._record_call("create_item", item_id=item.item_id)
        await asyncio.sleep(0)
        self.items[item.item_id] = item.model_copy(deep=True)
        return item.model_copy(deep=True)

    async def get_item(self, item_id: str) -> Optional[InventoryItem]:
        self._record_call("get_item", item_id=item_id)
        await asyncio.sleep(0)
        item = self.items.get(item_id)
        return item.model_copy(deep=True) if item else None

    async def get_items(self, item_ids: Sequence[str]) -> Dict[str, InventoryItem]:
        self._record_call("get_items", item_ids=list(item_ids))
        await asyncio.sleep(0)
        return {i: self.items[i].model_copy(deep=True) for i in item_ids if i in self.items}

    async def list_items(self, seller_id: str) -> List[InventoryItem]:
        self._record_call("list_items", seller_id=seller_id)
        return [i.model_copy(deep=True) for i in self.items.values() if i.seller_id == seller_id]

    async def update_item(self, item_id: str, fields: Dict[str, object]) -> Optional[InventoryItem]:
        self._record_call("update_item", item_id=item_id, fields=fields)
        item = self.items.get(item_id)
        if item is None:
            return None
        updated = item.model_copy(update={**fields, "updated_at": datetime.now(timezone.utc)}, deep=True)
        self.items[item_id] = updated
        return updated.model_copy(deep=True)

    async def apply_movements(self, movements: Sequence[PlannedMovement]) -> List[AppliedMovement]:
        """All movements or none; no item may go below zero"""
        self._record_call("apply_movements", movements=list(movements))
        await asyncio.sleep(0)
        if self._fail_next:
            error, self._fail_next = self._fail_next, None
            raise error

        item_ids = sorted({m.item_id for m in movements})
        for item_id in item_ids:
            if item_id not in self.items:
                raise InventoryItemNotFound(item_id)

        previous = {item_id: self.items[item_id].stock for item_id in item_ids}
        running = dict(previous)
        for movement in movements:
            running[movement.item_id] += movement.quantity
            if running[movement.item_id] < 0:
                item = self.items[movement.item_id]
                raise InsufficientStock(movement.item_id, item.stock, -movement.quantity, item.name)

        now = datetime.now(timezone.utc)
        for movement in movements:
            item = self.items[movement.item_id]
            item.stock += movement.quantity
            item.updated_at = now
            item.stock_history.append(
                StockMovement(
                    action=movement.action,
                    quantity=movement.quantity,
                    stock_after=item.stock,
                    timestamp=now,
                    note=movement.note,
                    reference=movement.reference,
                    actor_id=movement.actor_id,
                )
            )

        return [
            AppliedMovement(previous_stock=previous[item_id], item=self.items[item_id].model_copy(deep=True))
            for item_id in item_ids
        ]

    async def delete_item(self, item_id: str) -> bool:
        self._record_call("delete_item", item_id=item_id)
        return self.items.pop(item_id, None) is not None


class MockOrderRepository:
    """Mock implementation of OrderRepositoryProtocol with version checks"""

    def __init__(self):
        self.orders: Dict[str, Order] = {}
        self.calls: List[Dict[str, Any]] = []
        self._insert_error: Optional[Exception] = None
        self._save_error: Optional[Exception] = None

    def _record_call(self, method: str, **kwargs):
        """Record method call for test verification"""
        self.calls.append({"method": method, "kwargs": kwargs})

    def fail_next_insert(self, error: Exception):
        self._insert_error = error

    def fail_next_save(self, error: Exception):
        self._save_error = error

    def put(self, order: Order) -> Order:
        """Seed an order directly"""
        self.orders[order.order_id] = order.model_copy(deep=True)
        return order

    async def insert_order(self, order: Order) -> Order:
        self._record_call("insert_order", order_id=order.order_id)
        await asyncio.sleep(0)
        if self._insert_error:
            error, self._insert_error = self._insert_error, None
            raise error
        if order.order_id in self.orders:
            raise ConflictError(f"Order already exists: {order.order_id}")
        self.orders[order.order_id] = order.model_copy(deep=True)
        return order.model_copy(deep=True)

    async def get_order(self, order_id: str) -> Optional[Order]:
        self._record_call("get_order", order_id=order_id)
        await asyncio.sleep(0)
        order = self.orders.get(order_id)
        return order.model_copy(deep=True) if order else None

    async def save_order(self, order: Order) -> Order:
        self._record_call("save_order", order_id=order.order_id, version=order.version)
        await asyncio.sleep(0)
        if self._save_error:
            error, self._save_error = self._save_error, None
            raise error
        stored = self.orders.get(order.order_id)
        if stored is None or stored.version != order.version:
            raise ConcurrentModification(
                f"Order {order.order_id} was modified concurrently",
                {"order_id": order.order_id, "expected_version": order.version},
            )
        saved = order.model_copy(update={"version": order.version + 1}, deep=True)
        self.orders[order.order_id] = saved
        return saved.model_copy(deep=True)

    def _matching(self, buyer_id=None, seller_id=None, status=None) -> List[Order]:
        orders = [
            o for o in self.orders.values()
            if (buyer_id is None or o.buyer_id == buyer_id)
            and (seller_id is None or o.seller_id == seller_id)
            and (status is None or o.status == status)
        ]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    async def list_orders(
        self,
        buyer_id: Optional[str] = None,
        seller_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Order]:
        self._record_call("list_orders", buyer_id=buyer_id, seller_id=seller_id, status=status)
        page = self._matching(buyer_id, seller_id, status)[offset:offset + limit]
        return [o.model_copy(deep=True) for o in page]

    async def count_orders(
        self,
        buyer_id: Optional[str] = None,
        seller_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
    ) -> int:
        return len(self._matching(buyer_id, seller_id, status))

    async def find_by_transaction(self, transaction_id: str) -> Optional[Order]:
        self._record_call("find_by_transaction", transaction_id=transaction_id)
        for order in self.orders.values():
            if order.find_transaction(transaction_id):
                return order.model_copy(deep=True)
        return None

    async def find_by_payment_reference(self, reference_number: str) -> Optional[Order]:
        self._record_call("find_by_payment_reference", reference_number=reference_number)
        for order in self.orders.values():
            if order.find_by_reference(reference_number):
                return order.model_copy(deep=True)
        return None
