"""
Inventory Ledger

Owns per-item stock and its movement history. Every stock change funnels
through ``apply_movements`` on the repository while the ledger holds the
per-item locks, so concurrent orders serialize on the items they touch and
never on the whole ledger.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from core.errors import (
    InsufficientStock,
    InventoryItemNotFound,
    ItemInUse,
    ValidationError,
)
from core.identity import Identity, Role, require_owner, require_role
from core.keyed_lock import KeyedLock

from .events.publishers import publish_threshold_crossing
from .models import (
    AdjustmentContext,
    AdjustmentResult,
    AppliedMovement,
    InventoryItem,
    InventoryItemCreateRequest,
    InventoryItemUpdateRequest,
    PlannedMovement,
    ReservationLine,
    ReservationResult,
    ReservedLine,
    StockAction,
    StockMovement,
    StockSignal,
    ThresholdCrossing,
)
from .protocols import InventoryRepositoryProtocol, MaterialUsageProtocol

logger = logging.getLogger(__name__)


def detect_crossings(applied: AppliedMovement) -> List[ThresholdCrossing]:
    """Edge-triggered threshold signals for one applied movement"""
    item = applied.item
    previous, current = applied.previous_stock, item.stock
    crossings = []

    if previous > item.reorder_point >= current:
        crossings.append(StockSignal.LOW_STOCK)
    if previous > 0 and current == 0:
        crossings.append(StockSignal.OUT_OF_STOCK)

    return [
        ThresholdCrossing(
            item_id=item.item_id,
            seller_id=item.seller_id,
            item_name=item.name,
            signal=signal,
            stock=current,
            reorder_point=item.reorder_point,
        )
        for signal in crossings
    ]


def _merge_lines(lines: Iterable[ReservationLine], order_quantity: int) -> Dict[str, int]:
    required: Dict[str, int] = {}
    for line in lines:
        required[line.inventory_item_id] = (
            required.get(line.inventory_item_id, 0) + line.quantity_per_unit * order_quantity
        )
    return required


class InventoryLedger:
    """
    Atomic stock ledger

    Dependencies are injected for testability:
    - repository: InventoryRepositoryProtocol
    - material_usage: MaterialUsageProtocol, consulted before deletes
    - event_bus: publishes threshold crossings (optional)
    """

    def __init__(
        self,
        repository: InventoryRepositoryProtocol,
        material_usage: Optional[MaterialUsageProtocol] = None,
        event_bus=None,
        locks: Optional[KeyedLock] = None,
    ):
        self.repository = repository
        self.material_usage = material_usage
        self.event_bus = event_bus
        self._locks = locks or KeyedLock()

    # ====================
    # Item management
    # ====================

    async def create_item(self, identity: Identity, request: InventoryItemCreateRequest) -> InventoryItem:
        require_role(identity, Role.SELLER)
        now = datetime.now(timezone.utc)
        item = InventoryItem(
            item_id=f"inv_{uuid.uuid4().hex[:12]}",
            seller_id=identity.user_id,
            name=request.name,
            sku=request.sku,
            unit=request.unit,
            price=request.price,
            stock=request.stock,
            reorder_point=request.reorder_point,
            reorder_quantity=request.reorder_quantity,
            stock_history=[
                StockMovement(
                    action=StockAction.INITIAL,
                    quantity=request.stock,
                    stock_after=request.stock,
                    timestamp=now,
                    note="Initial stock",
                    actor_id=identity.user_id,
                )
            ],
            created_at=now,
            updated_at=now,
        )
        created = await self.repository.create_item(item)
        logger.info(f"Inventory item {created.item_id} created for seller {identity.user_id}")
        return created

    async def get_item(self, item_id: str) -> InventoryItem:
        item = await self.repository.get_item(item_id)
        if not item:
            raise InventoryItemNotFound(item_id)
        return item

    async def get_owned_item(self, identity: Identity, item_id: str) -> InventoryItem:
        require_role(identity, Role.SELLER)
        item = await self.get_item(item_id)
        require_owner(identity, item.seller_id, "inventory item")
        return item

    async def list_items(self, identity: Identity) -> List[InventoryItem]:
        require_role(identity, Role.SELLER)
        return await self.repository.list_items(identity.user_id)

    async def low_stock_items(self, identity: Identity) -> List[InventoryItem]:
        items = await self.list_items(identity)
        return [item for item in items if item.is_active and item.is_low]

    async def update_item(
        self, identity: Identity, item_id: str, request: InventoryItemUpdateRequest
    ) -> InventoryItem:
        await self.get_owned_item(identity, item_id)
        fields = request.model_dump(exclude_none=True)
        if not fields:
            raise ValidationError("No fields to update")
        async with self._locks.hold(item_id):
            updated = await self.repository.update_item(item_id, fields)
        if not updated:
            raise InventoryItemNotFound(item_id)
        return updated

    async def delete_item(self, identity: Identity, item_id: str) -> bool:
        """Delete an item unless an active listing's bill of materials uses it"""
        await self.get_owned_item(identity, item_id)
        async with self._locks.hold(item_id):
            if self.material_usage:
                listing_ids = await self.material_usage.listings_using_item(item_id)
                if listing_ids:
                    logger.info(f"Refused delete of item {item_id}: used by {len(listing_ids)} listings")
                    raise ItemInUse(item_id, listing_ids)
            deleted = await self.repository.delete_item(item_id)
        logger.info(f"Inventory item {item_id} deleted by {identity.user_id}")
        return deleted

    # ====================
    # Stock mutation
    # ====================

    async def adjust(
        self,
        item_id: str,
        signed_quantity: int,
        action: StockAction,
        context: AdjustmentContext,
    ) -> AdjustmentResult:
        """
        Apply one manual adjustment.

        The sign must agree with the action: ``add`` takes a positive
        quantity and ``remove`` a negative one.
        """
        if action == StockAction.INITIAL:
            raise ValidationError("Initial entries are only written when an item is created")
        if signed_quantity == 0:
            raise ValidationError("Adjustment quantity must not be zero")
        if (action == StockAction.ADD) != (signed_quantity > 0):
            raise ValidationError(
                f"Quantity {signed_quantity} does not match action '{action.value}'",
                {"action": action.value, "quantity": signed_quantity},
            )

        await self.get_owned_item(context.identity, item_id)

        movement = PlannedMovement(
            item_id=item_id,
            action=action,
            quantity=signed_quantity,
            note=context.note,
            reference=context.reference,
            actor_id=context.identity.user_id,
        )
        async with self._locks.hold(item_id):
            item = await self.get_item(item_id)
            if item.stock + signed_quantity < 0:
                raise InsufficientStock(item_id, item.stock, -signed_quantity, item.name)
            applied = await self._apply([movement])

        signals = await self._signal(applied)
        return AdjustmentResult(item=applied[0].item, signals=signals)

    async def reserve_for_order(
        self,
        lines: Sequence[ReservationLine],
        order_quantity: int,
        order_ref: str,
        actor_id: Optional[str] = None,
    ) -> ReservationResult:
        """
        Remove ``quantity_per_unit * order_quantity`` of every line as one unit.

        If any line would drive its stock negative, nothing is applied and
        InsufficientStock names the first short item.
        """
        required = _merge_lines(lines, order_quantity)
        now = datetime.now(timezone.utc)
        if not required:
            return ReservationResult(order_ref=order_ref, reserved_at=now)

        async with self._locks.hold_many(required.keys()):
            items = await self.repository.get_items(list(required))
            for item_id, quantity in sorted(required.items()):
                item = items.get(item_id)
                if item is None:
                    raise InventoryItemNotFound(item_id)
                if item.stock < quantity:
                    logger.info(
                        f"Reservation for {order_ref} rejected: item {item_id} has {item.stock}, needs {quantity}"
                    )
                    raise InsufficientStock(item_id, item.stock, quantity, item.name)

            applied = await self._apply([
                PlannedMovement(
                    item_id=item_id,
                    action=StockAction.REMOVE,
                    quantity=-quantity,
                    note=f"Reserved for order {order_ref}",
                    reference=order_ref,
                    actor_id=actor_id,
                )
                for item_id, quantity in sorted(required.items())
            ])

        signals = await self._signal(applied)
        logger.info(f"Reserved {len(applied)} materials for order {order_ref}")
        return ReservationResult(
            order_ref=order_ref,
            lines=[
                ReservedLine(item_id=a.item.item_id, quantity=required[a.item.item_id], stock_after=a.item.stock)
                for a in applied
            ],
            signals=signals,
            reserved_at=now,
        )

    async def release_for_order(
        self,
        lines: Sequence[ReservationLine],
        order_quantity: int,
        order_ref: str,
        actor_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> List[InventoryItem]:
        """Return reserved materials to stock (reverse of reserve_for_order)"""
        required = _merge_lines(lines, order_quantity)
        if not required:
            return []

        async with self._locks.hold_many(required.keys()):
            applied = await self._apply([
                PlannedMovement(
                    item_id=item_id,
                    action=StockAction.ADD,
                    quantity=quantity,
                    note=note or f"Released from order {order_ref}",
                    reference=order_ref,
                    actor_id=actor_id,
                )
                for item_id, quantity in sorted(required.items())
            ])

        logger.info(f"Released {len(applied)} materials for order {order_ref}")
        return [a.item for a in applied]

    async def material_prices(self, item_ids: Sequence[str]) -> Dict[str, Decimal]:
        """Point-in-time unit prices for pricing (not stock)"""
        if not item_ids:
            return {}
        items = await self.repository.get_items(list(item_ids))
        return {item_id: item.price for item_id, item in items.items()}

    # ====================
    # Internals
    # ====================

    async def _apply(self, movements: List[PlannedMovement]) -> List[AppliedMovement]:
        try:
            return await self.repository.apply_movements(movements)
        except InsufficientStock:
            raise
        except Exception as e:
            logger.error(f"Failed to apply {len(movements)} stock movements: {e}")
            raise

    async def _signal(self, applied: List[AppliedMovement]) -> List[ThresholdCrossing]:
        signals = [c for a in applied for c in detect_crossings(a)]
        for crossing in signals:
            await publish_threshold_crossing(self.event_bus, crossing)
        return signals
