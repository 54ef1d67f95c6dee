"""
Inventory Service Factory

Builds the ledger with its real asyncpg repository.
"""

from typing import Optional

from core.keyed_lock import KeyedLock

from .inventory_ledger import InventoryLedger
from .protocols import MaterialUsageProtocol


def create_inventory_ledger(
    pool,
    material_usage: Optional[MaterialUsageProtocol] = None,
    event_bus=None,
    locks: Optional[KeyedLock] = None,
) -> InventoryLedger:
    """
    Create InventoryLedger with its asyncpg repository.

    Args:
        pool: asyncpg pool
        material_usage: listing catalog client, consulted before deletes
        event_bus: optional event bus for threshold signals
        locks: optional shared per-item lock registry
    """
    from .inventory_repository import InventoryRepository

    return InventoryLedger(
        repository=InventoryRepository(pool),
        material_usage=material_usage,
        event_bus=event_bus,
        locks=locks,
    )
