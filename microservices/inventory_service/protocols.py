"""
Inventory Service Protocols (Interfaces)

Protocol definitions for dependency injection. NO import-time I/O.
"""

from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

from .models import AppliedMovement, InventoryItem, PlannedMovement


@runtime_checkable
class InventoryRepositoryProtocol(Protocol):
    """
    Interface for inventory persistence.

    ``apply_movements`` is the only write path for stock. It applies every
    movement or none of them and raises InsufficientStock if any item
    would go negative.
    """

    async def create_item(self, item: InventoryItem) -> InventoryItem:
        ...

    async def get_item(self, item_id: str) -> Optional[InventoryItem]:
        ...

    async def get_items(self, item_ids: Sequence[str]) -> Dict[str, InventoryItem]:
        ...

    async def list_items(self, seller_id: str) -> List[InventoryItem]:
        ...

    async def update_item(self, item_id: str, fields: Dict[str, object]) -> Optional[InventoryItem]:
        ...

    async def apply_movements(self, movements: Sequence[PlannedMovement]) -> List[AppliedMovement]:
        ...

    async def delete_item(self, item_id: str) -> bool:
        ...


@runtime_checkable
class MaterialUsageProtocol(Protocol):
    """Answers which active listings use an inventory item"""

    async def listings_using_item(self, item_id: str) -> List[str]:
        ...
