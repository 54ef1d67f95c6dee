"""
Inventory Service Data Models

Per-item stock counts with an append-only movement history. For every item
``stock`` equals the signed sum of its history (the ``initial`` entry
carries the opening stock).
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from core.identity import Identity


class StockAction(str, Enum):
    """Stock movement kind"""
    INITIAL = "initial"
    ADD = "add"
    REMOVE = "remove"


class StockSignal(str, Enum):
    """Threshold crossing reported after an adjustment"""
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


class StockMovement(BaseModel):
    """One history entry. ``quantity`` is signed: removals are negative."""
    action: StockAction
    quantity: int
    stock_after: int = Field(..., ge=0)
    timestamp: datetime
    note: Optional[str] = None
    reference: Optional[str] = None
    actor_id: Optional[str] = None


class InventoryItem(BaseModel):
    """Seller-owned material tracked by the ledger"""
    item_id: str
    seller_id: str
    name: str
    sku: Optional[str] = None
    unit: str = "piece"
    price: Decimal = Field(default=Decimal("0"), ge=0)
    stock: int = Field(..., ge=0)
    reorder_point: int = Field(default=5, ge=0)
    reorder_quantity: int = Field(default=0, ge=0)
    is_active: bool = True
    stock_history: List[StockMovement] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def replayed_stock(self) -> int:
        return sum(m.quantity for m in self.stock_history)

    @property
    def is_low(self) -> bool:
        return self.stock <= self.reorder_point


class PlannedMovement(BaseModel):
    """A movement the ledger asks the repository to apply"""
    item_id: str
    action: StockAction
    quantity: int
    note: Optional[str] = None
    reference: Optional[str] = None
    actor_id: Optional[str] = None


class AppliedMovement(BaseModel):
    """Repository result: stock before the movement and the updated item"""
    previous_stock: int
    item: InventoryItem


class ThresholdCrossing(BaseModel):
    item_id: str
    seller_id: str
    item_name: str
    signal: StockSignal
    stock: int
    reorder_point: int


class AdjustmentContext(BaseModel):
    """Who is adjusting and why"""
    identity: Identity
    note: Optional[str] = None
    reference: Optional[str] = None


class AdjustmentResult(BaseModel):
    item: InventoryItem
    signals: List[ThresholdCrossing] = Field(default_factory=list)


class ReservationLine(BaseModel):
    """A bill-of-materials line to reserve for an order"""
    inventory_item_id: str
    quantity_per_unit: int = Field(..., gt=0)


class ReservedLine(BaseModel):
    item_id: str
    quantity: int
    stock_after: int


class ReservationResult(BaseModel):
    order_ref: str
    lines: List[ReservedLine] = Field(default_factory=list)
    signals: List[ThresholdCrossing] = Field(default_factory=list)
    reserved_at: datetime


# ====================
# Request Models
# ====================

class InventoryItemCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    sku: Optional[str] = None
    unit: str = "piece"
    price: Decimal = Field(default=Decimal("0"), ge=0)
    stock: int = Field(default=0, ge=0)
    reorder_point: int = Field(default=5, ge=0)
    reorder_quantity: int = Field(default=0, ge=0)


class InventoryItemUpdateRequest(BaseModel):
    """Non-stock fields; stock only changes through adjust"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    sku: Optional[str] = None
    unit: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    reorder_point: Optional[int] = Field(None, ge=0)
    reorder_quantity: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class StockAdjustRequest(BaseModel):
    action: StockAction
    quantity: int = Field(..., description="Signed quantity: positive to add, negative to remove")
    note: Optional[str] = None
