"""
Inventory Service Event Models

Pydantic payloads for events published by the inventory ledger
"""

from datetime import datetime

from pydantic import BaseModel, Field


class StockThresholdEvent(BaseModel):
    """Payload for inventory.low_stock / inventory.out_of_stock"""
    item_id: str
    seller_id: str
    item_name: str
    stock: int
    reorder_point: int
    timestamp: datetime = Field(default_factory=datetime.utcnow)
