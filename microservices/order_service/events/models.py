"""
Order Service Event Models

Pydantic models for events published by order service
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict
from datetime import datetime, timezone


def _now() -> datetime:
    return datetime.now(timezone.utc)


class OrderCreatedEvent(BaseModel):
    """Event published when order is created"""
    order_id: str
    buyer_id: str
    seller_id: str
    listing_id: str
    quantity: int
    total_amount: str
    currency: str = "USD"
    payment_method: str
    customization_choices: Dict[str, str] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_now)


class OrderStatusChangedEvent(BaseModel):
    """Event published on every accepted status transition"""
    order_id: str
    buyer_id: str
    seller_id: str
    old_status: str
    new_status: str
    note: Optional[str] = None
    actor_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=_now)


class OrderCanceledEvent(BaseModel):
    """Event published when order is canceled"""
    order_id: str
    buyer_id: str
    seller_id: str
    total_amount: str
    currency: str = "USD"
    cancellation_reason: Optional[str] = None
    inventory_released: bool = False
    timestamp: datetime = Field(default_factory=_now)


class OrderNoteAddedEvent(BaseModel):
    """Event published when a note is added to an order. Carries no note text."""
    order_id: str
    buyer_id: str
    seller_id: str
    note_id: str
    author_id: str
    author_role: str
    is_private: bool = False
    timestamp: datetime = Field(default_factory=_now)
