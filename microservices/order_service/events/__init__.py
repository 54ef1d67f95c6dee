"""
Order Service Events Module

Exports all event-related functionality for order service
"""

from .models import (
    OrderCreatedEvent,
    OrderStatusChangedEvent,
    OrderCanceledEvent,
    OrderNoteAddedEvent,
)

from .publishers import (
    publish_order_created,
    publish_order_status_changed,
    publish_order_canceled,
    publish_order_note_added,
)

__all__ = [
    # Event Models
    "OrderCreatedEvent",
    "OrderStatusChangedEvent",
    "OrderCanceledEvent",
    "OrderNoteAddedEvent",
    # Publishers
    "publish_order_created",
    "publish_order_status_changed",
    "publish_order_canceled",
    "publish_order_note_added",
]
