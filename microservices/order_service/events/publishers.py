"""
Order Service Event Publishers

Functions to publish events from order service
"""

import logging
from typing import Optional

from core.nats_client import Event, EventType, ServiceSource
from core.notifications import NotificationPriority, NotificationType, request_notification

from ..models import Order, OrderNote, OrderStatus
from .models import OrderCanceledEvent, OrderCreatedEvent, OrderNoteAddedEvent, OrderStatusChangedEvent

logger = logging.getLogger(__name__)


async def publish_order_created(event_bus, order: Order) -> bool:
    """Publish order.created event and notify the seller"""
    if not event_bus:
        logger.warning("Event bus not available, skipping order.created event")
        return False

    try:
        event_data = OrderCreatedEvent(
            order_id=order.order_id,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            listing_id=order.listing_id,
            quantity=order.quantity,
            total_amount=str(order.amount_due),
            currency=order.price.currency,
            payment_method=order.payment_method.value,
            customization_choices=order.customization_choices,
        )

        event = Event(
            event_type=EventType.ORDER_CREATED,
            source=ServiceSource.ORDER_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"Published order.created event for order {order.order_id}")

    except Exception as e:
        logger.error(f"Failed to publish order.created event: {e}")
        return False

    await request_notification(
        event_bus,
        ServiceSource.ORDER_SERVICE,
        user_id=order.seller_id,
        notification_type=NotificationType.NEW_ORDER,
        title="New Order",
        message=f"You received a new order for {order.listing_title} (x{order.quantity})",
        related_id=order.order_id,
        priority=NotificationPriority.HIGH,
    )
    return True


async def publish_order_status_changed(
    event_bus,
    order: Order,
    old_status: OrderStatus,
    note: Optional[str] = None,
    actor_id: Optional[str] = None
) -> bool:
    """Publish order.status_changed event and notify the buyer"""
    if not event_bus:
        logger.warning("Event bus not available, skipping order.status_changed event")
        return False

    try:
        event_data = OrderStatusChangedEvent(
            order_id=order.order_id,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            old_status=old_status.value,
            new_status=order.status.value,
            note=note,
            actor_id=actor_id,
        )

        event = Event(
            event_type=EventType.ORDER_STATUS_CHANGED,
            source=ServiceSource.ORDER_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(
            f"Published order.status_changed event for order {order.order_id}: "
            f"{old_status.value} -> {order.status.value}"
        )

    except Exception as e:
        logger.error(f"Failed to publish order.status_changed event: {e}")
        return False

    await request_notification(
        event_bus,
        ServiceSource.ORDER_SERVICE,
        user_id=order.buyer_id,
        notification_type=NotificationType.ORDER_STATUS_UPDATE,
        title="Order Status Updated",
        message=f"Order {order.order_id} is now {order.status.value}",
        related_id=order.order_id,
    )
    return True


async def publish_order_canceled(
    event_bus,
    order: Order,
    reason: Optional[str] = None,
    inventory_released: bool = False
) -> bool:
    """Publish order.canceled event"""
    if not event_bus:
        logger.warning("Event bus not available, skipping order.canceled event")
        return False

    try:
        event_data = OrderCanceledEvent(
            order_id=order.order_id,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            total_amount=str(order.amount_due),
            currency=order.price.currency,
            cancellation_reason=reason,
            inventory_released=inventory_released,
        )

        event = Event(
            event_type=EventType.ORDER_CANCELED,
            source=ServiceSource.ORDER_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"Published order.canceled event for order {order.order_id}")
        return True

    except Exception as e:
        logger.error(f"Failed to publish order.canceled event: {e}")
        return False


async def publish_order_note_added(event_bus, order: Order, note: OrderNote) -> bool:
    """Publish order.note_added; a public note notifies the other party"""
    if not event_bus:
        logger.warning("Event bus not available, skipping order.note_added event")
        return False

    try:
        event_data = OrderNoteAddedEvent(
            order_id=order.order_id,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            note_id=note.note_id,
            author_id=note.author_id,
            author_role=note.author_role.value,
            is_private=note.is_private,
        )

        event = Event(
            event_type=EventType.ORDER_NOTE_ADDED,
            source=ServiceSource.ORDER_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"Published order.note_added event for order {order.order_id}")

    except Exception as e:
        logger.error(f"Failed to publish order.note_added event: {e}")
        return False

    if note.is_private:
        return True

    recipient = order.seller_id if note.author_id == order.buyer_id else order.buyer_id
    await request_notification(
        event_bus,
        ServiceSource.ORDER_SERVICE,
        user_id=recipient,
        notification_type=NotificationType.ORDER_NOTE,
        title="New Order Note",
        message=f"New note added to order #{order.order_id[-6:]}",
        related_id=order.order_id,
    )
    return True
