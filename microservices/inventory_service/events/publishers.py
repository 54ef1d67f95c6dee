"""
Inventory Service Event Publishers

Functions to publish threshold-crossing events from the inventory ledger.
Each crossing produces a domain event and a seller notification request.
"""

import logging

from core.nats_client import Event, EventType, ServiceSource
from core.notifications import NotificationPriority, NotificationType, request_notification

from ..models import StockSignal, ThresholdCrossing
from .models import StockThresholdEvent

logger = logging.getLogger(__name__)


async def publish_threshold_crossing(event_bus, crossing: ThresholdCrossing) -> bool:
    """Publish inventory.low_stock or inventory.out_of_stock"""
    if not event_bus:
        logger.warning(f"Event bus not available, skipping {crossing.signal.value} event")
        return False

    out_of_stock = crossing.signal == StockSignal.OUT_OF_STOCK
    try:
        event_data = StockThresholdEvent(
            item_id=crossing.item_id,
            seller_id=crossing.seller_id,
            item_name=crossing.item_name,
            stock=crossing.stock,
            reorder_point=crossing.reorder_point,
        )
        event = Event(
            event_type=EventType.INVENTORY_OUT_OF_STOCK if out_of_stock else EventType.INVENTORY_LOW_STOCK,
            source=ServiceSource.INVENTORY_SERVICE,
            data=event_data.model_dump(mode='json'),
        )
        await event_bus.publish_event(event)
        logger.info(f"Published {event.type} event for item {crossing.item_id}")
    except Exception as e:
        logger.error(f"Failed to publish {crossing.signal.value} event: {e}")
        return False

    if out_of_stock:
        await request_notification(
            event_bus,
            ServiceSource.INVENTORY_SERVICE,
            user_id=crossing.seller_id,
            notification_type=NotificationType.OUT_OF_STOCK,
            title="Out of Stock Alert",
            message=f"{crossing.item_name} is out of stock",
            related_id=crossing.item_id,
            priority=NotificationPriority.URGENT,
        )
    else:
        await request_notification(
            event_bus,
            ServiceSource.INVENTORY_SERVICE,
            user_id=crossing.seller_id,
            notification_type=NotificationType.LOW_STOCK,
            title="Low Stock Alert",
            message=f"{crossing.item_name} is running low ({crossing.stock} remaining)",
            related_id=crossing.item_id,
            priority=NotificationPriority.HIGH,
        )
    return True
