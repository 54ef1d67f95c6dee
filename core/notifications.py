"""
Notification requests

The notification service owns delivery and formatting. The settlement
engine only publishes ``notification.requested`` events and never waits on
the outcome: a failed publish is logged and dropped.
"""

import logging
from enum import Enum
from typing import Optional

from core.nats_client import Event, EventType, ServiceSource

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    NEW_ORDER = "new_order"
    ORDER_STATUS_UPDATE = "order_status_update"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_CONFIRMED = "payment_confirmed"
    REFUND_PROCESSED = "refund_processed"
    ORDER_NOTE = "order_note"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


class NotificationPriority(str, Enum):
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


async def request_notification(
    event_bus,
    source: ServiceSource,
    user_id: str,
    notification_type: NotificationType,
    title: str,
    message: str,
    related_id: Optional[str] = None,
    priority: NotificationPriority = NotificationPriority.NORMAL,
) -> bool:
    """Publish a notification.requested event"""
    if not event_bus:
        logger.debug(f"Event bus not available, skipping {notification_type.value} notification")
        return False

    try:
        event = Event(
            event_type=EventType.NOTIFICATION_REQUESTED,
            source=source,
            data={
                "user_id": user_id,
                "type": notification_type.value,
                "title": title,
                "message": message,
                "related_id": related_id,
                "priority": priority.value,
            },
        )
        await event_bus.publish_event(event)
        logger.info(f"Requested {notification_type.value} notification for user {user_id}")
        return True

    except Exception as e:
        logger.error(f"Failed to request {notification_type.value} notification: {e}")
        return False


__all__ = ["NotificationType", "NotificationPriority", "request_notification"]
