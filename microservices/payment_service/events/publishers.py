"""
Payment Service Event Publishers

Functions to publish events from the payment ledger
"""

import logging
from typing import Optional

from core.nats_client import Event, EventType, ServiceSource
from core.notifications import NotificationPriority, NotificationType, request_notification

from ..models import PaymentTransaction, RefundResult
from .models import (
    PaymentBlockedEvent,
    PaymentCompletedEvent,
    PaymentFailedEvent,
    PaymentInitiatedEvent,
    PaymentRefundedEvent,
)

logger = logging.getLogger(__name__)


async def _publish(event_bus, event_type: EventType, source: ServiceSource, data) -> bool:
    if not event_bus:
        logger.warning(f"Event bus not available, skipping {event_type.value} event")
        return False
    try:
        event = Event(
            event_type=event_type,
            source=source,
            data=data.model_dump(mode='json')
        )
        await event_bus.publish_event(event)
        logger.info(f"Published {event_type.value} event for order {data.order_id}")
        return True
    except Exception as e:
        logger.error(f"Failed to publish {event_type.value} event: {e}")
        return False


async def publish_payment_initiated(event_bus, order, txn: PaymentTransaction) -> bool:
    """Publish payment.initiated event"""
    return await _publish(
        event_bus,
        EventType.PAYMENT_INITIATED,
        ServiceSource.PAYMENT_SERVICE,
        PaymentInitiatedEvent(
            order_id=order.order_id,
            transaction_id=txn.transaction_id,
            buyer_id=order.buyer_id,
            provider=txn.provider.value,
            amount=str(txn.amount),
            currency=order.price.currency,
            reference_number=txn.reference_number,
            flagged_for_review=txn.flagged_for_review,
        ),
    )


async def publish_payment_completed(event_bus, order, txn: PaymentTransaction, settled_manually: bool = False) -> bool:
    """Publish payment.completed and tell both parties"""
    published = await _publish(
        event_bus,
        EventType.PAYMENT_COMPLETED,
        ServiceSource.PAYMENT_SERVICE,
        PaymentCompletedEvent(
            order_id=order.order_id,
            transaction_id=txn.transaction_id,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            provider=txn.provider.value,
            amount=str(txn.amount),
            currency=order.price.currency,
            reference_number=txn.reference_number,
            settled_manually=settled_manually,
        ),
    )
    if not published:
        return False

    await request_notification(
        event_bus,
        ServiceSource.PAYMENT_SERVICE,
        user_id=order.seller_id,
        notification_type=NotificationType.PAYMENT_RECEIVED,
        title="Payment Received",
        message=f"Payment of {txn.amount} {order.price.currency} received for order {order.order_id}",
        related_id=order.order_id,
        priority=NotificationPriority.HIGH,
    )
    await request_notification(
        event_bus,
        ServiceSource.PAYMENT_SERVICE,
        user_id=order.buyer_id,
        notification_type=NotificationType.PAYMENT_CONFIRMED,
        title="Payment Confirmed",
        message=f"Your payment for order {order.order_id} has been confirmed",
        related_id=order.order_id,
    )
    return True


async def publish_payment_failed(event_bus, order, txn: PaymentTransaction) -> bool:
    """Publish payment.failed event"""
    return await _publish(
        event_bus,
        EventType.PAYMENT_FAILED,
        ServiceSource.PAYMENT_SERVICE,
        PaymentFailedEvent(
            order_id=order.order_id,
            transaction_id=txn.transaction_id,
            buyer_id=order.buyer_id,
            provider=txn.provider.value,
            error_code=txn.failure_code,
        ),
    )


async def publish_payment_refunded(event_bus, order, result: RefundResult) -> bool:
    """Publish payment.refunded and notify the buyer"""
    published = await _publish(
        event_bus,
        EventType.PAYMENT_REFUNDED,
        ServiceSource.PAYMENT_SERVICE,
        PaymentRefundedEvent(
            order_id=order.order_id,
            transaction_id=result.transaction_id,
            buyer_id=order.buyer_id,
            refund_id=result.refund.refund_id,
            refund_amount=str(result.refund.amount),
            refunded_total=str(result.refunded_total),
            payment_status=result.payment_status.value,
            reason=result.refund.reason,
        ),
    )
    if not published:
        return False

    await request_notification(
        event_bus,
        ServiceSource.PAYMENT_SERVICE,
        user_id=order.buyer_id,
        notification_type=NotificationType.REFUND_PROCESSED,
        title="Refund Processed",
        message=f"A refund of {result.refund.amount} {order.price.currency} was issued for order {order.order_id}",
        related_id=order.order_id,
    )
    return True


async def publish_payment_blocked(
    event_bus,
    order_id: str,
    buyer_id: str,
    review_id: str,
    provider: str
) -> bool:
    """Publish risk.payment_blocked event (review id only, no score)"""
    return await _publish(
        event_bus,
        EventType.RISK_PAYMENT_BLOCKED,
        ServiceSource.RISK_SERVICE,
        PaymentBlockedEvent(
            order_id=order_id,
            buyer_id=buyer_id,
            review_id=review_id,
            provider=provider,
        ),
    )
