"""
Payment Service Events Module

Exports all event-related functionality for payment service
"""

from .models import (
    PaymentInitiatedEvent,
    PaymentCompletedEvent,
    PaymentFailedEvent,
    PaymentRefundedEvent,
    PaymentBlockedEvent,
)

from .publishers import (
    publish_payment_initiated,
    publish_payment_completed,
    publish_payment_failed,
    publish_payment_refunded,
    publish_payment_blocked,
)

__all__ = [
    # Event Models
    "PaymentInitiatedEvent",
    "PaymentCompletedEvent",
    "PaymentFailedEvent",
    "PaymentRefundedEvent",
    "PaymentBlockedEvent",
    # Publishers
    "publish_payment_initiated",
    "publish_payment_completed",
    "publish_payment_failed",
    "publish_payment_refunded",
    "publish_payment_blocked",
]
