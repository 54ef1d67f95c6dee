"""
Payment Service Event Models

Pydantic models for events published by the payment ledger. Risk details
stay in the audit trail; blocked-attempt events carry the review id only.
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, timezone


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PaymentInitiatedEvent(BaseModel):
    order_id: str
    transaction_id: str
    buyer_id: str
    provider: str
    amount: str
    currency: str = "USD"
    reference_number: Optional[str] = None
    flagged_for_review: bool = False
    timestamp: datetime = Field(default_factory=_now)


class PaymentCompletedEvent(BaseModel):
    order_id: str
    transaction_id: str
    buyer_id: str
    seller_id: str
    provider: str
    amount: str
    currency: str = "USD"
    reference_number: Optional[str] = None
    settled_manually: bool = False
    timestamp: datetime = Field(default_factory=_now)


class PaymentFailedEvent(BaseModel):
    order_id: str
    transaction_id: str
    buyer_id: str
    provider: str
    error_code: Optional[str] = None
    timestamp: datetime = Field(default_factory=_now)


class PaymentRefundedEvent(BaseModel):
    order_id: str
    transaction_id: str
    buyer_id: str
    refund_id: str
    refund_amount: str
    refunded_total: str
    payment_status: str
    reason: Optional[str] = None
    timestamp: datetime = Field(default_factory=_now)


class PaymentBlockedEvent(BaseModel):
    order_id: str
    buyer_id: str
    review_id: str
    provider: str
    timestamp: datetime = Field(default_factory=_now)
