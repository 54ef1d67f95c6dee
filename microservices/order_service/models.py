"""
Order Service Data Models

The Order aggregate with its status history, embedded payment
transactions, tracking, rating and risk review audit trail.
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal
from enum import Enum

from core.identity import Identity, Role
from microservices.inventory_service.models import ReservationLine
from microservices.payment_service.models import (
    PaymentProvider,
    PaymentStatus,
    PaymentTransaction,
    ProviderPayload,
    TransactionRef,
)
from microservices.pricing_service.models import DeliveryMethod, PriceBreakdown
from microservices.risk_service.models import Address, RiskReview


class OrderStatus(str, Enum):
    """Order status enumeration"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    MAKING = "making"
    READY = "ready"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELED = "canceled"
    DISPUTED = "disputed"


class StatusHistoryEntry(BaseModel):
    status: OrderStatus
    timestamp: datetime
    note: Optional[str] = None
    actor_id: Optional[str] = None


class TrackingUpdate(BaseModel):
    status: str
    description: Optional[str] = None
    location: Optional[str] = None
    timestamp: datetime


class TrackingInfo(BaseModel):
    carrier: str
    tracking_number: str
    tracking_url: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    updates: List[TrackingUpdate] = Field(default_factory=list)


class OrderNote(BaseModel):
    """Message on an order. Private notes are shown to their author and admins only."""
    note_id: str
    note: str
    author_id: str
    author_role: Role
    is_private: bool = False
    timestamp: datetime

    def visible_to(self, viewer: Optional[Identity]) -> bool:
        if not self.is_private:
            return True
        return viewer is not None and (viewer.is_admin or viewer.user_id == self.author_id)


class RatingAspects(BaseModel):
    quality: Optional[int] = Field(None, ge=1, le=5)
    communication: Optional[int] = Field(None, ge=1, le=5)
    delivery: Optional[int] = Field(None, ge=1, le=5)
    value_for_money: Optional[int] = Field(None, ge=1, le=5)


class Rating(BaseModel):
    value: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)
    aspects: Optional[RatingAspects] = None
    created_at: datetime


# Core Order Model

class Order(BaseModel):
    """Order aggregate. ``version`` guards concurrent saves."""
    order_id: str
    buyer_id: str
    seller_id: str
    listing_id: str
    listing_title: str
    quantity: int = Field(..., gt=0)
    customization_choices: Dict[str, str] = Field(default_factory=dict)
    materials: List[ReservationLine] = Field(default_factory=list)
    status: OrderStatus = OrderStatus.PENDING
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    price: PriceBreakdown
    payment_method: PaymentProvider
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_transactions: List[PaymentTransaction] = Field(default_factory=list)
    delivery_method: DeliveryMethod
    delivery_address: Optional[Address] = None
    tracking_info: Optional[TrackingInfo] = None
    rating: Optional[Rating] = None
    notes: List[OrderNote] = Field(default_factory=list)
    risk_reviews: List[RiskReview] = Field(default_factory=list)
    version: int = 0
    created_at: datetime
    updated_at: datetime

    @property
    def amount_due(self) -> Decimal:
        return self.price.amount_due

    def find_transaction(self, transaction_id: str) -> Optional[PaymentTransaction]:
        for txn in self.payment_transactions:
            if txn.transaction_id == transaction_id:
                return txn
        return None

    def find_by_reference(self, reference_number: str) -> Optional[PaymentTransaction]:
        for txn in self.payment_transactions:
            if txn.reference_number == reference_number:
                return txn
        return None


# Request Models

class OrderCreateRequest(BaseModel):
    """Purchase request"""
    listing_id: str = Field(..., description="Listing being purchased")
    quantity: int = Field(..., gt=0, description="Units ordered")
    customization_choices: Dict[str, str] = Field(default_factory=dict, description="Option name -> chosen value")
    delivery_method: DeliveryMethod
    delivery_address: Optional[Address] = Field(None, description="Required unless pickup")
    payment_method: PaymentProvider
    provider_payload: ProviderPayload
    billing_address: Optional[Address] = None

    @model_validator(mode="after")
    def validate_delivery_and_payment(self):
        if self.delivery_method != DeliveryMethod.PICKUP and self.delivery_address is None:
            raise ValueError("Delivery address is required unless the delivery method is pickup")
        if self.provider_payload.provider != self.payment_method.value:
            raise ValueError("provider_payload does not match payment_method")
        return self


class OrderStatusUpdateRequest(BaseModel):
    status: OrderStatus
    note: Optional[str] = Field(None, max_length=500)


class TrackingUpdateRequest(BaseModel):
    carrier: str = Field(..., min_length=1)
    tracking_number: str = Field(..., min_length=1)
    tracking_url: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    status: Optional[str] = Field(None, description="Carrier status for the tracking log")
    description: Optional[str] = None
    location: Optional[str] = None


class OrderNoteRequest(BaseModel):
    note: str = Field(..., min_length=1, max_length=2000)
    is_private: bool = False


class RatingRequest(BaseModel):
    value: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)
    aspects: Optional[RatingAspects] = None


# Response Models

class OrderView(BaseModel):
    """Order as shown to buyers and sellers (no risk data, rounded prices)"""
    order_id: str
    buyer_id: str
    seller_id: str
    listing_id: str
    listing_title: str
    quantity: int
    customization_choices: Dict[str, str]
    status: OrderStatus
    status_history: List[StatusHistoryEntry]
    price: Dict[str, Any]
    payment_method: PaymentProvider
    payment_status: PaymentStatus
    payment_transactions: List[Dict[str, Any]]
    delivery_method: DeliveryMethod
    delivery_address: Optional[Address] = None
    tracking_info: Optional[TrackingInfo] = None
    rating: Optional[Rating] = None
    notes: List[OrderNote] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: Order, viewer: Optional[Identity] = None) -> "OrderView":
        transactions = [
            txn.model_dump(
                mode="json",
                exclude={"flagged_for_review", "risk_review_id", "applied_gateway_events"},
            )
            for txn in order.payment_transactions
        ]
        return cls(
            **order.model_dump(
                exclude={"price", "payment_transactions", "risk_reviews", "materials", "notes", "version"}
            ),
            price=order.price.display(),
            payment_transactions=transactions,
            notes=[note for note in order.notes if note.visible_to(viewer)],
        )


class OrderPlacement(BaseModel):
    """Outcome of placing an order. A gateway failure leaves the order
    pending with no transaction; the buyer retries through the payment
    surface."""
    order: Order
    payment: Optional[TransactionRef] = None
    payment_error_code: Optional[str] = None
    payment_error_message: Optional[str] = None


class OrderResponse(BaseModel):
    """Order response model"""
    success: bool
    order: Optional[OrderView] = None
    payment: Optional[TransactionRef] = None
    message: str
    error_code: Optional[str] = None


class OrderListResponse(BaseModel):
    orders: List[OrderView]
    total_count: int
    limit: int
    offset: int


class OrderServiceStatus(BaseModel):
    service: str = "order_service"
    status: str = "operational"
    version: str = "1.0.0"
    database_connected: bool
    event_bus_connected: bool
    timestamp: datetime
