"""
Payment Service Data Models

Payment transactions are embedded in the Order aggregate; each records one
attempt to capture funds through one provider. Provider payloads form a
tagged union discriminated by ``provider`` so every adapter's inputs are
explicit.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from microservices.risk_service.models import Address


class PaymentProvider(str, Enum):
    """Supported payment providers"""
    STRIPE = "stripe"
    FAWRY = "fawry"
    VODAFONE_CASH = "vodafone_cash"
    INSTAPAY = "instapay"
    BANK_TRANSFER = "bank_transfer"
    CASH_ON_DELIVERY = "cash_on_delivery"


MANUAL_PROVIDERS = frozenset({
    PaymentProvider.VODAFONE_CASH,
    PaymentProvider.INSTAPAY,
    PaymentProvider.BANK_TRANSFER,
    PaymentProvider.CASH_ON_DELIVERY,
})


class PaymentStatus(str, Enum):
    """Order-level payment status, owned by the payment ledger"""
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"
    FAILED = "failed"


class TransactionStatus(str, Enum):
    """Status of one payment transaction"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class GatewayStatus(str, Enum):
    """Provider-agnostic outcome reported by an adapter"""
    SUCCESS = "success"
    PENDING = "pending"
    FAILED = "failed"
    REFUNDED = "refunded"


# ====================
# Provider payloads
# ====================

class StripePayload(BaseModel):
    provider: Literal["stripe"] = "stripe"
    payment_method_id: str = Field(..., min_length=1)
    cardholder_name: Optional[str] = None
    receipt_email: Optional[str] = None


class FawryPayload(BaseModel):
    provider: Literal["fawry"] = "fawry"
    customer_mobile: str = Field(..., min_length=8)
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None


class VodafoneCashPayload(BaseModel):
    provider: Literal["vodafone_cash"] = "vodafone_cash"
    wallet_number: str

    @field_validator("wallet_number")
    @classmethod
    def validate_wallet_number(cls, v):
        number = v.replace(" ", "")
        if not (number.startswith("010") or number.startswith("+2010")):
            raise ValueError("Vodafone Cash number must start with 010 or +2010")
        return number


class InstapayPayload(BaseModel):
    provider: Literal["instapay"] = "instapay"
    sender_handle: Optional[str] = None


class BankTransferPayload(BaseModel):
    provider: Literal["bank_transfer"] = "bank_transfer"
    account_name: Optional[str] = None


class CashOnDeliveryPayload(BaseModel):
    provider: Literal["cash_on_delivery"] = "cash_on_delivery"


ProviderPayload = Annotated[
    Union[
        StripePayload,
        FawryPayload,
        VodafoneCashPayload,
        InstapayPayload,
        BankTransferPayload,
        CashOnDeliveryPayload,
    ],
    Field(discriminator="provider"),
]


class PaymentIntent(BaseModel):
    """What an adapter needs to start a payment"""
    order_id: str
    transaction_id: str
    buyer_id: str
    amount: Decimal = Field(..., gt=0)
    currency: str = "USD"
    description: str
    payload: ProviderPayload

    @property
    def provider(self) -> PaymentProvider:
        return PaymentProvider(self.payload.provider)


# ====================
# Ledger records
# ====================

class RefundEntry(BaseModel):
    refund_id: str
    amount: Decimal = Field(..., gt=0)
    reason: str
    timestamp: datetime
    actor_id: str
    gateway_refund_id: Optional[str] = None


class PaymentTransaction(BaseModel):
    transaction_id: str
    amount: Decimal
    provider: PaymentProvider
    status: TransactionStatus = TransactionStatus.PENDING
    timestamp: datetime
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    refunds: List[RefundEntry] = Field(default_factory=list)
    flagged_for_review: bool = False
    risk_review_id: Optional[str] = None
    applied_gateway_events: List[str] = Field(default_factory=list)
    failure_code: Optional[str] = None
    completed_at: Optional[datetime] = None

    @property
    def refunded_amount(self) -> Decimal:
        return sum((r.amount for r in self.refunds), Decimal("0"))

    @property
    def refundable_amount(self) -> Decimal:
        return self.amount - self.refunded_amount


# ====================
# Adapter results
# ====================

class GatewayPayment(BaseModel):
    reference_number: str
    status: GatewayStatus = GatewayStatus.PENDING
    checkout_url: Optional[str] = None
    instructions: Optional[str] = None
    error_code: Optional[str] = None


class GatewayVerification(BaseModel):
    status: GatewayStatus
    permanent: bool = False
    error_code: Optional[str] = None


class GatewayEvent(BaseModel):
    """Parsed, signature-checked webhook"""
    event_id: str
    provider: PaymentProvider
    reference_number: Optional[str] = None
    transaction_id: Optional[str] = None
    status: GatewayStatus
    error_code: Optional[str] = None
    refunded_amount: Optional[Decimal] = Field(None, description="Cumulative amount refunded at the provider")


# ====================
# Request/Response Models
# ====================

class PaymentRequest(BaseModel):
    """Payment surface input"""
    order_id: str
    payment_method: PaymentProvider
    provider_payload: ProviderPayload
    billing_address: Optional[Address] = None


class ManualPaymentRequest(BaseModel):
    notes: str = Field(..., min_length=1)


class RefundRequest(BaseModel):
    """Omit amount for a full refund"""
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    reason: str = Field(..., min_length=1)


class TransactionRef(BaseModel):
    transaction_id: str
    order_id: str
    provider: PaymentProvider
    reference_number: Optional[str] = None
    status: TransactionStatus
    amount: Decimal
    checkout_url: Optional[str] = None
    instructions: Optional[str] = None
    flagged_for_review: bool = False
    duplicate: bool = False


class WebhookResult(BaseModel):
    processed: bool
    duplicate: bool = False
    transaction_id: Optional[str] = None
    status: Optional[TransactionStatus] = None


class RefundResult(BaseModel):
    order_id: str
    transaction_id: str
    refund: RefundEntry
    refunded_total: Decimal
    remaining: Decimal
    transaction_status: TransactionStatus
    payment_status: PaymentStatus
