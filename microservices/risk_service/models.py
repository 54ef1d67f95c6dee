"""
Risk Service Data Models

Inputs to the fraud evaluator (transaction shape, buyer history, request
context) and the assessment it returns.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class RiskAction(str, Enum):
    ALLOW = "allow"
    CHALLENGE = "challenge"
    BLOCK = "block"


class RiskLevel(str, Enum):
    MINIMAL = "minimal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Address(BaseModel):
    """Postal address"""
    name: Optional[str] = None
    line1: str = Field(..., min_length=1)
    line2: Optional[str] = None
    city: str = Field(..., min_length=1)
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str = Field(..., min_length=2, max_length=2, description="ISO 3166-1 alpha-2")
    phone: Optional[str] = None

    def fingerprint(self) -> tuple:
        return tuple(
            (part or "").strip().lower()
            for part in (self.line1, self.city, self.postal_code, self.country)
        )


class TransactionProfile(BaseModel):
    """Shape of the payment attempt being scored"""
    order_id: str
    amount: Decimal
    currency: str = "USD"
    payment_method: str
    billing_address: Optional[Address] = None
    shipping_address: Optional[Address] = None
    cardholder_name: Optional[str] = None
    retry_count: int = Field(default=0, ge=0)
    occurred_at: datetime


class BuyerProfile(BaseModel):
    """Buyer history supplied by the account service"""
    user_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    account_created_at: Optional[datetime] = None
    order_count: int = Field(default=0, ge=0)
    average_order_amount: Optional[Decimal] = None


class RequestContext(BaseModel):
    """Client context forwarded by the gateway"""
    ip_address: Optional[str] = None
    ip_country: Optional[str] = None
    device_id: Optional[str] = None
    session_id: Optional[str] = None
    user_agent: Optional[str] = None


class RiskAssessment(BaseModel):
    risk_score: int = Field(..., ge=0, le=100)
    risk_level: RiskLevel
    action: RiskAction
    risk_factors: List[str] = Field(default_factory=list)
    evaluated_at: datetime


class RiskReview(BaseModel):
    """Audit record of an assessment on the payment path"""
    review_id: str
    order_id: str
    payment_method: str
    transaction_id: Optional[str] = None
    assessment: RiskAssessment
    created_at: datetime
