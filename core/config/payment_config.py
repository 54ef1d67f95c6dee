#!/usr/bin/env python3
"""Payment gateway configuration"""
import os
from dataclasses import dataclass
from typing import Optional

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class PaymentConfig:
    """Gateway credentials and ledger settings"""

    # Duplicate initiate requests inside this window reuse the open transaction
    idempotency_window_seconds: int = 900

    # Stripe
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None

    # Fawry
    fawry_base_url: str = "https://atfawry.fawrystaging.com"
    fawry_merchant_code: Optional[str] = None
    fawry_security_key: Optional[str] = None
    fawry_timeout: float = 15.0

    @classmethod
    def from_env(cls) -> 'PaymentConfig':
        """Load payment configuration from environment variables"""
        return cls(
            idempotency_window_seconds=_int(os.getenv("PAYMENT_IDEMPOTENCY_WINDOW", "900"), 900),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET"),
            fawry_base_url=os.getenv("FAWRY_BASE_URL", "https://atfawry.fawrystaging.com"),
            fawry_merchant_code=os.getenv("FAWRY_MERCHANT_CODE"),
            fawry_security_key=os.getenv("FAWRY_SECURITY_KEY"),
            fawry_timeout=float(os.getenv("FAWRY_TIMEOUT", "15")),
        )
