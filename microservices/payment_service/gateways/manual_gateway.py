"""
Manual settlement gateways

Mobile wallets, InstaPay, bank transfers and cash on delivery have no API
to poll. The buyer receives a reference and instructions; the seller (or
an admin) confirms receipt through mark_manually_paid.
"""

import logging
import secrets
import time
import uuid
from decimal import Decimal
from typing import Optional

from ..models import (
    GatewayPayment,
    GatewayStatus,
    GatewayVerification,
    PaymentIntent,
    PaymentProvider,
)
from .base import PaymentGateway

logger = logging.getLogger(__name__)

REFERENCE_PREFIXES = {
    PaymentProvider.VODAFONE_CASH: "VC",
    PaymentProvider.INSTAPAY: "INST",
    PaymentProvider.BANK_TRANSFER: "BT",
    PaymentProvider.CASH_ON_DELIVERY: "COD",
}

INSTRUCTIONS = {
    PaymentProvider.VODAFONE_CASH: "Send {amount} {currency} from your Vodafone Cash wallet and quote reference {reference}.",
    PaymentProvider.INSTAPAY: "Transfer {amount} {currency} through InstaPay and quote reference {reference}.",
    PaymentProvider.BANK_TRANSFER: "Transfer {amount} {currency} to the seller's bank account and quote reference {reference}.",
    PaymentProvider.CASH_ON_DELIVERY: "Pay {amount} {currency} in cash on delivery. Reference {reference}.",
}


class ManualGateway(PaymentGateway):
    """Reference-only gateway for manually settled providers"""

    def __init__(self, provider: PaymentProvider):
        if provider not in REFERENCE_PREFIXES:
            raise ValueError(f"{provider.value} is not a manual provider")
        self._provider = provider

    @property
    def provider(self) -> PaymentProvider:
        return self._provider

    @property
    def is_manual(self) -> bool:
        return True

    def _reference(self) -> str:
        prefix = REFERENCE_PREFIXES[self._provider]
        return f"{prefix}-{int(time.time())}-{secrets.token_hex(3).upper()}"

    async def create_payment(self, intent: PaymentIntent) -> GatewayPayment:
        reference = self._reference()
        logger.info(f"Issued {self._provider.value} reference {reference} for order {intent.order_id}")
        return GatewayPayment(
            reference_number=reference,
            status=GatewayStatus.PENDING,
            instructions=INSTRUCTIONS[self._provider].format(
                amount=intent.amount, currency=intent.currency, reference=reference
            ),
        )

    async def verify_payment(
        self, reference_number: str, transaction_id: Optional[str] = None
    ) -> GatewayVerification:
        # Nothing to poll; stays pending until confirmed by hand
        return GatewayVerification(status=GatewayStatus.PENDING)

    async def refund(self, reference_number: str, amount: Decimal, reason: str) -> str:
        # Money is returned outside the platform; only the record is kept
        return f"manual_refund_{uuid.uuid4().hex[:12]}"
