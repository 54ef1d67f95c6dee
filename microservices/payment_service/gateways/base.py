"""
Payment Gateway Base Class

Narrow contract every provider adapter implements. The ledger depends only
on this interface, never on a provider's wire format.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Optional
import logging

from ..models import (
    GatewayEvent,
    GatewayPayment,
    GatewayVerification,
    PaymentIntent,
    PaymentProvider,
)

logger = logging.getLogger(__name__)


class PaymentGateway(ABC):
    """
    Abstract base class for payment gateways.

    To add a new provider:
    1. Create a class that inherits from PaymentGateway
    2. Implement the abstract methods
    3. Register it in build_gateway_registry()

    Adapters raise ExternalServiceError for transport or provider errors
    and report business outcomes (declined, expired) through GatewayStatus.
    """

    @property
    @abstractmethod
    def provider(self) -> PaymentProvider:
        """Return the provider identifier"""
        pass

    @property
    def is_manual(self) -> bool:
        """Manual providers are settled by mark_manually_paid. Others only by verify, webhooks or an admin."""
        return False

    @abstractmethod
    async def create_payment(self, intent: PaymentIntent) -> GatewayPayment:
        """
        Start a payment.

        Returns:
            GatewayPayment with the provider reference number
        """
        pass

    @abstractmethod
    async def verify_payment(
        self, reference_number: str, transaction_id: Optional[str] = None
    ) -> GatewayVerification:
        """Ask the provider for the current status of a payment.

        Args:
            reference_number: Provider reference returned by create_payment
            transaction_id: Our transaction id, for providers keyed on it
        """
        pass

    @abstractmethod
    async def refund(self, reference_number: str, amount: Decimal, reason: str) -> str:
        """
        Refund a captured payment.

        Returns:
            Provider refund id
        """
        pass

    async def parse_webhook(self, payload: bytes, headers: Dict[str, str]) -> Optional[GatewayEvent]:
        """
        Verify and parse a provider webhook.

        Returns:
            GatewayEvent, or None if the signature or payload is invalid
        """
        return None

    async def close(self):
        pass
