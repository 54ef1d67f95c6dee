"""
Payment Service Protocols

Defines interfaces for dependency injection and testing.
Following the protocol-based architecture pattern.
"""

from typing import Dict, Optional, Protocol, runtime_checkable

from microservices.order_service.protocols import OrderRepositoryProtocol
from microservices.risk_service.models import BuyerProfile

from .gateways.base import PaymentGateway
from .models import PaymentProvider


@runtime_checkable
class GatewayRegistryProtocol(Protocol):
    """Provider -> adapter lookup"""

    def get(self, provider: PaymentProvider) -> PaymentGateway:
        """Adapter for the provider; raises ValidationError when unavailable"""
        ...


@runtime_checkable
class BuyerProfileSourceProtocol(Protocol):
    """Where the ledger reads buyer history for risk scoring"""

    async def get_buyer_profile(self, user_id: str) -> Optional[BuyerProfile]:
        ...


__all__ = [
    "OrderRepositoryProtocol",
    "GatewayRegistryProtocol",
    "BuyerProfileSourceProtocol",
]
