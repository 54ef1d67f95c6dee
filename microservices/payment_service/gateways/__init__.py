"""
Payment Gateways

Provider adapters behind the PaymentGateway interface.

Supported Providers:
- Stripe: card payments (PaymentIntents)
- Fawry: reference-code payments
- Manual: Vodafone Cash, InstaPay, bank transfer, cash on delivery

Usage:
    registry = build_gateway_registry(settings.payments)
    gateway = registry.get(PaymentProvider.FAWRY)
    payment = await gateway.create_payment(intent)
"""

from typing import Dict, Iterable, Optional

from core.config import PaymentConfig
from core.errors import ValidationError

from ..models import MANUAL_PROVIDERS, PaymentProvider
from .base import PaymentGateway
from .fawry_gateway import FawryGateway
from .manual_gateway import ManualGateway
from .stripe_gateway import StripeGateway


class GatewayRegistry:
    """Provider -> adapter lookup"""

    def __init__(self, gateways: Iterable[PaymentGateway] = ()):
        self._gateways: Dict[PaymentProvider, PaymentGateway] = {}
        for gateway in gateways:
            self.register(gateway)

    def register(self, gateway: PaymentGateway):
        self._gateways[gateway.provider] = gateway

    def get(self, provider: PaymentProvider) -> PaymentGateway:
        gateway = self._gateways.get(provider)
        if gateway is None:
            raise ValidationError(
                f"Payment method '{provider.value}' is not available",
                {"payment_method": provider.value},
            )
        return gateway

    async def close(self):
        for gateway in self._gateways.values():
            await gateway.close()


def build_gateway_registry(config: Optional[PaymentConfig] = None) -> GatewayRegistry:
    """Register every provider with credentials from PaymentConfig"""
    config = config or PaymentConfig.from_env()
    gateways = [
        StripeGateway(config.stripe_secret_key, config.stripe_webhook_secret),
        FawryGateway(
            merchant_code=config.fawry_merchant_code,
            security_key=config.fawry_security_key,
            base_url=config.fawry_base_url,
            timeout=config.fawry_timeout,
        ),
    ]
    gateways.extend(ManualGateway(provider) for provider in sorted(MANUAL_PROVIDERS, key=lambda p: p.value))
    return GatewayRegistry(gateways)


__all__ = [
    "PaymentGateway",
    "StripeGateway",
    "FawryGateway",
    "ManualGateway",
    "GatewayRegistry",
    "build_gateway_registry",
]
