"""
Payment Service Factory

Factory functions for creating the payment ledger with real dependencies.
This is the ONLY place that builds the provider adapters.

Usage:
    from .factory import create_payment_ledger
    ledger = create_payment_ledger(order_repository, settings, event_bus=event_bus)
"""
from typing import Optional

from core.config import SettlementConfig
from core.keyed_lock import KeyedLock
from microservices.risk_service.risk_evaluator import RiskEvaluator

from .payment_ledger import PaymentLedger
from .protocols import BuyerProfileSourceProtocol, OrderRepositoryProtocol


def create_payment_ledger(
    repository: OrderRepositoryProtocol,
    settings: SettlementConfig,
    profiles: Optional[BuyerProfileSourceProtocol] = None,
    event_bus=None,
    locks: Optional[KeyedLock] = None,
) -> PaymentLedger:
    """
    Create PaymentLedger with the gateway registry built from PaymentConfig.

    Args:
        repository: Order repository the ledger writes transactions through
        settings: Settlement settings (payments and risk sections are used)
        profiles: Account client used for buyer history
        event_bus: Event bus for payment events
        locks: Per-order locks shared with the order service
    """
    from .gateways import build_gateway_registry

    return PaymentLedger(
        repository=repository,
        gateways=build_gateway_registry(settings.payments),
        evaluator=RiskEvaluator(settings.risk),
        profiles=profiles,
        event_bus=event_bus,
        locks=locks,
        config=settings.payments,
    )
