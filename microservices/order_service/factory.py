"""
Order Service Factory

Factory functions for creating service instances with real dependencies.
This is the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_settlement_services
    services = create_settlement_services(pool, settings, event_bus)
"""
from dataclasses import dataclass
from typing import Optional

from core.config import SettlementConfig
from core.keyed_lock import KeyedLock
from microservices.inventory_service.inventory_ledger import InventoryLedger
from microservices.payment_service.payment_ledger import PaymentLedger

from .order_service import OrderService


@dataclass
class SettlementServices:
    """Everything the HTTP surface needs, wired together"""
    orders: OrderService
    payments: PaymentLedger
    inventory: InventoryLedger
    listing_client: object = None
    account_client: object = None

    async def close(self):
        await self.payments.gateways.close()
        for client in (self.listing_client, self.account_client):
            if client is not None:
                await client.close()


def create_settlement_services(
    pool,
    settings: SettlementConfig,
    event_bus=None,
) -> SettlementServices:
    """
    Create OrderService, PaymentLedger and InventoryLedger with real dependencies.

    This function imports the real repositories and HTTP clients.
    Use this in production, NOT in tests.

    Args:
        pool: asyncpg pool
        settings: Settlement settings
        event_bus: Event bus for publishing events (optional)
    """
    # Import real dependencies here (not at module level)
    from microservices.inventory_service.factory import create_inventory_ledger
    from microservices.payment_service.factory import create_payment_ledger

    from .clients import AccountClient, ListingServiceClient
    from .order_repository import OrderRepository

    listing_client = ListingServiceClient(
        settings.services.listing_service_url, timeout=settings.services.http_timeout
    )
    account_client = AccountClient(
        settings.services.account_service_url, timeout=settings.services.http_timeout
    )

    order_locks = KeyedLock()
    repository = OrderRepository(pool)
    inventory = create_inventory_ledger(pool, material_usage=listing_client, event_bus=event_bus)
    payments = create_payment_ledger(
        repository, settings, profiles=account_client, event_bus=event_bus, locks=order_locks
    )
    orders = OrderService(
        repository=repository,
        catalog=listing_client,
        inventory=inventory,
        payments=payments,
        event_bus=event_bus,
        locks=order_locks,
        pricing=settings.pricing,
    )
    return SettlementServices(
        orders=orders,
        payments=payments,
        inventory=inventory,
        listing_client=listing_client,
        account_client=account_client,
    )
