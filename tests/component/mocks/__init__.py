"""
Component Test Mocks

Shared mock implementations for component testing.
These mocks replace real I/O dependencies (database, NATS, HTTP, gateways).
"""

from .nats_mock import MockEventBus
from .repository_mocks import MockInventoryRepository, MockOrderRepository
from .client_mocks import MockAccountClient, MockListingCatalog
from .gateway_mock import MockPaymentGateway, build_mock_registry

__all__ = [
    'MockEventBus',
    'MockInventoryRepository',
    'MockOrderRepository',
    'MockAccountClient',
    'MockListingCatalog',
    'MockPaymentGateway',
    'build_mock_registry',
]
