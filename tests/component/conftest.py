"""
Component Test Layer Configuration

Services run against in-memory repositories, scripted gateways and mock
peer clients. Nothing here touches PostgreSQL, NATS or the network.

Structure:
    tests/component/
    ├── mocks/       Mock implementations
    └── test_*.py    One module per service

Usage:
    pytest tests/component -v
"""
import pytest

from core.config import PaymentConfig, PricingConfig
from core.keyed_lock import KeyedLock
from microservices.inventory_service.inventory_ledger import InventoryLedger
from microservices.order_service.order_service import OrderService
from microservices.payment_service.models import PaymentProvider
from microservices.payment_service.payment_ledger import PaymentLedger
from microservices.risk_service.risk_evaluator import RiskEvaluator

from tests.component.mocks import (
    MockAccountClient,
    MockEventBus,
    MockInventoryRepository,
    MockListingCatalog,
    MockOrderRepository,
    build_mock_registry,
)
from tests.fixtures import make_trusted_profile


# =============================================================================
# Infrastructure Mocks
# =============================================================================

@pytest.fixture
def mock_event_bus() -> MockEventBus:
    """Mock NATS event bus"""
    return MockEventBus()


@pytest.fixture
def inventory_repository() -> MockInventoryRepository:
    return MockInventoryRepository()


@pytest.fixture
def order_repository() -> MockOrderRepository:
    return MockOrderRepository()


@pytest.fixture
def catalog() -> MockListingCatalog:
    """Mock listing catalog"""
    return MockListingCatalog()


@pytest.fixture
def account_client(buyer_id) -> MockAccountClient:
    """Account service knowing the default buyer as an established customer"""
    client = MockAccountClient()
    client.set_profile(make_trusted_profile(buyer_id))
    return client


@pytest.fixture
def gateways():
    """Mock gateway for every provider"""
    return build_mock_registry()


@pytest.fixture
def stripe_gateway(gateways):
    return gateways.get(PaymentProvider.STRIPE)


@pytest.fixture
def order_locks() -> KeyedLock:
    return KeyedLock()


# =============================================================================
# Services
# =============================================================================

@pytest.fixture
def inventory_ledger(inventory_repository, catalog, mock_event_bus) -> InventoryLedger:
    return InventoryLedger(
        repository=inventory_repository,
        material_usage=catalog,
        event_bus=mock_event_bus,
    )


@pytest.fixture
def payment_ledger(order_repository, gateways, account_client, mock_event_bus, order_locks) -> PaymentLedger:
    return PaymentLedger(
        repository=order_repository,
        gateways=gateways,
        evaluator=RiskEvaluator(),
        profiles=account_client,
        event_bus=mock_event_bus,
        locks=order_locks,
        config=PaymentConfig(),
    )


@pytest.fixture
def order_service(order_repository, catalog, inventory_ledger, payment_ledger, mock_event_bus) -> OrderService:
    return OrderService(
        repository=order_repository,
        catalog=catalog,
        inventory=inventory_ledger,
        payments=payment_ledger,
        event_bus=mock_event_bus,
        pricing=PricingConfig(),
    )
