"""
API Test Layer Configuration

HTTP contract tests against the FastAPI app, in process.
- Requests go through httpx's ASGI transport (no network, no lifespan)
- Services are wired from the component mocks via dependency overrides
- Identity travels in the X-User-Id / X-User-Role headers, as from the gateway

Usage:
    pytest tests/api -v                    # Run all API tests
    pytest tests/api -v -k "refund"        # Run refund API tests
"""

import os
import sys
from typing import AsyncGenerator, Dict, Optional

import httpx
import pytest
import pytest_asyncio

# Add project root
sys.path.insert(
    0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
)

from core.identity import Identity  # noqa: E402
from core.keyed_lock import KeyedLock  # noqa: E402
from microservices.inventory_service.inventory_ledger import InventoryLedger  # noqa: E402
from microservices.order_service.factory import SettlementServices  # noqa: E402
from microservices.order_service.main import app, get_settlement_services  # noqa: E402
from microservices.order_service.order_service import OrderService  # noqa: E402
from microservices.payment_service.payment_ledger import PaymentLedger  # noqa: E402
from microservices.risk_service.risk_evaluator import RiskEvaluator  # noqa: E402

from tests.component.mocks import (  # noqa: E402
    MockAccountClient,
    MockEventBus,
    MockInventoryRepository,
    MockListingCatalog,
    MockOrderRepository,
    build_mock_registry,
)
from tests.fixtures import make_trusted_profile  # noqa: E402


# =============================================================================
# Service wiring
# =============================================================================


class MockBackend:
    """Mocks behind one SettlementServices instance, exposed for seeding and assertions"""

    def __init__(self):
        self.event_bus = MockEventBus()
        self.inventory_repository = MockInventoryRepository()
        self.order_repository = MockOrderRepository()
        self.catalog = MockListingCatalog()
        self.accounts = MockAccountClient()
        self.gateways = build_mock_registry()

        locks = KeyedLock()
        inventory = InventoryLedger(self.inventory_repository, self.catalog, self.event_bus)
        payments = PaymentLedger(
            self.order_repository,
            self.gateways,
            evaluator=RiskEvaluator(),
            profiles=self.accounts,
            event_bus=self.event_bus,
            locks=locks,
        )
        orders = OrderService(
            self.order_repository,
            self.catalog,
            inventory,
            payments,
            event_bus=self.event_bus,
            locks=locks,
        )
        self.services = SettlementServices(orders=orders, payments=payments, inventory=inventory)


@pytest.fixture
def backend(buyer_id) -> MockBackend:
    backend = MockBackend()
    backend.accounts.set_profile(make_trusted_profile(buyer_id))
    return backend


@pytest_asyncio.fixture
async def http_client(backend: MockBackend) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async HTTP client bound to the app"""
    app.dependency_overrides[get_settlement_services] = lambda: backend.services
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# =============================================================================
# Client helpers
# =============================================================================


def identity_headers(identity: Optional[Identity]) -> Dict[str, str]:
    if identity is None:
        return {}
    return {"X-User-Id": identity.user_id, "X-User-Role": identity.role.value}


class APIClient:
    """Client scoped to an API path, sending requests as one caller"""

    def __init__(self, http_client: httpx.AsyncClient, api_path: str, identity: Optional[Identity] = None):
        self.client = http_client
        self.api_path = api_path
        self.headers = identity_headers(identity)

    def as_user(self, identity: Optional[Identity]) -> "APIClient":
        return APIClient(self.client, self.api_path, identity)

    async def get(self, path: str = "", **kwargs) -> httpx.Response:
        return await self.client.get(f"{self.api_path}{path}", headers=self.headers, **kwargs)

    async def post(self, path: str = "", **kwargs) -> httpx.Response:
        return await self.client.post(f"{self.api_path}{path}", headers=self.headers, **kwargs)

    async def put(self, path: str = "", **kwargs) -> httpx.Response:
        return await self.client.put(f"{self.api_path}{path}", headers=self.headers, **kwargs)

    async def patch(self, path: str = "", **kwargs) -> httpx.Response:
        return await self.client.patch(f"{self.api_path}{path}", headers=self.headers, **kwargs)

    async def delete(self, path: str = "", **kwargs) -> httpx.Response:
        return await self.client.delete(f"{self.api_path}{path}", headers=self.headers, **kwargs)


@pytest.fixture
def api(http_client: httpx.AsyncClient) -> APIClient:
    """Unauthenticated client at /api/v1"""
    return APIClient(http_client, "/api/v1")
