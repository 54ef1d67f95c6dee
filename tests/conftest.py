"""
Root conftest.py - Global fixtures and configuration for all test layers.

Test Layers:
    - api/        : HTTP contract tests (FastAPI app, in-memory services)
    - component/  : Component tests (mocked repositories, gateways, clients)
    - unit/       : Unit tests (pure functions, no I/O)
"""
import os
import sys

import pytest

# Set testing environment BEFORE any project imports
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("NATS_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from core.identity import Role

from tests.fixtures import make_identity, make_user_id


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line("markers", "unit: pure logic tests, no I/O")
    config.addinivalue_line("markers", "component: service tests with mocked dependencies")
    config.addinivalue_line("markers", "api: HTTP contract tests")


# =============================================================================
# Identities
# =============================================================================

@pytest.fixture
def seller_id() -> str:
    return make_user_id()


@pytest.fixture
def buyer_id() -> str:
    return make_user_id()


@pytest.fixture
def seller(seller_id):
    """Seller identity"""
    return make_identity(Role.SELLER, seller_id)


@pytest.fixture
def buyer(buyer_id):
    """Buyer identity"""
    return make_identity(Role.BUYER, buyer_id)


@pytest.fixture
def admin():
    """Admin identity"""
    return make_identity(Role.ADMIN)


@pytest.fixture
def stranger():
    """A buyer who is not a party to any order"""
    return make_identity(Role.BUYER)
