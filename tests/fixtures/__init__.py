"""
Shared Test Fixtures

Centralized factories used across all test layers.

Structure:
    - common.py: Base ID generators, timestamps
    - settlement_fixtures.py: Listings, inventory, orders, risk context
"""

# Common utilities
from .common import (
    make_user_id,
    make_listing_id,
    make_email,
    make_timestamp,
)

# Settlement fixtures
from .settlement_fixtures import (
    BROWSER_AGENT,
    make_identity,
    make_address,
    make_listing,
    make_inventory_item,
    make_payload,
    make_order_request,
    make_trusted_profile,
    make_context,
    make_order,
)

__all__ = [
    "make_user_id",
    "make_listing_id",
    "make_email",
    "make_timestamp",
    "BROWSER_AGENT",
    "make_identity",
    "make_address",
    "make_listing",
    "make_inventory_item",
    "make_payload",
    "make_order_request",
    "make_trusted_profile",
    "make_context",
    "make_order",
]
