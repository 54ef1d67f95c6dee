"""
Order Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

# Import only models (no I/O dependencies)
from .models import Order, OrderStatus
from microservices.pricing_service.models import Listing
from microservices.risk_service.models import BuyerProfile


# ============================================================================
# Repository Protocol
# ============================================================================

@runtime_checkable
class OrderRepositoryProtocol(Protocol):
    """
    Interface for Order Repository.

    ``save_order`` is compare-and-swap on ``Order.version``: it raises
    ConcurrentModification when the stored version differs from the one
    the caller loaded, and returns the order with the bumped version.
    """

    async def insert_order(self, order: Order) -> Order:
        """Persist a new order"""
        ...

    async def get_order(self, order_id: str) -> Optional[Order]:
        """Get order by ID"""
        ...

    async def save_order(self, order: Order) -> Order:
        """Replace the stored order if its version still matches"""
        ...

    async def list_orders(
        self,
        buyer_id: Optional[str] = None,
        seller_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Order]:
        """List orders newest first"""
        ...

    async def count_orders(
        self,
        buyer_id: Optional[str] = None,
        seller_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
    ) -> int:
        ...

    async def find_by_transaction(self, transaction_id: str) -> Optional[Order]:
        """Order owning the given payment transaction"""
        ...

    async def find_by_payment_reference(self, reference_number: str) -> Optional[Order]:
        """Order owning the transaction with this provider reference"""
        ...


# ============================================================================
# Client Protocols
# ============================================================================

@runtime_checkable
class ListingCatalogProtocol(Protocol):
    """Interface for the listing catalog"""

    async def get_listing(self, listing_id: str) -> Optional[Listing]:
        """Get listing by ID, None when it does not exist"""
        ...

    async def listings_using_item(self, item_id: str) -> List[str]:
        """IDs of active listings whose bill of materials references the item"""
        ...


@runtime_checkable
class AccountClientProtocol(Protocol):
    """Interface for Account Service Client"""

    async def get_buyer_profile(self, user_id: str) -> Optional[BuyerProfile]:
        """Buyer facts used for risk scoring"""
        ...

    async def get_account_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Raw account profile"""
        ...
