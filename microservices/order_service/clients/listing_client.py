"""
Listing Service Client for Order Service

HTTP client for reading listing snapshots from listing_service
"""

import logging
from typing import List, Optional

from core.errors import ExternalServiceError
from core.service_client_base import BaseServiceClient
from microservices.pricing_service.models import Listing

logger = logging.getLogger(__name__)


class ListingServiceClient(BaseServiceClient):
    """Client for listing_service"""

    service_name = "listing_service"

    async def get_listing(self, listing_id: str) -> Optional[Listing]:
        """
        Get listing snapshot

        Args:
            listing_id: Listing ID

        Returns:
            Listing if found, None on 404
        """
        response = await self.get(f"/api/v1/listings/{listing_id}")
        if response.status_code == 404:
            logger.warning(f"Listing {listing_id} not found")
            return None
        if response.status_code != 200:
            logger.error(f"Failed to get listing {listing_id}: {response.status_code}")
            raise ExternalServiceError(
                "Listing service returned an error",
                provider=self.service_name,
                error_code=str(response.status_code),
            )
        data = response.json()
        return Listing.model_validate(data.get("listing", data))

    async def listings_using_item(self, item_id: str) -> List[str]:
        """IDs of active listings whose bill of materials references the item"""
        response = await self.get(
            "/api/v1/listings",
            params={"material_item_id": item_id, "active": "true"},
        )
        if response.status_code != 200:
            logger.error(f"Failed to look up listings for item {item_id}: {response.status_code}")
            raise ExternalServiceError(
                "Listing service returned an error",
                provider=self.service_name,
                error_code=str(response.status_code),
            )
        data = response.json()
        listings = data.get("listings", data) if isinstance(data, dict) else data
        return [entry["listing_id"] for entry in listings]
