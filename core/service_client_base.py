"""
Base Service Client for peer marketplace services

Base class for the read-only clients the settlement engine uses to reach
the listing catalog and the account service.
"""

import httpx
import logging
from typing import Optional, Dict, Any
from abc import ABC

from core.errors import ExternalServiceError

logger = logging.getLogger(__name__)


class BaseServiceClient(ABC):
    """
    Microservice client base class

    Handles:
    1. HTTP client lifecycle
    2. Timeouts
    3. Mapping transport failures to ExternalServiceError

    Example:
        class ListingServiceClient(BaseServiceClient):
            service_name = "listing_service"

            async def get_listing(self, listing_id: str):
                response = await self.get(f"/api/v1/listings/{listing_id}")
                return response.json()
    """

    service_name: str = None

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not self.service_name:
            raise ValueError(f"{self.__class__.__name__} must define 'service_name'")

        self.base_url = base_url.rstrip('/')
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "Content-Type": "application/json",
                "User-Agent": f"settlement-internal-client/{self.service_name}",
            },
            transport=transport,
        )

        logger.debug(f"Initialized {self.service_name} client: {self.base_url}")

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()
        logger.debug(f"Closed {self.service_name} client")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ========================================
    # HTTP helpers
    # ========================================

    async def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        """GET request; transport errors become ExternalServiceError"""
        try:
            return await self.client.get(path, params=params, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"{self.service_name} GET {path} failed: {e}")
            raise ExternalServiceError(
                f"{self.service_name} is unavailable",
                provider=self.service_name,
                error_code=type(e).__name__,
            ) from e

    async def health_check(self) -> bool:
        try:
            response = await self.client.get("/health")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"{self.service_name} health check failed: {e}")
            return False


__all__ = ["BaseServiceClient"]
