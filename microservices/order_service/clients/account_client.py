"""
Account Service Client for Order Service

HTTP client for synchronous communication with account_service
"""

import logging
from typing import Any, Dict, Optional

from core.service_client_base import BaseServiceClient
from microservices.risk_service.models import BuyerProfile

logger = logging.getLogger(__name__)


class AccountClient(BaseServiceClient):
    """Client for account_service"""

    service_name = "account_service"

    async def get_account_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Get user account profile

        Args:
            user_id: User ID

        Returns:
            User profile if found
        """
        response = await self.get(f"/api/v1/accounts/{user_id}/profile")
        if response.status_code == 404:
            logger.warning(f"User {user_id} not found")
            return None
        if response.status_code != 200:
            logger.error(f"Failed to get account profile: {response.status_code}")
            return None
        return response.json()

    async def get_buyer_profile(self, user_id: str) -> Optional[BuyerProfile]:
        """Buyer history for risk scoring; None when the account is unknown"""
        profile = await self.get_account_profile(user_id)
        if profile is None:
            return None
        return BuyerProfile(
            user_id=user_id,
            email=profile.get("email"),
            full_name=profile.get("name") or profile.get("full_name"),
            account_created_at=profile.get("created_at"),
            order_count=profile.get("order_count") or 0,
            average_order_amount=profile.get("average_order_amount"),
        )
