"""
Order Service Clients Module

HTTP clients for synchronous communication with other services
"""

from .account_client import AccountClient
from .listing_client import ListingServiceClient

__all__ = [
    "AccountClient",
    "ListingServiceClient",
]
