#!/usr/bin/env python3
"""Service configuration for peer marketplace services

The listing catalog and the account service are owned by other teams; the
settlement engine only reads from them over HTTP.
"""
import os
from dataclasses import dataclass

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


@dataclass
class ServiceConfig:
    """Peer service endpoints"""

    service_name: str = "order_service"
    service_host: str = "0.0.0.0"
    service_port: int = 8210

    listing_service_url: str = "http://localhost:8215"
    account_service_url: str = "http://localhost:8202"
    http_timeout: float = 10.0

    @classmethod
    def from_env(cls) -> 'ServiceConfig':
        """Load service configuration from environment variables"""
        return cls(
            service_name=os.getenv("SERVICE_NAME", "order_service"),
            service_host=os.getenv("HOST", "0.0.0.0"),
            service_port=int(os.getenv("PORT", "8210")),
            listing_service_url=os.getenv("LISTING_SERVICE_URL", "http://localhost:8215"),
            account_service_url=os.getenv("ACCOUNT_SERVICE_URL", "http://localhost:8202"),
            http_timeout=_float(os.getenv("SERVICE_HTTP_TIMEOUT", "10"), 10.0),
        )
