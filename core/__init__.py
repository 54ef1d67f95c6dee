#!/usr/bin/env python3
"""
Core Module for the settlement engine

Shared components used by every service package.

COMPONENTS:
    - config/: dataclass configuration loaded from the environment
    - logger.py: process-wide logging setup
    - errors.py: settlement error taxonomy
    - identity.py: caller identity and capability checks
    - auth_dependencies.py: FastAPI header dependencies producing an Identity
    - keyed_lock.py: per-key asyncio serialization
    - money.py: Decimal currency helpers
    - nats_client.py: NATS JetStream event bus
    - postgres_client.py: asyncpg pool management
    - service_client_base.py: httpx base client for peer services
"""

__version__ = "1.0.0"
