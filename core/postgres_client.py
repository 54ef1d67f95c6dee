"""
PostgreSQL pool for the settlement engine

Wraps an asyncpg connection pool. Repositories acquire a connection per
operation and open a transaction when they need row locks.

Usage:
    from core.postgres_client import get_postgres_pool

    pool = await get_postgres_pool("order_service")
    async with pool.acquire() as conn:
        async with conn.transaction():
            row = await conn.fetchrow("SELECT ... FOR UPDATE", item_id)
"""

import json
import logging
from typing import Dict, Optional

import asyncpg

from core.config import InfraConfig

logger = logging.getLogger(__name__)


async def _init_connection(conn: asyncpg.Connection):
    """Decode json/jsonb columns into Python objects"""
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


async def create_pool(service_name: str, config: Optional[InfraConfig] = None) -> asyncpg.Pool:
    """Create an asyncpg pool from InfraConfig"""
    config = config or InfraConfig.from_env()
    pool = await asyncpg.create_pool(
        dsn=config.postgres_dsn,
        min_size=config.postgres_min_pool,
        max_size=config.postgres_max_pool,
        init=_init_connection,
        server_settings={
            "application_name": service_name,
            "search_path": f"{config.postgres_schema},public",
        },
    )
    logger.info(
        f"PostgreSQL pool initialized for {service_name}: "
        f"{config.postgres_host}:{config.postgres_port}/{config.postgres_db}"
    )
    return pool


# Singleton pools per service
_pools: Dict[str, asyncpg.Pool] = {}


async def get_postgres_pool(service_name: str, config: Optional[InfraConfig] = None) -> asyncpg.Pool:
    """Get or create the PostgreSQL pool for a service"""
    if service_name not in _pools:
        _pools[service_name] = await create_pool(service_name, config)
    return _pools[service_name]


async def close_postgres_pools():
    """Close every pool opened by get_postgres_pool"""
    for name, pool in list(_pools.items()):
        await pool.close()
        logger.info(f"PostgreSQL pool closed for {name}")
    _pools.clear()


async def health_check(pool: asyncpg.Pool) -> bool:
    try:
        async with pool.acquire() as conn:
            return await conn.fetchval("SELECT 1") == 1
    except Exception as e:
        logger.warning(f"PostgreSQL health check failed: {e}")
        return False
