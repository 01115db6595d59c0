"""Redis connection helper."""

from __future__ import annotations

import redis.asyncio as redis

from shared.config import StoreConfig, get_settings

_redis_client: redis.Redis | None = None


async def get_redis(config: StoreConfig | None = None) -> redis.Redis:
    """Get or create a Redis client for the shared location store."""
    global _redis_client
    if _redis_client is None:
        if config is None:
            config = get_settings().store_config()
        _redis_client = redis.from_url(
            config.endpoint,
            password=config.auth_token or None,
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_client


async def close_redis() -> None:
    """Close the Redis connection."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
