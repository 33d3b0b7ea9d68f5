"""
Redis caching service for the shop-events listing.

CACHING STRATEGY
================

What we cache:
  - The upcoming shop events of one shop (JSON-serialized response)
  - Cache key pattern: "shop_events:{shop_id}"

Why:
  - The listing is what followers open after every "new event" push,
    so reads arrive in bursts
  - The query ranks every upcoming event occurrence of the shop

Invalidation strategy:
  - Reservation create / update / delete drops every "shop_events:*" key.
    An update can move a reservation to another shop's table, so dropping
    one shop's key is not enough.
  - Joins and leaves drop them too; the listing embeds the participants.
  - TTL-based expiry as safety net (5 minutes). Events that have started
    only leave a cached listing through the TTL.

The cache fails open: Redis errors are logged and treated as misses.
"""

import json
from typing import Optional

import redis.asyncio as redis
from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

SHOP_EVENTS_PREFIX = "shop_events:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            # Test connection
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.close()
        _redis_client = None


def _make_shop_events_key(shop_id: int) -> str:
    return f"{SHOP_EVENTS_PREFIX}{shop_id}"


async def get_cached_shop_events(shop_id: int) -> Optional[list]:
    """Retrieve the cached shop-events listing of a shop."""
    client = await get_redis()
    if not client:
        return None

    key = _make_shop_events_key(shop_id)
    try:
        data = await client.get(key)
        if data:
            record_cache_operation("get", hit=True)
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        record_cache_operation("get", hit=False)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_shop_events(shop_id: int, data: list) -> None:
    """Cache a shop-events listing with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_shop_events_key(shop_id)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_shop_events_cache() -> None:
    """
    Invalidate every cached shop-events listing.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{SHOP_EVENTS_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        keyspace = await client.info("keyspace")
        return {
            "status": "connected",
            "hits": info.get("keyspace_hits", 0),
            "misses": info.get("keyspace_misses", 0),
            "hit_rate": (
                round(
                    info.get("keyspace_hits", 0)
                    / max(info.get("keyspace_hits", 0) + info.get("keyspace_misses", 0), 1)
                    * 100,
                    2,
                )
            ),
            "keys": keyspace,
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
