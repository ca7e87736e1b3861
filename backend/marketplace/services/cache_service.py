"""
Redis caching service for public business listings.

CACHING STRATEGY
================

What we cache:
  - Business listing responses (JSON-serialized)
  - Cache key pattern: "businesses:list:category={c}&date={d}&time={t}"

Why:
  - The listing is the most frequent read (every client search hits it)
  - It joins businesses, services and availability: the most expensive read

Invalidation strategy:
  - Slot changes (upsert, reservation, release, reopen) change which
    businesses match a date/time search
  - Service edits change min_price
  - Reviews change rating (the sort key)
  - On any of these we delete every key under "businesses:list:" (SCAN)
  - TTL-based expiry as safety net

Why NOT cache business detail or slots per business:
  - The detail view must show real-time availability; a stale slot there
    sends clients straight into SlotUnavailable

Redis is optional: every function degrades to "no cache" when Redis is
disabled or unreachable.
"""

import json
from typing import Optional

import redis.asyncio as redis

from marketplace.core.config import get_settings
from marketplace.core.logging import get_logger
from marketplace.core.metrics import record_cache_operation

logger = get_logger(__name__)

LISTING_PREFIX = "businesses:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client
    settings = get_settings()

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
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except (redis.RedisError, OSError) as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_listing_key(category: Optional[str], slot_date: Optional[str], slot_time: Optional[str]) -> str:
    return f"{LISTING_PREFIX}category={category or ''}&date={slot_date or ''}&time={slot_time or ''}"


async def get_cached_listing(
    category: Optional[str],
    slot_date: Optional[str],
    slot_time: Optional[str],
) -> Optional[list]:
    client = await get_redis()
    if not client:
        return None

    key = _make_listing_key(category, slot_date, slot_time)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=bool(data))
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except redis.RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_listing(
    category: Optional[str],
    slot_date: Optional[str],
    slot_time: Optional[str],
    data: list,
) -> None:
    client = await get_redis()
    if not client:
        return

    settings = get_settings()
    key = _make_listing_key(category, slot_date, slot_time)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        record_cache_operation("set", hit=False)
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except redis.RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_listing_cache() -> None:
    """Delete every cached listing page."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{LISTING_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except redis.RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}
