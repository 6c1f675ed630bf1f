"""
Redis caching service for per-date slot availability.

CACHING STRATEGY
================

What we cache:
  - The computed slot list for one calendar date (JSON-serialized)
  - Cache key pattern: "availability:{YYYY-MM-DD}"

Why:
  - The booking calendar asks for availability on every date click
  - Computing it means a template query plus one COUNT per slot

Invalidation strategy:
  - Any booking status change (confirm, payment failure, cancel, refund):
    delete the key for that booking's date
  - Any slot template change: delete every "availability:*" key, since a
    template applies to every date with its weekday
  - Short TTL as safety net

Redis is advisory. Every failure degrades to a cache miss, so an outage
costs latency, never correctness. The checkout slot check always reads the
database directly.
"""

import json
from datetime import date
from typing import Optional

import redis.asyncio as redis
from studio_booking.core.config import get_settings
from studio_booking.core.logging import get_logger
from studio_booking.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None

KEY_PREFIX = "availability:"


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
        await _redis_client.aclose()
        _redis_client = None


def _make_availability_key(day: date) -> str:
    return f"{KEY_PREFIX}{day.isoformat()}"


async def get_cached_availability(day: date) -> Optional[list[dict]]:
    client = await get_redis()
    if not client:
        return None

    key = _make_availability_key(day)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data:
            return json.loads(data)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_availability(day: date, slots: list[dict]) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_availability_key(day)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(slots, default=str))
        record_cache_operation("set", hit=False)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_availability(day: date) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_availability_key(day)
    try:
        await client.delete(key)
        logger.debug("cache_invalidated", key=key)
    except Exception as e:
        logger.error("cache_invalidation_error", key=key, error=str(e))


async def invalidate_all_availability() -> None:
    """Drop every cached date. Uses SCAN so Redis is never blocked."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{KEY_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for the health endpoint."""
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
    except Exception as e:
        return {"status": "error", "error": str(e)}
