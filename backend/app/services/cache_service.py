"""
Redis caching service for facility availability grids.

CACHING STRATEGY
================

What we cache:
  - The month grid returned by the availability calculator (JSON list)
  - Key pattern: "availability:{facility_id}:{generation}:{month}:{today}"

Why `today` is in the key:
  - Days before today are forced unavailable, so a grid computed yesterday is
    wrong today even when no booking changed. Rolling the key at UTC midnight
    retires stale grids without any explicit invalidation.

Invalidation strategy:
  - Any committed booking write that touches a facility (create, cancel,
    admin status change, admin delete) bumps "availability_gen:{id}" and then
    deletes every "availability:{id}:*" key via SCAN. Runs as a background
    job after commit.
  - Readers fetch the generation before querying bookings and write their
    grid under it. A grid computed from pre-commit data that lands after the
    invalidation sits under a retired generation and is never read.
  - TTL (AVAILABILITY_CACHE_TTL) as a safety net.

Failure policy:
  - Redis errors are logged and treated as a miss; the grid is always
    computable from the database.
"""

import json
from typing import Optional

import redis.asyncio as redis

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_cache_lookup
from app.infrastructure.redis_client import get_redis

logger = get_logger(__name__)


def _make_generation_key(facility_id: int) -> str:
    return f"availability_gen:{facility_id}"


def _make_availability_key(facility_id: int, generation: int, month: str, today: str) -> str:
    return f"availability:{facility_id}:{generation}:{month}:{today}"


async def get_availability_generation(facility_id: int) -> Optional[int]:
    """Current cache generation for a facility; None when caching is unavailable."""
    client = await get_redis()
    if not client:
        return None

    key = _make_generation_key(facility_id)
    try:
        value = await client.get(key)
    except redis.RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None
    return int(value or 0)


async def get_cached_availability(facility_id: int, generation: int, month: str, today: str) -> Optional[list]:
    client = await get_redis()
    if not client:
        return None

    key = _make_availability_key(facility_id, generation, month, today)
    try:
        data = await client.get(key)
    except redis.RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_lookup(hit=data is not None)
    if data is None:
        logger.debug("cache_miss", key=key)
        return None
    logger.debug("cache_hit", key=key)
    return json.loads(data)


async def set_cached_availability(facility_id: int, generation: int, month: str, today: str, grid: list) -> None:
    client = await get_redis()
    if not client:
        return

    ttl = get_settings().AVAILABILITY_CACHE_TTL
    key = _make_availability_key(facility_id, generation, month, today)
    try:
        await client.setex(key, ttl, json.dumps(grid, default=str))
        logger.debug("cache_set", key=key, ttl=ttl)
    except redis.RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_availability(facility_id: int) -> None:
    """
    Drop every cached grid for one facility.
    Raises on Redis errors so the background runner retries.
    """
    client = await get_redis()
    if not client:
        return

    generation = await client.incr(_make_generation_key(facility_id))
    deleted = 0
    async for key in client.scan_iter(match=f"availability:{facility_id}:*", count=100):
        await client.delete(key)
        deleted += 1
    logger.info("cache_invalidated", facility_id=facility_id, generation=generation, keys_deleted=deleted)


async def get_cache_stats() -> dict:
    """Redis cache statistics for the health endpoint."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
