"""
Redis caching and change notification for seat status.

CACHING STRATEGY
================

What we cache:
  - The list of live leases behind GET /seats/status (one key, JSON).
  - Key: "seats:leases"

Why:
  - Clients poll seat status every ~15s; it is by far the hottest read.

Invalidation strategy:
  - Every state transition (hold, confirm, expire, complete, extend, sweep)
    bumps a generation counter ("seats:leases:gen") and deletes the key.
  - Snapshots are stored tagged with the generation read before the DB
    query. A snapshot whose tag no longer matches the counter is a miss, so
    a slow read cannot repopulate the cache with pre-transition state.
  - Short TTL (SEAT_STATUS_CACHE_TTL) as a safety net.
  - Lapsed leases are filtered against the clock on every read, so a cached
    snapshot never shows an expired lease as occupied.

The cache is advisory only. Holds are always decided by the ledger's atomic
insert; a stale snapshot can at worst show a seat as free that a hold request
then rejects.

Change notification:
  - Each transition publishes {"type", "order_id", "seats", "at"} on
    SEAT_EVENTS_CHANNEL so dashboards can refresh without polling.
"""

import json
from datetime import datetime
from typing import Iterable, Optional

import redis.asyncio as redis

from quicktap.core.config import get_settings
from quicktap.core.logging import get_logger
from quicktap.core.metrics import record_cache_operation, redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

SEAT_LEASES_KEY = "seats:leases"
SEAT_LEASES_GENERATION_KEY = "seats:leases:gen"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled or down."""
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
            redis_connection_errors.inc()
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


async def get_cached_leases() -> tuple[Optional[list[dict]], Optional[int]]:
    """
    Returns (leases, generation). leases is None on a miss; generation is
    None when Redis is unavailable, in which case nothing should be cached.
    """
    client = await get_redis()
    if not client:
        return None, None

    try:
        data, generation = await client.mget(SEAT_LEASES_KEY, SEAT_LEASES_GENERATION_KEY)
        generation = int(generation or 0)
        snapshot = json.loads(data) if data else None
        hit = snapshot is not None and snapshot.get("generation") == generation
        record_cache_operation("get", hit=hit)
        return (snapshot["leases"] if hit else None), generation
    except Exception as e:
        logger.error("cache_get_error", key=SEAT_LEASES_KEY, error=str(e))

    return None, None


async def set_cached_leases(leases: list[dict], generation: Optional[int]) -> None:
    """Store a snapshot read under `generation`; ignored once a transition bumps it."""
    if generation is None:
        return
    client = await get_redis()
    if not client:
        return

    try:
        payload = {"generation": generation, "leases": leases}
        await client.setex(
            SEAT_LEASES_KEY, settings.SEAT_STATUS_CACHE_TTL, json.dumps(payload, default=str)
        )
        logger.debug(
            "cache_set",
            key=SEAT_LEASES_KEY,
            generation=generation,
            ttl=settings.SEAT_STATUS_CACHE_TTL,
        )
    except Exception as e:
        logger.error("cache_set_error", key=SEAT_LEASES_KEY, error=str(e))


async def invalidate_seat_status() -> None:
    client = await get_redis()
    if not client:
        return

    try:
        generation = await client.incr(SEAT_LEASES_GENERATION_KEY)
        await client.delete(SEAT_LEASES_KEY)
        logger.debug("cache_invalidated", key=SEAT_LEASES_KEY, generation=generation)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def publish_seat_event(
    event_type: str, order_id: Optional[str], seats: Iterable[int], at: datetime
) -> None:
    client = await get_redis()
    if not client:
        return

    payload = {
        "type": event_type,
        "order_id": order_id,
        "seats": sorted(seats),
        "at": at.isoformat(),
    }
    try:
        await client.publish(settings.SEAT_EVENTS_CHANNEL, json.dumps(payload))
    except Exception as e:
        logger.error("seat_event_publish_error", event_type=event_type, error=str(e))


async def announce_transition(
    event_type: str, order_id: Optional[str], seats: Iterable[int], at: datetime
) -> None:
    """Drop the cached snapshot and notify subscribers."""
    await invalidate_seat_status()
    await publish_seat_event(event_type, order_id, seats, at)


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled" if not settings.REDIS_ENABLED else "unavailable"}

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
