"""Redis-backed cache for live question format lookups.

``format`` is a read-only, idempotent lookup on the checker, so its result
can be reused across sessions and result pages. Keys are content-addressable
(SHA-256 of the serialised request).
"""

import hashlib
import json
import logging
from typing import Any

import redis.asyncio as redis

from quizapp.config import settings

logger = logging.getLogger(__name__)

_pool: redis.ConnectionPool | None = None


def _get_redis() -> redis.Redis:
    """Return a Redis client backed by a shared connection pool."""
    global _pool
    if _pool is None:
        _pool = redis.ConnectionPool.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            max_connections=10,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
        )
    return redis.Redis(connection_pool=_pool)


def _make_key(prefix: str, params: dict[str, Any]) -> str:
    """Create a deterministic cache key from prefix + sorted param hash."""
    serialised = json.dumps(params, sort_keys=True, default=str)
    digest = hashlib.sha256(serialised.encode()).hexdigest()[:16]
    return f"live_cache:{prefix}:{digest}"


async def cache_get(prefix: str, params: dict[str, Any]) -> dict[str, Any] | None:
    """Retrieve a cached lookup (or None on miss/disabled)."""
    if not settings.FORMAT_CACHE_ENABLED:
        return None
    try:
        r = _get_redis()
        key = _make_key(prefix, params)
        raw = await r.get(key)
        if raw:
            logger.debug("Format cache HIT: %s", key)
            return json.loads(raw)
        logger.debug("Format cache MISS: %s", key)
        return None
    except Exception as e:
        logger.warning("Format cache read failed (non-fatal): %s", e)
        return None


async def cache_set(
    prefix: str,
    params: dict[str, Any],
    result: dict[str, Any],
    ttl: int | None = None,
) -> None:
    """Store a lookup result in cache."""
    if not settings.FORMAT_CACHE_ENABLED:
        return
    try:
        r = _get_redis()
        key = _make_key(prefix, params)
        await r.setex(key, ttl or settings.FORMAT_CACHE_TTL_SECONDS, json.dumps(result, default=str))
        logger.debug("Format cache SET: %s (ttl=%ds)", key, ttl or settings.FORMAT_CACHE_TTL_SECONDS)
    except Exception as e:
        logger.warning("Format cache write failed (non-fatal): %s", e)
