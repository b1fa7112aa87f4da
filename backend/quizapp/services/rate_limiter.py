"""Per-user leaky bucket in front of live checks.

Every user owns one Redis hash ``rl:check:u:{user_id}`` holding the tokens
left and the time they were last topped up.  Tokens drip back at
``RATE_LIMIT_CHECK_RPM / 60`` per second, capped at ``RATE_LIMIT_CHECK_BURST``;
a run that finds less than one token is answered with 429.

The refill and the spend happen in one Lua call so concurrent requests for
the same user cannot both take the last token.
"""

import logging
import time
import uuid

import redis.asyncio as redis
from fastapi import Depends, HTTPException, status
from redis.exceptions import RedisError

from quizapp.api.deps import get_current_user
from quizapp.config import settings
from quizapp.db.models import User

logger = logging.getLogger(__name__)

_pool: redis.ConnectionPool | None = None

# KEYS[1] bucket, ARGV = burst, tokens per second, now.  Returns 1 when allowed.
_SPEND_TOKEN = """
local burst, rate, now = tonumber(ARGV[1]), tonumber(ARGV[2]), tonumber(ARGV[3])
local state = redis.call('HMGET', KEYS[1], 'tokens', 'ts')
local tokens = tonumber(state[1]) or burst
local ts = tonumber(state[2]) or now

tokens = math.min(burst, tokens + math.max(0, now - ts) * rate)
local ok = 0
if tokens >= 1 then
    tokens = tokens - 1
    ok = 1
end

redis.call('HSET', KEYS[1], 'tokens', tokens, 'ts', now)
redis.call('EXPIRE', KEYS[1], math.ceil(burst / rate) + 60)
return ok
"""


def _get_redis() -> redis.Redis:
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


def bucket_key(user_id: uuid.UUID) -> str:
    return f"rl:check:u:{user_id}"


async def allow_check(user_id: uuid.UUID) -> bool:
    """Spend one token for ``user_id``; True when the run may go ahead."""
    rpm = settings.RATE_LIMIT_CHECK_RPM
    if rpm <= 0:
        return True

    key = bucket_key(user_id)
    try:
        allowed = await _get_redis().eval(
            _SPEND_TOKEN, 1, key, settings.RATE_LIMIT_CHECK_BURST, rpm / 60.0, time.time()
        )
    except (RedisError, OSError) as e:
        logger.warning("Rate limiter unavailable, letting %s through: %s", key, e)
        return True
    return bool(allowed)


async def require_check_rate_limit(current_user: User = Depends(get_current_user)) -> None:
    """Dependency for the live run route; 429 when the user's bucket is empty."""
    if not await allow_check(current_user.id):
        logger.info("Live checks throttled for %s", current_user.email)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many live checks, please slow down.",
        )
