"""Format cache and check rate limiter: both must fail open without Redis."""

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import TimeoutError as RedisTimeoutError

from quizapp.config import settings
from quizapp.services import format_cache, rate_limiter


# ── format cache ──────────────────────────────────────────────────────────────


def test_make_key_is_deterministic():
    a = format_cache._make_key("format", {"id": "q1", "v": 2})
    b = format_cache._make_key("format", {"v": 2, "id": "q1"})
    assert a == b
    assert a.startswith("live_cache:format:")
    assert a != format_cache._make_key("format", {"id": "q2", "v": 2})


@pytest.mark.asyncio
async def test_cache_disabled_is_a_miss(monkeypatch):
    monkeypatch.setattr(settings, "FORMAT_CACHE_ENABLED", False)
    with patch.object(format_cache, "_get_redis") as get_redis:
        assert await format_cache.cache_get("format", {"id": "q1"}) is None
        await format_cache.cache_set("format", {"id": "q1"}, {"prompt": "p"})
    get_redis.assert_not_called()


@pytest.mark.asyncio
async def test_cache_hit_and_set(monkeypatch):
    monkeypatch.setattr(settings, "FORMAT_CACHE_ENABLED", True)
    fake = MagicMock()
    fake.get = AsyncMock(return_value='{"prompt": "p"}')
    fake.setex = AsyncMock()
    with patch.object(format_cache, "_get_redis", return_value=fake):
        assert await format_cache.cache_get("format", {"id": "q1"}) == {"prompt": "p"}
        await format_cache.cache_set("format", {"id": "q1"}, {"prompt": "p"}, ttl=5)

    key, ttl, payload = fake.setex.await_args.args
    assert key == format_cache._make_key("format", {"id": "q1"})
    assert ttl == 5
    assert payload == '{"prompt": "p"}'


@pytest.mark.asyncio
async def test_cache_fails_open_on_redis_errors(monkeypatch):
    monkeypatch.setattr(settings, "FORMAT_CACHE_ENABLED", True)
    fake = MagicMock()
    fake.get = AsyncMock(side_effect=ConnectionError("redis down"))
    fake.setex = AsyncMock(side_effect=ConnectionError("redis down"))
    with patch.object(format_cache, "_get_redis", return_value=fake):
        assert await format_cache.cache_get("format", {"id": "q1"}) is None
        await format_cache.cache_set("format", {"id": "q1"}, {"prompt": "p"})


# ── rate limiter ──────────────────────────────────────────────────────────────

USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")


@pytest.mark.asyncio
async def test_rate_limit_disabled_allows_everything(monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_CHECK_RPM", 0)
    with patch.object(rate_limiter, "_get_redis") as get_redis:
        assert await rate_limiter.allow_check(USER_ID) is True
    get_redis.assert_not_called()


@pytest.mark.asyncio
async def test_rate_limit_uses_bucket_verdict(monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_CHECK_RPM", 30)
    monkeypatch.setattr(settings, "RATE_LIMIT_CHECK_BURST", 5)
    fake = MagicMock()
    fake.eval = AsyncMock(return_value=0)
    with patch.object(rate_limiter, "_get_redis", return_value=fake):
        assert await rate_limiter.allow_check(USER_ID) is False

    args = fake.eval.await_args.args
    assert args[1:5] == (1, f"rl:check:u:{USER_ID}", 5, 0.5)


@pytest.mark.asyncio
async def test_rate_limit_fails_open(monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_CHECK_RPM", 30)
    fake = MagicMock()
    fake.eval = AsyncMock(side_effect=RedisTimeoutError("redis down"))
    with patch.object(rate_limiter, "_get_redis", return_value=fake):
        assert await rate_limiter.allow_check(USER_ID) is True


def test_redis_pools_use_short_socket_timeouts(monkeypatch):
    monkeypatch.setattr(rate_limiter, "_pool", None)
    monkeypatch.setattr(format_cache, "_pool", None)
    with patch("redis.asyncio.ConnectionPool.from_url") as from_url, patch("redis.asyncio.Redis"):
        rate_limiter._get_redis()
        format_cache._get_redis()
    for call in from_url.call_args_list:
        assert call.kwargs["socket_timeout"] == settings.REDIS_SOCKET_TIMEOUT_SECONDS
        assert call.kwargs["socket_connect_timeout"] == settings.REDIS_SOCKET_TIMEOUT_SECONDS
    assert from_url.call_count == 2


def test_run_is_rejected_when_bucket_is_empty(client: TestClient, auth_headers, checker):
    client.post("/api/quiz/start", json={"topics": ["live"]}, headers=auth_headers)
    with patch.object(rate_limiter, "allow_check", AsyncMock(return_value=False)):
        r = client.post("/api/quiz/session/run", json={"question_id": "live_q1"}, headers=auth_headers)
    assert r.status_code == 429
    assert checker.calls == []
