"""HTTP client for the external live-checker service (singleton)."""

import logging
from typing import Any

import httpx

from quizapp.config import settings
from quizapp.services.checker_payloads import (
    CheckVerdict,
    LiveFormat,
    LiveQuestionMeta,
    parse_format,
    parse_live_index,
    parse_verdict,
)
from quizapp.services.errors import CheckerUnavailable
from quizapp.services.format_cache import cache_get, cache_set

logger = logging.getLogger(__name__)


class CheckerClient:
    """Thin async wrapper around the live-checker HTTP API.

    Every transport failure, non-2xx status, or unreadable body surfaces as
    ``CheckerUnavailable`` so callers can tell it apart from a failing verdict.
    """

    def __init__(
        self,
        base_url: str = settings.LIVE_CHECKER_URL,
        *,
        timeout: float = settings.LIVE_CHECKER_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self._base, timeout=timeout, transport=transport
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            r = await self._http.request(method, path, **kwargs)
            r.raise_for_status()
            return r.json()
        except httpx.HTTPStatusError as e:
            raise CheckerUnavailable(
                f"Checker returned {e.response.status_code}: {e.response.text[:120]}"
            ) from e
        except httpx.HTTPError as e:
            raise CheckerUnavailable(f"Checker unreachable: {e}") from e
        except ValueError as e:
            raise CheckerUnavailable(f"Checker sent an unreadable body: {e}") from e

    # ── health ────────────────────────────────────────────────────────────

    async def healthy(self) -> bool:
        try:
            return (await self._http.get("/health")).status_code == 200
        except httpx.HTTPError:
            return False

    # ── live question index ───────────────────────────────────────────────

    async def list_live_questions(self) -> list[LiveQuestionMeta]:
        data = await self._request("GET", "/ids")
        metas = parse_live_index(data)
        logger.debug("Live index: %d questions", len(metas))
        return metas

    # ── format (prompt + setup + expected) ────────────────────────────────

    async def format(self, external_id: str) -> LiveFormat:
        params = {"external_id": external_id}
        cached = await cache_get("format", params)
        if cached is not None:
            return LiveFormat.model_validate(cached)

        data = await self._request("POST", f"/format/{external_id}")
        result = parse_format(data)
        await cache_set("format", params, result.model_dump())
        return result

    # ── check one attempt ─────────────────────────────────────────────────

    async def check(self, external_id: str, attempt: str) -> CheckVerdict:
        data = await self._request(
            "POST", f"/check/{external_id}", json={"attempt": attempt}
        )
        return parse_verdict(data)

    async def aclose(self) -> None:
        await self._http.aclose()


# ── singleton accessor ────────────────────────────────────────────────────────

_instance: CheckerClient | None = None


def get_checker_client() -> CheckerClient:
    global _instance
    if _instance is None:
        _instance = CheckerClient()
        logger.info("Live checker client initialised → %s", _instance._base)
    return _instance


async def close_checker_client() -> None:
    global _instance
    if _instance is not None:
        await _instance.aclose()
        _instance = None
