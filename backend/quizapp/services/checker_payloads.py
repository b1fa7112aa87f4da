"""Normalisation of live-checker responses.

The checker has answered in several wrapper formats over time.  All of that
shape handling stays here; the engine only ever sees the typed results below.

Live index shapes (after unwrapping up to three ``{"result": ...}`` layers):

  PARALLEL_ARRAYS  {"ids": [...], "tries": [...], "seconds": [...]}
  ID_LIST          ["q1", "q2", ...]
  OBJECT_LIST      [{"id": "q1", "prompt": ..., "tries": 2, "seconds": 30}, ...]
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel

_MAX_UNWRAP = 3
SUCCESS_MARKER = "Success"


class IndexShape(str, Enum):
    PARALLEL_ARRAYS = "parallel-arrays"
    ID_LIST = "id-list"
    OBJECT_LIST = "object-list"


class LiveQuestionMeta(BaseModel):
    """One entry of the checker's live question index."""

    external_id: str
    prompt: str = ""
    tries: int | None = None
    seconds: int | None = None
    source: Any = None
    display: list[Any] = []


class LiveFormat(BaseModel):
    """Display data for a live question."""

    prompt: str = ""
    setup: str = ""
    expected: str = ""


class CheckVerdict(BaseModel):
    passed: bool
    message: str = ""


# ── helpers ───────────────────────────────────────────────────────────────────


def unwrap_result(data: Any) -> Any:
    """Strip up to three nested ``{"result": ...}`` wrappers."""
    raw = data
    for _ in range(_MAX_UNWRAP):
        if isinstance(raw, dict) and "result" in raw:
            raw = raw["result"]
    return raw


def to_text(value: Any, sep: str = "\n\n") -> str:
    """Flatten whatever the checker sent into displayable text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return sep.join(to_text(v, sep) for v in value)
    if isinstance(value, dict):
        if isinstance(value.get("value"), str):
            return value["value"]
        if isinstance(value.get("values"), list):
            return "\n".join(to_text(v, sep) for v in value["values"])
    try:
        return json.dumps(value, indent=2)
    except (TypeError, ValueError):
        return str(value)


def _positive_int(value: Any) -> int | None:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return None
    return n if n > 0 else None


# ── live index ───────────────────────────────────────────────────────────────


def detect_index_shape(raw: Any) -> IndexShape:
    if isinstance(raw, list):
        if raw and isinstance(raw[0], str):
            return IndexShape.ID_LIST
        return IndexShape.OBJECT_LIST
    return IndexShape.PARALLEL_ARRAYS


def parse_live_index(data: Any) -> list[LiveQuestionMeta]:
    """Normalise a ``GET /ids`` body into live question metadata."""
    raw = unwrap_result(data)
    shape = detect_index_shape(raw)

    if shape is IndexShape.ID_LIST:
        return [LiveQuestionMeta(external_id=str(i)) for i in raw if str(i).strip()]

    if shape is IndexShape.OBJECT_LIST:
        metas = []
        for item in raw:
            if not isinstance(item, dict) or not item.get("id"):
                continue
            metas.append(
                LiveQuestionMeta(
                    external_id=str(item["id"]),
                    prompt=to_text(item.get("prompt") or item.get("question") or ""),
                    tries=_positive_int(item.get("tries")),
                    seconds=_positive_int(item.get("seconds")),
                    source=item.get("source"),
                    display=item.get("display") or [],
                )
            )
        return metas

    if not isinstance(raw, dict):
        return []
    ids = raw.get("ids") if isinstance(raw.get("ids"), list) else raw.get("id")
    if not isinstance(ids, list):
        return []
    tries = raw.get("tries") if isinstance(raw.get("tries"), list) else []
    seconds = raw.get("seconds") if isinstance(raw.get("seconds"), list) else []
    return [
        LiveQuestionMeta(
            external_id=str(qid),
            tries=_positive_int(tries[i]) if i < len(tries) else None,
            seconds=_positive_int(seconds[i]) if i < len(seconds) else None,
        )
        for i, qid in enumerate(ids)
        if str(qid).strip()
    ]


# ── format ───────────────────────────────────────────────────────────────────


def parse_format(data: Any) -> LiveFormat:
    """Normalise a ``POST /format/{id}`` body."""
    outer = data if isinstance(data, dict) else {}
    inner = unwrap_result(data)
    fields = inner if isinstance(inner, dict) else outer

    prompt = ""
    for key in ("prompt", "question", "title", "name"):
        if fields.get(key) is not None:
            prompt = to_text(fields[key]).strip()
            break

    setup = ""
    for key in ("tables", "input", "table", "alfs"):
        if outer.get(key) is not None:
            setup = to_text(outer[key])
            break
        if fields.get(key) is not None:
            setup = to_text(fields[key])
            break
    else:
        result = outer.get("result")
        if isinstance(result, dict) and isinstance(result.get("values"), list):
            setup = to_text(result)

    expected = ""
    result = outer.get("result")
    if isinstance(result, str):
        expected = result
    elif outer.get("expected") is not None:
        expected = to_text(outer["expected"])
    elif fields.get("expected") is not None:
        expected = to_text(fields["expected"])
    elif result is not None and not isinstance(result, dict):
        expected = to_text(result)

    return LiveFormat(prompt=prompt, setup=setup, expected=expected)


# ── check ────────────────────────────────────────────────────────────────────


def parse_verdict(data: Any) -> CheckVerdict:
    """Only the exact success marker passes; anything else is a failure."""
    raw = unwrap_result(data)
    if raw == SUCCESS_MARKER:
        return CheckVerdict(passed=True, message=SUCCESS_MARKER)
    message = to_text(raw).strip() if raw is not None else ""
    return CheckVerdict(passed=False, message=message or "Incorrect")
