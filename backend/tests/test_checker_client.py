"""Tests for the live-checker client and its response normalisation."""

import json

import httpx
import pytest

from quizapp.services.checker_client import CheckerClient
from quizapp.services.checker_payloads import (
    IndexShape,
    detect_index_shape,
    parse_format,
    parse_live_index,
    parse_verdict,
    to_text,
    unwrap_result,
)
from quizapp.services.errors import CheckerUnavailable


# ── payload normalisation ────────────────────────────────────────────────────


def test_unwrap_stops_after_three_layers():
    assert unwrap_result({"result": {"result": {"result": "x"}}}) == "x"
    assert unwrap_result({"result": {"result": {"result": {"result": "x"}}}}) == {"result": "x"}


@pytest.mark.parametrize(
    "body, shape",
    [
        ({"ids": ["a"]}, IndexShape.PARALLEL_ARRAYS),
        (["a", "b"], IndexShape.ID_LIST),
        ([{"id": "a"}], IndexShape.OBJECT_LIST),
    ],
)
def test_detect_index_shape(body, shape):
    assert detect_index_shape(body) is shape


def test_parallel_array_index():
    metas = parse_live_index({"result": {"ids": ["a1", "b2", ""], "tries": [3, "x"], "seconds": [0, 40]}})
    assert [(m.external_id, m.tries, m.seconds) for m in metas] == [("a1", 3, None), ("b2", None, 40)]


def test_singular_id_key_and_id_list():
    assert [m.external_id for m in parse_live_index({"id": ["z9"]})] == ["z9"]
    assert [m.external_id for m in parse_live_index(["a", " ", "b"])] == ["a", "b"]


def test_object_list_index():
    [m] = parse_live_index(
        [{"id": "q7", "prompt": {"value": "Join t and s"}, "tries": 2, "display": ["t"]}, {"prompt": "no id"}]
    )
    assert (m.external_id, m.prompt, m.tries, m.display) == ("q7", "Join t and s", 2, ["t"])


def test_unknown_index_shape_is_empty():
    assert parse_live_index({"result": 42}) == []


def test_to_text_flattens():
    assert to_text(None) == ""
    assert to_text(["a", "b"]) == "a\n\nb"
    assert to_text({"values": ["1", "2"]}) == "1\n2"
    assert json.loads(to_text({"k": 1})) == {"k": 1}


def test_parse_format_reads_prompt_setup_expected():
    fmt = parse_format(
        {"result": {"question": "Sum column a", "tables": "t:([] a:1 2)"}, "expected": "3"}
    )
    assert fmt.prompt == "Sum column a"
    assert fmt.setup == "t:([] a:1 2)"
    assert fmt.expected == "3"


def test_parse_format_string_result_is_expected():
    fmt = parse_format({"title": "T", "input": ["x", "y"], "result": "42"})
    assert (fmt.prompt, fmt.setup, fmt.expected) == ("T", "x\n\ny", "42")


def test_parse_format_table_like_result_is_setup():
    fmt = parse_format({"result": {"values": ["1", "2"]}})
    assert fmt.setup == "1\n2"


def test_verdict_needs_exact_success_marker():
    assert parse_verdict({"result": "Success"}).passed
    assert parse_verdict({"result": {"result": "Success"}}).passed
    assert not parse_verdict({"result": "success"}).passed
    v = parse_verdict({"result": "Expected 3, got 4"})
    assert not v.passed and v.message == "Expected 3, got 4"
    assert parse_verdict({}).message == "{}"
    assert parse_verdict(None).message == "Incorrect"


# ── HTTP client ──────────────────────────────────────────────────────────────


def _client(handler):
    return CheckerClient("http://checker.test/live", timeout=1, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_check_posts_attempt_verbatim():
    seen = {}

    def handler(request: httpx.Request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"result": "Success"})

    client = _client(handler)
    verdict = await client.check("q1", "  sum 1 2\n")
    await client.aclose()

    assert verdict.passed
    assert seen == {"path": "/live/check/q1", "body": {"attempt": "  sum 1 2\n"}}


@pytest.mark.asyncio
async def test_list_live_questions_gets_ids():
    def handler(request):
        assert request.method == "GET" and request.url.path == "/live/ids"
        return httpx.Response(200, json={"ids": ["a", "b"]})

    client = _client(handler)
    assert [m.external_id for m in await client.list_live_questions()] == ["a", "b"]
    await client.aclose()


@pytest.mark.asyncio
async def test_format_posts_and_parses():
    def handler(request):
        assert request.method == "POST" and request.url.path == "/live/format/q1"
        return httpx.Response(200, json={"prompt": "P", "result": "R"})

    client = _client(handler)
    fmt = await client.format("q1")
    await client.aclose()
    assert (fmt.prompt, fmt.expected) == ("P", "R")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "handler",
    [
        lambda r: httpx.Response(500, text="boom"),
        lambda r: httpx.Response(200, text="not json"),
    ],
)
async def test_errors_become_checker_unavailable(handler):
    client = _client(handler)
    with pytest.raises(CheckerUnavailable):
        await client.check("q1", "x")
    await client.aclose()


@pytest.mark.asyncio
async def test_transport_failure_becomes_checker_unavailable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = _client(handler)
    with pytest.raises(CheckerUnavailable):
        await client.list_live_questions()
    assert not await client.healthy()
    await client.aclose()
