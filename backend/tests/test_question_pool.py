"""Tests for question normalisation, de-duplication and the on-disk bank."""

import json

import pytest

from quizapp.schemas.quiz import LiveCheckQuestion, StaticChoiceQuestion
from quizapp.services.checker_payloads import LiveQuestionMeta
from quizapp.services.question_pool import (
    QuestionBank,
    build_pool,
    dedupe_key,
    dedupe_questions,
    live_questions_from_index,
    load_topic_files,
)

from factories import FakeChecker, live, mcq


def test_build_pool_normalises_ids_and_kinds():
    files = [
        {
            "questions": [
                {
                    "question": "Which commands stage changes?",
                    "options": [
                        {"text": "git add", "isCorrect": True},
                        {"label": "git push"},
                    ],
                },
                {"type": "live", "apiId": "a7", "question": "Sum a", "tries": 3, "seconds": 0},
            ]
        },
        {"questions": [{"question": "Q", "options": [{"value": "yes", "isCorrect": True}]}]},
    ]
    pool = build_pool("git", files)

    assert [q.id for q in pool] == ["git_0_0", "git_0_1", "git_1_0"]
    first = pool[0]
    assert isinstance(first, StaticChoiceQuestion)
    assert [o.id for o in first.options] == ["git_0_0_opt_0", "git_0_0_opt_1"]
    assert first.correct_option_ids == ["git_0_0_opt_0"]
    assert pool[2].options[0].text == "yes"

    lv = pool[1]
    assert isinstance(lv, LiveCheckQuestion)
    assert lv.external_id == "a7"
    assert lv.retry_limit == 3
    assert lv.time_budget_seconds is None


def test_malformed_questions_are_dropped():
    files = [
        {
            "questions": [
                {"question": "No correct answer", "options": [{"text": "a"}]},
                {"type": "live", "question": "no id"},
                {"question": "ok", "options": [{"text": "a", "isCorrect": True}]},
            ]
        }
    ]
    assert [q.id for q in build_pool("git", files)] == ["git_0_2"]


def test_prompt_parts_are_kept():
    files = [
        {
            "questions": [
                {
                    "question": "",
                    "questionParts": [{"type": "code", "value": "select from t"}, {"value": ""}],
                    "options": [{"text": "a", "isCorrect": True}],
                }
            ]
        }
    ]
    q = build_pool("q", files)[0]
    assert [(p.type, p.value) for p in q.prompt_parts] == [("code", "select from t")]


def test_dedupe_key_rules():
    assert dedupe_key(live("Q1 ")) == "q1"
    assert dedupe_key(mcq(" G1")) == "g1"


def test_first_occurrence_wins():
    a, b = live("q1"), live("Q1")
    assert dedupe_questions([a, b, mcq("g1")]) == [a, mcq("g1")]


def test_live_questions_from_index():
    metas = [LiveQuestionMeta(external_id="x1", tries=2, seconds=40)]
    [q] = live_questions_from_index("live", metas)
    assert q.id == "live_x1"
    assert (q.retry_limit, q.time_budget_seconds) == (2, 40)


def test_load_topic_files_numeric_order(tmp_path):
    for name, qid in [("git10.json", "ten"), ("git2.json", "two"), ("gitx.json", "x"), ("linux1.json", "l")]:
        (tmp_path / name).write_text(json.dumps({"questions": [], "tag": qid}))
    docs = load_topic_files(tmp_path, "git")
    assert [d["tag"] for d in docs] == ["two", "ten"]


@pytest.mark.asyncio
async def test_bank_survives_live_fetch_failure(tmp_path):
    (tmp_path / "live1.json").write_text(
        json.dumps({"questions": [{"type": "live", "apiId": "s1", "question": "static live"}]})
    )
    (tmp_path / "git1.json").write_text(
        json.dumps({"questions": [{"question": "Q", "options": [{"text": "a", "isCorrect": True}]}]})
    )
    bank = QuestionBank(tmp_path, ["git", "live"], "live")

    pools = await bank.pools_for(["git", "live", "bogus"], FakeChecker(fail=True))
    assert set(pools) == {"git", "live"}
    assert [q.id for q in pools["live"]] == ["live_0_0"]

    pools = await bank.pools_for(["live"], FakeChecker(live_ids=["s1", "n2"]))
    assert [q.id for q in pools["live"]] == ["live_0_0", "live_n2"]
