"""Question pool builder.

Turns raw question files (one ``{"questions": [...]}`` document per file) and
the checker's live index into flat, de-duplicated pools of ``Question``s, one
pool per topic.

Ids are derived from position so they stay stable between builds:
  static question  →  {topic}_{fileIndex}_{questionIndex}
  option           →  {questionId}_opt_{optionIndex}
  fetched live     →  live_{externalId}
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Iterable, Sequence

from pydantic import ValidationError

from quizapp.schemas.quiz import (
    ChoiceOption,
    LiveCheckQuestion,
    PromptSpan,
    Question,
    StaticChoiceQuestion,
)
from quizapp.services.checker_payloads import LiveQuestionMeta
from quizapp.services.errors import CheckerUnavailable

logger = logging.getLogger(__name__)


# ── raw → Question ───────────────────────────────────────────────────────────


def _prompt_parts(raw: Any) -> list[PromptSpan] | None:
    if not isinstance(raw, list):
        return None
    parts = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        value = str(item.get("value") or "")
        if value:
            parts.append(
                PromptSpan(type="code" if item.get("type") == "code" else "text", value=value)
            )
    return parts


def _positive(value: Any) -> int | None:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return None
    return n if n > 0 else None


def _normalise(topic: str, question_id: str, raw: dict[str, Any]) -> Question:
    kind = raw.get("type") or "mcq"

    if kind == "live":
        return LiveCheckQuestion(
            id=question_id,
            topic=topic,
            external_id=str(raw.get("apiId") or raw.get("id") or ""),
            prompt=str(raw.get("question") or raw.get("prompt") or ""),
            prompt_parts=_prompt_parts(raw.get("promptParts"))
            or _prompt_parts(raw.get("questionParts")),
            retry_limit=_positive(raw.get("tries")),
            time_budget_seconds=_positive(raw.get("seconds")),
            source=raw.get("source"),
            display=raw.get("display") or [],
        )

    options = [
        ChoiceOption(
            id=f"{question_id}_opt_{i}",
            text=str(opt.get("text") or opt.get("label") or opt.get("value") or ""),
            is_correct=bool(opt.get("isCorrect")),
        )
        for i, opt in enumerate(raw.get("options") or [])
        if isinstance(opt, dict)
    ]
    return StaticChoiceQuestion(
        id=question_id,
        topic=topic,
        prompt=str(raw.get("question") or ""),
        prompt_parts=_prompt_parts(raw.get("questionParts")),
        options=options,
    )


def build_pool(topic: str, files: Sequence[dict[str, Any]]) -> list[Question]:
    """Normalise every question of every file for one topic.

    Questions that violate the model invariants (no correct option, live
    question without an external id) are logged and dropped.
    """
    pool: list[Question] = []
    for f_index, doc in enumerate(files):
        for q_index, raw in enumerate(doc.get("questions") or []):
            question_id = f"{topic}_{f_index}_{q_index}"
            try:
                pool.append(_normalise(topic, question_id, raw))
            except ValidationError as e:
                logger.warning("Dropping malformed question %s: %s", question_id, e.errors()[0]["msg"])
    return pool


def live_questions_from_index(topic: str, metas: Iterable[LiveQuestionMeta]) -> list[Question]:
    return [
        LiveCheckQuestion(
            id=f"live_{m.external_id}",
            topic=topic,
            external_id=m.external_id,
            prompt=m.prompt,
            retry_limit=m.tries,
            time_budget_seconds=m.seconds,
            source=m.source,
            display=m.display,
        )
        for m in metas
    ]


# ── de-duplication ───────────────────────────────────────────────────────────


def dedupe_key(question: Question) -> str:
    """Natural key: external id for live, else own id (or prompt text)."""
    if isinstance(question, LiveCheckQuestion):
        raw = question.external_id
    else:
        raw = question.id or question.prompt
    return str(raw).strip().lower()


def dedupe_questions(questions: Iterable[Question]) -> list[Question]:
    """First occurrence wins."""
    seen: dict[str, Question] = {}
    for q in questions:
        seen.setdefault(dedupe_key(q), q)
    return list(seen.values())


# ── question bank on disk ────────────────────────────────────────────────────


_FILE_INDEX = re.compile(r"(\d+)$")


def _file_order(path: Path) -> tuple[int, str]:
    m = _FILE_INDEX.search(path.stem)
    return (int(m.group(1)) if m else 0, path.name)


def load_topic_files(bank_dir: str | Path, topic: str) -> list[dict[str, Any]]:
    """Read ``{topic}{n}.json`` files in numeric order."""
    pattern = re.compile(rf"^{re.escape(topic)}\d+$")
    paths = sorted(
        (p for p in Path(bank_dir).glob("*.json") if pattern.match(p.stem)),
        key=_file_order,
    )
    docs = []
    for p in paths:
        with p.open(encoding="utf-8") as fh:
            docs.append(json.load(fh))
    return docs


class QuestionBank:
    """Static pools per topic, plus the live pool fetched fresh per build."""

    def __init__(self, bank_dir: str | Path, topics: Iterable[str], live_topic: str) -> None:
        self._bank_dir = Path(bank_dir)
        self._topics = list(topics)
        self._live_topic = live_topic
        self._static: dict[str, list[Question]] = {}

    @property
    def topics(self) -> list[str]:
        return list(self._topics)

    def static_pool(self, topic: str) -> list[Question]:
        if topic not in self._static:
            files = load_topic_files(self._bank_dir, topic) if self._bank_dir.is_dir() else []
            self._static[topic] = build_pool(topic, files)
            logger.info("Loaded %d static questions for topic %s", len(self._static[topic]), topic)
        return self._static[topic]

    async def pools_for(self, topics: Iterable[str], checker: Any) -> dict[str, list[Question]]:
        """One de-duplicated pool per requested topic.

        A failed live index fetch leaves the live pool with its static
        entries only; the other topics are unaffected.
        """
        pools: dict[str, list[Question]] = {}
        for topic in topics:
            if topic not in self._topics:
                logger.warning("Ignoring unknown topic %r", topic)
                continue
            pool = list(self.static_pool(topic))
            if topic == self._live_topic:
                try:
                    metas = await checker.list_live_questions()
                    pool.extend(live_questions_from_index(topic, metas))
                except CheckerUnavailable as e:
                    logger.warning("Live question fetch failed, continuing without: %s", e)
            pools[topic] = dedupe_questions(pool)
        return pools
