"""Session assembler: topic pools → one randomized, budgeted question list."""

from __future__ import annotations

import logging
import random
from typing import Iterable, Mapping, Sequence

from pydantic import BaseModel

from quizapp.schemas.quiz import (
    LiveCheckQuestion,
    Question,
    QuestionKind,
    QuizConfig,
    SessionQuestion,
    StaticChoiceQuestion,
)
from quizapp.services.errors import NoQuestionsAvailable
from quizapp.services.question_pool import dedupe_questions

logger = logging.getLogger(__name__)


class SessionPlan(BaseModel):
    """Output of the assembler, fixed for the whole attempt."""

    topics: list[str]
    questions: list[SessionQuestion]
    session_clock_enabled: bool = True

    model_config = {"frozen": True}

    @property
    def total_allotted_seconds(self) -> int:
        return sum(q.allotted_seconds for q in self.questions)


class SessionAssembler:
    def __init__(self, config: QuizConfig, rng: random.Random | None = None) -> None:
        self.config = config
        self.rng = rng or random.Random()

    def is_live_only(self, topics: Sequence[str]) -> bool:
        return list(dict.fromkeys(topics)) == [self.config.live_topic]

    def assemble(self, topics: Sequence[str], pools: Mapping[str, Iterable[Question]]) -> SessionPlan:
        """Build a session from the requested topics' pools.

        Raises ``NoQuestionsAvailable`` when the union is empty; a pool that
        is merely smaller than the configured count yields a shorter session.
        """
        topics = list(dict.fromkeys(topics))
        union: list[Question] = []
        for topic in topics:
            union.extend(pools.get(topic, []))
        pool = dedupe_questions(union)
        if not pool:
            raise NoQuestionsAvailable(f"No questions available for topics: {', '.join(topics)}")

        n = self.config.questions_per_attempt
        live_only = self.is_live_only(topics)
        if live_only and len(pool) > n:
            picked = self._recency_biased(pool, n)
        else:
            picked = list(pool)
            self.rng.shuffle(picked)
            picked = picked[:n]

        questions = [self._budget(self._shuffle_options(q)) for q in picked]
        logger.info(
            "Assembled session: topics=%s questions=%d (pool %d)%s",
            topics, len(questions), len(pool), " live-only" if live_only else "",
        )
        return SessionPlan(topics=topics, questions=questions, session_clock_enabled=not live_only)

    def _recency_biased(self, pool: list[Question], n: int) -> list[Question]:
        # pool order is bank order, so newest live items sit at the tail
        k = min(self.config.live_recent_count, n)
        recent = pool[len(pool) - k:] if k else []
        rest = pool[: len(pool) - k]
        picked = recent + self.rng.sample(rest, n - k)
        self.rng.shuffle(picked)
        return picked

    def _shuffle_options(self, question: Question) -> Question:
        if not isinstance(question, StaticChoiceQuestion):
            return question
        options = list(question.options)
        self.rng.shuffle(options)
        return question.model_copy(update={"options": options})

    def _budget(self, question: Question) -> SessionQuestion:
        kind = QuestionKind(question.kind)
        seconds = self.config.default_seconds(kind)
        retry_limit = None
        if isinstance(question, LiveCheckQuestion):
            if question.time_budget_seconds and question.time_budget_seconds > 0:
                seconds = question.time_budget_seconds
            retry_limit = question.retry_limit if question.retry_limit and question.retry_limit > 0 else None
            retry_limit = retry_limit or self.config.default_retry_limit(kind)
        return SessionQuestion(question=question, allotted_seconds=seconds, retry_limit=retry_limit)
