"""Result record builder: a finished session → one immutable ``ResultRecord``."""

from __future__ import annotations

from datetime import datetime
from typing import Mapping

from quizapp.schemas.quiz import LiveCheckQuestion, LiveStatus, ScoringPolicy, SessionQuestion
from quizapp.schemas.results import (
    LiveStatusSnapshot,
    Participant,
    ResultEntry,
    ResultRecord,
    SubmitReason,
)
from quizapp.services.live_attempts import LiveState
from quizapp.services.scoring import score_record


def _prompt_text(sq: SessionQuestion) -> str:
    q = sq.question
    if q.prompt:
        return q.prompt
    if q.prompt_parts:
        return "".join(p.value for p in q.prompt_parts)
    if isinstance(q, LiveCheckQuestion):
        return q.external_id
    return ""


def build_entry(
    sq: SessionQuestion,
    *,
    selected: set[str] | frozenset[str] = frozenset(),
    attempt: str = "",
    live: LiveState | None = None,
    setup_text: str = "",
) -> ResultEntry:
    q = sq.question
    if isinstance(q, LiveCheckQuestion):
        snapshot = live.snapshot() if live else LiveStatusSnapshot()
        return ResultEntry(
            question_id=q.id,
            kind="live",
            question_text=_prompt_text(sq),
            external_id=q.external_id,
            attempt=attempt,
            live_status=snapshot,
            attempts_used=live.attempts_used if live else 0,
            attempts_limit=sq.retry_limit,
            setup_text=setup_text,
            was_answered=bool(attempt.strip()),
            is_correct=snapshot.status is LiveStatus.CORRECT,
        )

    correct = set(q.correct_option_ids)
    chosen = {oid for oid in selected if any(o.id == oid for o in q.options)}
    return ResultEntry(
        question_id=q.id,
        kind="mcq",
        question_text=_prompt_text(sq),
        options=list(q.options),
        correct_option_ids=[o.id for o in q.options if o.id in correct],
        selected_option_ids=[o.id for o in q.options if o.id in chosen],
        was_answered=bool(chosen),
        is_correct=chosen == correct,
    )


def build_record(
    *,
    participant: Participant,
    topics: list[str],
    questions: list[SessionQuestion],
    selected: Mapping[str, set[str]],
    attempts: Mapping[str, str],
    live: Mapping[str, LiveState],
    started_at: datetime,
    finished_at: datetime,
    duration_seconds: int,
    reason: SubmitReason,
    policy: ScoringPolicy,
) -> ResultRecord:
    """Exactly one entry per question; aggregates derived by the scoring engine."""
    entries = [
        build_entry(
            sq,
            selected=selected.get(sq.id, set()),
            attempt=attempts.get(sq.id, ""),
            live=live.get(sq.id),
        )
        for sq in questions
    ]
    draft = ResultRecord(
        user_id=participant.user_id,
        email=participant.email,
        first_name=participant.first_name,
        last_name=participant.last_name,
        topics=list(topics),
        started_at=started_at,
        finished_at=finished_at,
        duration_seconds=duration_seconds,
        total_questions=len(entries),
        attempted_count=0,
        reason=reason,
        results=entries,
    )
    b = score_record(draft, policy)
    return draft.model_copy(
        update={
            "attempted_count": b.attempted,
            "correct_count": b.correct,
            "wrong_count": b.wrong,
            "skipped_count": b.skipped,
            "timed_out_count": b.timed_out,
            "score": b.points,
        }
    )
