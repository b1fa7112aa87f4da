"""In-progress quiz session: cursor, responses, timers and live attempts.

Driven by three kinds of input: user actions (toggle, type, run, navigate,
skip, submit), ``tick()`` once per second, and checker responses that may
arrive out of order.  A checker response is applied only while the same
question is still on screen in the same session generation; anything else
is dropped.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from quizapp.schemas.quiz import (
    LiveCheckQuestion,
    LiveStateRead,
    OptionView,
    QuestionKind,
    QuestionView,
    QuizConfig,
    SessionQuestion,
    SessionRead,
    StaticChoiceQuestion,
)
from quizapp.schemas.results import Participant, ResultRecord, SubmitReason
from quizapp.services.errors import (
    CheckerUnavailable,
    NavigationError,
    SessionFinished,
    UnknownQuestion,
)
from quizapp.services.live_attempts import LiveAttemptCoordinator, LiveState
from quizapp.services.result_builder import build_record
from quizapp.services.session_assembler import SessionPlan
from quizapp.services.timers import QuestionClock, SessionClock, clamp_finish, skip_remainder

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuizSession:
    def __init__(
        self,
        plan: SessionPlan,
        config: QuizConfig,
        participant: Participant,
        *,
        clock: Callable[[], datetime] = _utcnow,
        coordinator: LiveAttemptCoordinator | None = None,
    ) -> None:
        self.plan = plan
        self.config = config
        self.participant = participant
        self.coordinator = coordinator or LiveAttemptCoordinator()
        self._now = clock

        self.started_at = self._now()
        self.session_clock = (
            SessionClock(plan.total_allotted_seconds) if plan.session_clock_enabled else None
        )
        self.selected: dict[str, set[str]] = {}
        self.attempts: dict[str, str] = {}
        self.live: dict[str, LiveState] = {
            sq.id: LiveState(attempts_limit=sq.retry_limit or config.default_retry_limit(sq.kind))
            for sq in plan.questions
            if sq.kind is QuestionKind.LIVE_CHECK
        }
        self.question_clocks: dict[str, QuestionClock] = {}

        self.generation = 0
        self.epoch = 0
        self.current_index = 0
        self.entered_at = self.started_at
        self.finished = False
        self.abandoned = False
        self.result: ResultRecord | None = None
        self.result_id: str | None = None
        self._pending_advance: tuple[str, int, datetime] | None = None

        self._enter(0)

    # ── lookups ───────────────────────────────────────────────────────────

    @property
    def questions(self) -> list[SessionQuestion]:
        return self.plan.questions

    @property
    def current(self) -> SessionQuestion:
        return self.plan.questions[self.current_index]

    @property
    def is_last(self) -> bool:
        return self.current_index >= len(self.plan.questions) - 1

    def _question(self, question_id: str) -> SessionQuestion:
        for sq in self.plan.questions:
            if sq.id == question_id:
                return sq
        raise UnknownQuestion(f"Question {question_id!r} is not part of this session")

    def _require_active(self) -> None:
        if self.finished or self.abandoned:
            raise SessionFinished("This quiz session has already ended")

    # ── navigation ────────────────────────────────────────────────────────

    def _enter(self, index: int) -> None:
        if index != self.current_index:
            leaving = self.current
            if leaving.id in self.live:
                self.coordinator.cancel(self.live[leaving.id])
        self.current_index = index
        self.entered_at = self._now()
        self.epoch += 1
        self._pending_advance = None

        sq = self.current
        state = self.live.get(sq.id)
        if state is not None and sq.id not in self.question_clocks and not state.locked:
            self.question_clocks[sq.id] = QuestionClock(sq.allotted_seconds)

    def go_next(self) -> None:
        self._require_active()
        if self.is_last:
            raise NavigationError("Already at the last question")
        self._enter(self.current_index + 1)

    def go_back(self) -> None:
        self._require_active()
        if self.current_index == 0:
            raise NavigationError("Already at the first question")
        self._enter(self.current_index - 1)

    def skip(self) -> int:
        """Move on, debiting the session clock by the unused part of the allotment.

        Returns the seconds debited.  Skipping the last question is not
        allowed; submit instead.
        """
        self._require_active()
        if self.is_last:
            raise NavigationError("Cannot skip the last question, submit instead")
        elapsed = (self._now() - self.entered_at).total_seconds()
        remainder = skip_remainder(self.current.allotted_seconds, elapsed)
        if self.session_clock is not None and self.session_clock.debit(remainder):
            self.submit(SubmitReason.TIMEOUT)
            return remainder
        self._enter(self.current_index + 1)
        return remainder

    # ── responses ─────────────────────────────────────────────────────────

    def toggle_option(self, question_id: str, option_id: str) -> set[str]:
        self._require_active()
        q = self._question(question_id).question
        if not isinstance(q, StaticChoiceQuestion):
            raise UnknownQuestion(f"Question {question_id!r} has no options")
        if not any(o.id == option_id for o in q.options):
            raise UnknownQuestion(f"Option {option_id!r} is not part of question {question_id!r}")
        chosen = self.selected.setdefault(question_id, set())
        chosen.symmetric_difference_update({option_id})
        return chosen

    def set_attempt_text(self, question_id: str, text: str) -> None:
        self._require_active()
        sq = self._question(question_id)
        if not isinstance(sq.question, LiveCheckQuestion):
            raise UnknownQuestion(f"Question {question_id!r} is not a live question")
        if self.live[question_id].frozen:
            return
        self.attempts[question_id] = text

    async def run_live(self, question_id: str, checker: Any) -> LiveState:
        """Submit the current attempt text of a live question to the checker."""
        self._require_active()
        sq = self._question(question_id)
        if not isinstance(sq.question, LiveCheckQuestion):
            raise UnknownQuestion(f"Question {question_id!r} is not a live question")
        if sq.id != self.current.id:
            raise NavigationError("Only the question on screen can be run")

        state = self.live[question_id]
        text = self.attempts.get(question_id, "")
        outcome = self.coordinator.begin(state, text)
        if outcome.auto_advance:
            self._schedule_advance(question_id)
        if not outcome.dispatched:
            return state

        epoch, generation = self.epoch, self.generation
        try:
            verdict = await checker.check(sq.question.external_id, text)
        except CheckerUnavailable as e:
            if self._still_on(question_id, epoch, generation):
                self.coordinator.apply_error(state, outcome.token, str(e))
            logger.warning("Live check for %s failed: %s", question_id, e)
            return state

        if not self._still_on(question_id, epoch, generation):
            logger.debug("Dropping stale verdict for %s", question_id)
            return state

        result = self.coordinator.apply_verdict(state, outcome.token, verdict)
        if result.auto_advance:
            clock = self.question_clocks.get(question_id)
            if clock is not None:
                clock.stop()
            self._schedule_advance(question_id)
        return state

    def _still_on(self, question_id: str, epoch: int, generation: int) -> bool:
        return (
            not self.finished
            and not self.abandoned
            and self.generation == generation
            and self.epoch == epoch
            and self.current.id == question_id
        )

    # ── timers ────────────────────────────────────────────────────────────

    def tick(self) -> None:
        """One second of wall time."""
        if self.finished or self.abandoned:
            return
        if self.session_clock is not None and self.session_clock.tick():
            self.submit(SubmitReason.TIMEOUT)
            return

        sq = self.current
        clock = self.question_clocks.get(sq.id)
        if clock is not None and clock.tick():
            if self.coordinator.timeout(self.live[sq.id]):
                logger.debug("Live question %s timed out", sq.id)
                self._schedule_advance(sq.id)
        self.poll()

    def _schedule_advance(self, question_id: str) -> None:
        due = self._now() + timedelta(seconds=self.config.auto_advance_delay_seconds)
        self._pending_advance = (question_id, self.epoch, due)
        if self.config.auto_advance_delay_seconds <= 0:
            self.poll()

    def poll(self) -> None:
        """Carry out a scheduled auto-advance once its settle delay has passed."""
        if self.finished or self.abandoned or self._pending_advance is None:
            return
        question_id, epoch, due = self._pending_advance
        if epoch != self.epoch or question_id != self.current.id:
            self._pending_advance = None
            return
        if self._now() < due:
            return
        self._pending_advance = None
        if self.is_last:
            self.submit(SubmitReason.AUTO_ADVANCE)
        else:
            self._enter(self.current_index + 1)

    # ── lifecycle ─────────────────────────────────────────────────────────

    def submit(self, reason: SubmitReason = SubmitReason.MANUAL) -> ResultRecord:
        """Freeze the session into a result record (idempotent)."""
        if self.result is not None:
            return self.result
        if self.abandoned:
            raise SessionFinished("This quiz session was abandoned")

        total = self.plan.total_allotted_seconds
        if reason is SubmitReason.TIMEOUT:
            finished_at = self.started_at + timedelta(seconds=total)
        else:
            finished_at = self._now()
        finished_at, duration = clamp_finish(self.started_at, finished_at, total)

        state = self.live.get(self.current.id)
        if state is not None:
            self.coordinator.cancel(state)
        for clock in self.question_clocks.values():
            clock.stop()
        self._pending_advance = None
        self.finished = True

        self.result = build_record(
            participant=self.participant,
            topics=self.plan.topics,
            questions=self.plan.questions,
            selected=self.selected,
            attempts=self.attempts,
            live=self.live,
            started_at=self.started_at,
            finished_at=finished_at,
            duration_seconds=duration,
            reason=reason,
            policy=self.config.scoring,
        )
        logger.info(
            "Session submitted: user=%s reason=%s questions=%d correct=%d points=%s",
            self.participant.email, reason.value, self.result.total_questions,
            self.result.correct_count, self.result.score,
        )
        return self.result

    def abandon(self) -> None:
        """Drop the session without a result; late checker responses are ignored."""
        self.generation += 1
        self.abandoned = True
        self._pending_advance = None
        for clock in self.question_clocks.values():
            clock.stop()

    # ── rendering ─────────────────────────────────────────────────────────

    def live_view(self, question_id: str) -> LiveStateRead | None:
        state = self.live.get(question_id)
        if state is None:
            return None
        clock = self.question_clocks.get(question_id)
        return LiveStateRead(
            status=state.status,
            message=state.message,
            attempts_used=state.attempts_used,
            attempts_limit=state.attempts_limit,
            seconds_left=clock.remaining if clock is not None else None,
        )

    def view(self) -> SessionRead:
        sq = self.current
        q = sq.question
        question = QuestionView(
            id=q.id,
            kind=sq.kind,
            topic=q.topic,
            prompt=q.prompt,
            prompt_parts=q.prompt_parts,
            options=[OptionView(id=o.id, text=o.text) for o in q.options]
            if isinstance(q, StaticChoiceQuestion)
            else [],
            external_id=q.external_id if isinstance(q, LiveCheckQuestion) else None,
            allotted_seconds=sq.allotted_seconds,
        )
        return SessionRead(
            topics=self.plan.topics,
            current_index=self.current_index,
            total_questions=len(self.plan.questions),
            time_left_seconds=self.session_clock.remaining if self.session_clock is not None else None,
            finished=self.finished,
            result_id=self.result_id,
            question=question,
            selected_option_ids=[o.id for o in getattr(q, "options", []) if o.id in self.selected.get(q.id, set())],
            attempt=self.attempts.get(q.id, ""),
            live=self.live_view(q.id),
        )
