"""Live-question attempt coordinator.

Per-question state machine::

    idle ──submit──▶ running ──success──▶ correct   (terminal, auto-advance)
                        │
                        ├──failure──▶ incorrect ──submit──▶ running …
                        │             (attempt consumed; auto-advance once exhausted)
                        └──checker error──▶ error  (no attempt consumed)

    any non-terminal ──clock hits zero──▶ timeout  (terminal, auto-advance)

The coordinator never raises for validation or exhaustion problems; it sets
a message on the state instead.  Each dispatch gets a token so a response
for a superseded dispatch can be recognised and dropped.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any

from quizapp.schemas.quiz import TERMINAL_LIVE_STATUSES, LiveStatus
from quizapp.schemas.results import LiveStatusSnapshot, ResultEntry
from quizapp.services.checker_payloads import CheckVerdict
from quizapp.services.errors import CheckerUnavailable

logger = logging.getLogger(__name__)

EMPTY_ATTEMPT_MESSAGE = "Type an answer first."


@dataclass
class LiveState:
    attempts_limit: int
    status: LiveStatus = LiveStatus.IDLE
    message: str | None = None
    attempts_used: int = 0
    pending_token: int | None = None
    status_before_run: LiveStatus = LiveStatus.IDLE

    @property
    def exhausted(self) -> bool:
        return self.attempts_used >= self.attempts_limit

    @property
    def locked(self) -> bool:
        return self.status in TERMINAL_LIVE_STATUSES

    @property
    def frozen(self) -> bool:
        """True once the attempt text may no longer change."""
        return self.locked or self.status is LiveStatus.RUNNING or self.exhausted

    def snapshot(self) -> LiveStatusSnapshot:
        return LiveStatusSnapshot(status=self.status, message=self.message)


@dataclass(frozen=True)
class AttemptOutcome:
    token: int | None = None
    auto_advance: bool = False

    @property
    def dispatched(self) -> bool:
        return self.token is not None


class LiveAttemptCoordinator:
    def __init__(self) -> None:
        self._tokens = itertools.count(1)

    def begin(self, state: LiveState, text: str) -> AttemptOutcome:
        """Validate a submit and move to ``running`` when it may be dispatched."""
        if state.locked:
            state.message = (
                "Already solved." if state.status is LiveStatus.CORRECT else "Time is up for this question."
            )
            return AttemptOutcome()
        if state.status is LiveStatus.RUNNING:
            return AttemptOutcome()
        if not text.strip():
            state.message = EMPTY_ATTEMPT_MESSAGE
            return AttemptOutcome()
        if state.exhausted:
            state.message = f"No attempts left ({state.attempts_used}/{state.attempts_limit})."
            return AttemptOutcome(auto_advance=True)

        token = next(self._tokens)
        state.status_before_run = state.status
        state.status = LiveStatus.RUNNING
        state.message = None
        state.pending_token = token
        return AttemptOutcome(token=token)

    def apply_verdict(self, state: LiveState, token: int, verdict: CheckVerdict) -> AttemptOutcome:
        if state.pending_token != token or state.status is not LiveStatus.RUNNING:
            return AttemptOutcome()
        state.pending_token = None
        state.attempts_used += 1
        if verdict.passed:
            state.status = LiveStatus.CORRECT
            state.message = "Correct!"
            return AttemptOutcome(auto_advance=True)

        state.status = LiveStatus.INCORRECT
        left = state.attempts_limit - state.attempts_used
        state.message = f"{verdict.message} ({left} attempt{'s' if left != 1 else ''} left)"
        return AttemptOutcome(auto_advance=state.exhausted)

    def apply_error(self, state: LiveState, token: int, message: str) -> None:
        if state.pending_token != token or state.status is not LiveStatus.RUNNING:
            return
        state.pending_token = None
        state.status = LiveStatus.ERROR
        state.message = f"Checker unavailable, try again. ({message})"

    def timeout(self, state: LiveState) -> bool:
        """Move a non-terminal question to ``timeout``; True when it did."""
        if state.locked:
            return False
        state.pending_token = None
        state.status = LiveStatus.TIMEOUT
        state.message = "Time is up."
        return True

    def cancel(self, state: LiveState) -> None:
        """Drop an in-flight dispatch (navigation away from the question)."""
        if state.status is LiveStatus.RUNNING:
            state.status = state.status_before_run
            state.pending_token = None

    async def recheck_entry(self, entry: ResultEntry, checker: Any) -> ResultEntry | None:
        """Re-validate a stored attempt; a corrected entry, or None when unchanged.

        ``correct`` and ``timeout`` entries are never dispatched again.
        """
        if not needs_recheck(entry):
            return None
        try:
            verdict = await checker.check(entry.external_id, entry.attempt)
        except CheckerUnavailable as e:
            logger.warning("Re-check of %s failed: %s", entry.question_id, e)
            return None
        if not verdict.passed:
            return None
        logger.info("Re-check corrected %s (%s) to correct", entry.question_id, entry.external_id)
        return entry.model_copy(
            update={
                "is_correct": True,
                "live_status": LiveStatusSnapshot(status=LiveStatus.CORRECT, message=verdict.message),
            }
        )


def needs_recheck(entry: ResultEntry) -> bool:
    return (
        entry.kind == "live"
        and bool(entry.external_id)
        and bool(entry.attempt.strip())
        and entry.status not in TERMINAL_LIVE_STATUSES
        and not entry.is_correct
    )
