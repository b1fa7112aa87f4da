"""In-process registry of active quiz sessions, one per user.

Each session gets an asyncio ticker task that drives its clocks.  Starting a
new session for the same user abandons the old one, stops its ticker, and
cancels any re-grading pass running for that user.
"""

import asyncio
import logging
import uuid
from typing import Any, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quizapp.config import settings
from quizapp.db.session import get_session_factory
from quizapp.schemas.results import ResultRecord
from quizapp.services.quiz_session import QuizSession
from quizapp.services.regrading import RegradeOutcome, regrade_records
from quizapp.services.result_store import save_record

logger = logging.getLogger(__name__)


class SessionRegistry:
    def __init__(
        self,
        *,
        tick_seconds: float = settings.SESSION_TICK_SECONDS,
        ticker_enabled: bool = settings.SESSION_TICKER_ENABLED,
    ) -> None:
        self.tick_seconds = tick_seconds
        self.ticker_enabled = ticker_enabled
        self._sessions: dict[uuid.UUID, QuizSession] = {}
        self._tickers: dict[uuid.UUID, asyncio.Task] = {}
        self._regrades: dict[Any, asyncio.Event] = {}

    # ── sessions ──────────────────────────────────────────────────────────

    def start(self, user_id: uuid.UUID, session: QuizSession) -> None:
        old = self._sessions.pop(user_id, None)
        if old is not None:
            old.abandon()
            logger.info("Abandoned previous session for user %s", user_id)
        self._stop_ticker(user_id)
        self.cancel_regrade(user_id)

        self._sessions[user_id] = session
        if self.ticker_enabled:
            self._tickers[user_id] = asyncio.create_task(self._tick_loop(user_id, session))

    def get(self, user_id: uuid.UUID) -> QuizSession | None:
        return self._sessions.get(user_id)

    def _stop_ticker(self, user_id: uuid.UUID) -> None:
        task = self._tickers.pop(user_id, None)
        if task is not None and not task.done():
            task.cancel()

    async def _tick_loop(self, user_id: uuid.UUID, session: QuizSession) -> None:
        while not session.finished and not session.abandoned:
            await asyncio.sleep(self.tick_seconds)
            session.tick()
        if session.finished and not session.abandoned:
            db = get_session_factory()()
            try:
                self.persist_if_finished(session, db)
            except SQLAlchemyError:
                # the next request on this session retries the write
                logger.exception("Could not store result for user %s", user_id)
            finally:
                db.close()

    def persist_if_finished(self, session: QuizSession, db: Session) -> str | None:
        """Store the session's result exactly once; returns the result id."""
        if not session.finished or session.result is None:
            return None
        if session.result_id is None:
            saved: ResultRecord = save_record(db, session.result)
            session.result_id = str(saved.id)
        return session.result_id

    # ── re-grading ────────────────────────────────────────────────────────

    def cancel_regrade(self, key: Any) -> None:
        event = self._regrades.pop(key, None)
        if event is not None:
            event.set()
            logger.info("Cancelled re-grading pass for %s", key)

    async def regrade(
        self,
        key: Any,
        records: Sequence[ResultRecord],
        checker: Any,
        *,
        concurrency: int = settings.REGRADE_CONCURRENCY,
    ) -> RegradeOutcome:
        """Run a cancellable re-grading pass tracked under ``key``."""
        self.cancel_regrade(key)
        event = asyncio.Event()
        self._regrades[key] = event
        try:
            return await regrade_records(
                records, checker, concurrency=concurrency, cancel_event=event
            )
        finally:
            if self._regrades.get(key) is event:
                del self._regrades[key]

    # ── lifecycle ─────────────────────────────────────────────────────────

    async def shutdown(self) -> None:
        for key in list(self._regrades):
            self.cancel_regrade(key)
        tasks = list(self._tickers.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tickers.clear()
        self._sessions.clear()


registry = SessionRegistry()
