"""Retroactive re-grading of stored results against the live checker.

A fixed number of workers share one cursor over the re-check candidates so
the checker never sees more than ``concurrency`` requests at once.  Patches
are only applied after the whole pass completes: a pass that is cancelled
midway (event set, or the task cancelled) changes nothing.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from pydantic import BaseModel

from quizapp.schemas.results import ResultEntry, ResultRecord
from quizapp.services.live_attempts import LiveAttemptCoordinator, needs_recheck

logger = logging.getLogger(__name__)


class RegradeOutcome(BaseModel):
    records: list[ResultRecord]
    patched: list[ResultRecord] = []
    rechecked: int = 0
    corrected: int = 0
    cancelled: bool = False


def recheck_candidates(records: Sequence[ResultRecord]) -> list[tuple[int, int]]:
    """(record index, entry index) pairs worth sending to the checker."""
    return [
        (ri, ei)
        for ri, record in enumerate(records)
        for ei, entry in enumerate(record.results)
        if needs_recheck(entry)
    ]


async def regrade_records(
    records: Sequence[ResultRecord],
    checker: Any,
    *,
    concurrency: int = 4,
    cancel_event: asyncio.Event | None = None,
    coordinator: LiveAttemptCoordinator | None = None,
) -> RegradeOutcome:
    coordinator = coordinator or LiveAttemptCoordinator()
    cancel_event = cancel_event or asyncio.Event()
    work = iter(recheck_candidates(records))
    fixes: dict[tuple[int, int], ResultEntry] = {}
    rechecked = 0

    async def worker() -> None:
        nonlocal rechecked
        for ri, ei in work:
            if cancel_event.is_set():
                return
            fixed = await coordinator.recheck_entry(records[ri].results[ei], checker)
            rechecked += 1
            if fixed is not None:
                fixes[(ri, ei)] = fixed

    await asyncio.gather(*(worker() for _ in range(max(1, concurrency))))

    if cancel_event.is_set():
        logger.info("Re-grading cancelled after %d re-checks; nothing applied", rechecked)
        return RegradeOutcome(records=list(records), rechecked=rechecked, cancelled=True)

    out = list(records)
    patched: list[ResultRecord] = []
    for ri in sorted({ri for ri, _ in fixes}):
        results = list(out[ri].results)
        for (fri, ei), entry in fixes.items():
            if fri == ri:
                results[ei] = entry
        out[ri] = out[ri].model_copy(update={"results": results})
        patched.append(out[ri])

    logger.info(
        "Re-grading done: %d records, %d re-checked, %d corrected",
        len(records), rechecked, len(fixes),
    )
    return RegradeOutcome(records=out, patched=patched, rechecked=rechecked, corrected=len(fixes))
