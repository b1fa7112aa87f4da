"""Read-side helpers: breakdown views, prompt backfill, admin filtering."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from quizapp.schemas.admin import AdminResultRow, PeriodFilter, SortDirection, SortField
from quizapp.schemas.quiz import ScoringPolicy
from quizapp.schemas.results import (
    LatestResultRead,
    ResultDetailRead,
    ResultEntry,
    ResultRecord,
    ResultSummaryRead,
)
from quizapp.services.errors import CheckerUnavailable
from quizapp.services.profiles import display_name
from quizapp.services.scoring import format_pct, performance_message, score_record

logger = logging.getLogger(__name__)

_BARE_ID = re.compile(r"^[a-z]\d+$", re.IGNORECASE)


def looks_like_id(text: str | None) -> bool:
    """True when stored question text is just the checker id, not a prompt."""
    t = (text or "").strip()
    return not t or len(t) <= 5 or bool(_BARE_ID.match(t))


def topic_labels(topics: Iterable[str], labels: Mapping[str, str]) -> list[str]:
    return [labels.get(t.lower().strip(), t) for t in topics]


def summary_view(record: ResultRecord, policy: ScoringPolicy, labels: Mapping[str, str]) -> ResultSummaryRead:
    b = score_record(record, policy)
    return ResultSummaryRead(
        id=record.id,
        topics=record.topics,
        topic_labels=topic_labels(record.topics, labels),
        started_at=record.started_at,
        finished_at=record.finished_at,
        duration_seconds=record.duration_seconds,
        reason=record.reason,
        breakdown=b,
        accuracy=b.accuracy,
        accuracy_label=format_pct(b.accuracy),
    )


def detail_view(record: ResultRecord, policy: ScoringPolicy, labels: Mapping[str, str]) -> ResultDetailRead:
    return ResultDetailRead(
        **summary_view(record, policy, labels).model_dump(), results=record.results
    )


def latest_view(
    record: ResultRecord, policy: ScoringPolicy, labels: Mapping[str, str], corrected: int = 0
) -> LatestResultRead:
    summary = summary_view(record, policy, labels)
    return LatestResultRead(
        **summary.model_dump(),
        message=performance_message(summary.accuracy),
        corrected=corrected,
    )


async def backfill_prompts(entries: list[ResultEntry], checker: Any) -> list[ResultEntry]:
    """Replace id-like live question text with the prompt from ``format``.

    Display only; the stored record is left as it is.
    """
    out = []
    for entry in entries:
        if entry.kind == "live" and entry.external_id and looks_like_id(entry.question_text):
            try:
                fmt = await checker.format(entry.external_id)
            except CheckerUnavailable as e:
                logger.warning("Prompt backfill for %s failed: %s", entry.external_id, e)
            else:
                entry = entry.model_copy(
                    update={
                        "question_text": fmt.prompt or entry.question_text,
                        "setup_text": entry.setup_text or fmt.setup,
                    }
                )
        out.append(entry)
    return out


# ── admin table ──────────────────────────────────────────────────────────────


def admin_row(record: ResultRecord, policy: ScoringPolicy, labels: Mapping[str, str]) -> AdminResultRow:
    b = score_record(record, policy)
    names = topic_labels(record.topics, labels)
    return AdminResultRow(
        id=record.id,
        user_id=record.user_id,
        email=record.email,
        display_name=display_name(record.first_name, record.last_name, record.email),
        topics=record.topics,
        topics_label=", ".join(names) if names else "No topics",
        started_at=record.started_at,
        finished_at=record.finished_at,
        duration_seconds=record.duration_seconds,
        reason=record.reason,
        breakdown=b,
        accuracy=b.accuracy,
        accuracy_label=format_pct(b.accuracy),
    )


def _in_period(finished_at: datetime, period: PeriodFilter, now: datetime) -> bool:
    if period is PeriodFilter.ALL:
        return True
    if period is PeriodFilter.TODAY:
        return finished_at.astimezone(timezone.utc).date() == now.astimezone(timezone.utc).date()
    days = (now - finished_at).total_seconds() / 86400
    return days <= (7 if period is PeriodFilter.WEEK else 30)


def filter_rows(
    rows: Iterable[AdminResultRow],
    *,
    user: str | None = None,
    topic: str | None = None,
    period: PeriodFilter = PeriodFilter.ALL,
    now: datetime | None = None,
) -> list[AdminResultRow]:
    now = now or datetime.now(timezone.utc)
    wanted_user = (user or "").strip().lower()
    wanted_topic = (topic or "").strip().lower()
    out = []
    for row in rows:
        if wanted_user and wanted_user not in {str(row.user_id).lower(), (row.email or "").lower()}:
            continue
        if wanted_topic and wanted_topic not in {t.lower().strip() for t in row.topics}:
            continue
        if not _in_period(row.finished_at, period, now):
            continue
        out.append(row)
    return out


_SORT_KEYS = {
    SortField.DATE: lambda r: r.finished_at,
    SortField.SCORE: lambda r: r.accuracy,
    SortField.DURATION: lambda r: r.duration_seconds,
    SortField.USER: lambda r: r.display_name.lower(),
}


def sort_rows(
    rows: Iterable[AdminResultRow],
    field: SortField = SortField.DATE,
    direction: SortDirection = SortDirection.DESC,
) -> list[AdminResultRow]:
    return sorted(rows, key=_SORT_KEYS[field], reverse=direction is SortDirection.DESC)
