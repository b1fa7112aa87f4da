"""Result record persistence on top of the ``quiz_results`` table.

Rows are written once.  The only update is ``apply_regrade_patches``, which
replaces the per-question ``results`` JSON and leaves the aggregate columns
as they were written.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy.orm import Session

from quizapp.db.models import QuizResult
from quizapp.schemas.results import ResultEntry, ResultRecord

logger = logging.getLogger(__name__)


def _aware(dt: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def record_from_row(row: QuizResult) -> ResultRecord:
    return ResultRecord(
        id=row.id,
        user_id=row.user_id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        topics=list(row.topics or []),
        started_at=_aware(row.started_at),
        finished_at=_aware(row.finished_at),
        duration_seconds=row.duration_seconds,
        total_questions=row.total_questions,
        attempted_count=row.attempted_count,
        correct_count=row.correct_count,
        wrong_count=row.wrong_count,
        skipped_count=row.skipped_count,
        timed_out_count=row.timed_out_count,
        score=row.score,
        reason=row.reason,
        results=[ResultEntry.model_validate(e) for e in (row.results or [])],
        created_at=_aware(row.created_at),
    )


def _entries_json(entries: Iterable[ResultEntry]) -> list[dict]:
    return [e.model_dump(mode="json") for e in entries]


def save_record(db: Session, record: ResultRecord) -> ResultRecord:
    row = QuizResult(
        user_id=record.user_id,
        email=record.email,
        first_name=record.first_name,
        last_name=record.last_name,
        topics=list(record.topics),
        started_at=record.started_at,
        finished_at=record.finished_at,
        duration_seconds=record.duration_seconds,
        total_questions=record.total_questions,
        attempted_count=record.attempted_count,
        correct_count=record.correct_count,
        wrong_count=record.wrong_count,
        skipped_count=record.skipped_count,
        timed_out_count=record.timed_out_count,
        score=record.score,
        reason=record.reason.value,
        results=_entries_json(record.results),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Stored result %s for %s", row.id, row.email)
    return record_from_row(row)


def list_for_user(db: Session, user_id: uuid.UUID) -> list[ResultRecord]:
    rows = (
        db.query(QuizResult)
        .filter(QuizResult.user_id == user_id)
        .order_by(QuizResult.created_at.desc())
        .all()
    )
    return [record_from_row(r) for r in rows]


def latest_for_user(db: Session, user_id: uuid.UUID) -> ResultRecord | None:
    row = (
        db.query(QuizResult)
        .filter(QuizResult.user_id == user_id)
        .order_by(QuizResult.created_at.desc())
        .first()
    )
    return record_from_row(row) if row else None


def get_for_user(db: Session, user_id: uuid.UUID, result_id: uuid.UUID) -> ResultRecord | None:
    row = (
        db.query(QuizResult)
        .filter(QuizResult.id == result_id, QuizResult.user_id == user_id)
        .first()
    )
    return record_from_row(row) if row else None


def list_all(db: Session) -> list[ResultRecord]:
    rows = db.query(QuizResult).order_by(QuizResult.created_at.desc()).all()
    return [record_from_row(r) for r in rows]


def apply_regrade_patches(db: Session, records: Iterable[ResultRecord]) -> int:
    """Overwrite ``results`` for each patched record; returns rows updated."""
    updated = 0
    for record in records:
        if record.id is None:
            continue
        row = db.get(QuizResult, record.id)
        if row is None:
            continue
        row.results = _entries_json(record.results)
        updated += 1
    if updated:
        db.commit()
        logger.info("Persisted re-grading patches for %d results", updated)
    return updated
