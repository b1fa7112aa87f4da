"""Scoring & breakdown engine.

Every question of a finished record falls into exactly one bucket:

  live  →  timed_out  if its terminal status is ``timeout``
           skipped    if the attempt text is empty
           correct    if its status is ``correct`` or the correctness flag is set
           wrong      otherwise
  mcq   →  skipped    if nothing was selected
           correct / wrong per the correctness flag

``attempted = total - skipped``; timeouts count as attempted.

The breakdown is always re-derived from the per-question entries when they
exist, so a corrected checker verdict patched into ``results`` fixes the
score without touching the stored aggregate columns.  Records without
entries (legacy rows) fall back to those columns.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from quizapp.schemas.quiz import LiveStatus, ScoringPolicy
from quizapp.schemas.results import Breakdown, ResultEntry, ResultRecord


class Bucket(str, Enum):
    CORRECT = "correct"
    WRONG = "wrong"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"


def entry_answered(entry: ResultEntry) -> bool:
    if entry.kind == "live":
        return bool(entry.attempt.strip())
    if entry.was_answered is not None:
        return entry.was_answered
    return bool(entry.selected_option_ids)


def classify_entry(entry: ResultEntry) -> Bucket:
    if entry.kind == "live":
        if entry.status is LiveStatus.TIMEOUT:
            return Bucket.TIMED_OUT
        if not entry.attempt.strip():
            return Bucket.SKIPPED
        if entry.status is LiveStatus.CORRECT or entry.is_correct:
            return Bucket.CORRECT
        return Bucket.WRONG

    if not entry_answered(entry):
        return Bucket.SKIPPED
    return Bucket.CORRECT if entry.is_correct else Bucket.WRONG


def derive_counts(entries: Iterable[ResultEntry]) -> dict[Bucket, int]:
    counts = {b: 0 for b in Bucket}
    for entry in entries:
        counts[classify_entry(entry)] += 1
    return counts


def points_for(counts: dict[Bucket, int], policy: ScoringPolicy) -> float:
    return (
        counts[Bucket.CORRECT] * policy.correct
        + counts[Bucket.WRONG] * policy.wrong
        + counts[Bucket.SKIPPED] * policy.skipped
        + counts[Bucket.TIMED_OUT] * policy.timed_out
    )


def score_record(record: ResultRecord, policy: ScoringPolicy) -> Breakdown:
    """Pure breakdown of one record under ``policy``."""
    if record.results:
        counts = derive_counts(record.results)
        total = len(record.results)
        points = points_for(counts, policy)
    else:
        counts = {
            Bucket.CORRECT: record.correct_count,
            Bucket.WRONG: record.wrong_count,
            Bucket.SKIPPED: record.skipped_count,
            Bucket.TIMED_OUT: record.timed_out_count,
        }
        total = record.total_questions
        points = record.score if record.score is not None else points_for(counts, policy)

    attempted = total - counts[Bucket.SKIPPED]
    return Breakdown(
        total=total,
        attempted=attempted,
        correct=counts[Bucket.CORRECT],
        wrong=counts[Bucket.WRONG],
        skipped=counts[Bucket.SKIPPED],
        timed_out=counts[Bucket.TIMED_OUT],
        points=points,
        max_points=attempted * policy.correct,
    )


# ── display helpers ──────────────────────────────────────────────────────────


def format_pct(ratio: float) -> str:
    """0.8333 → '83%'"""
    return f"{round(ratio * 100)}%"


def performance_message(accuracy: float) -> str:
    pct = accuracy * 100
    if pct >= 80:
        return "Excellent work! You're ready to move on."
    if pct >= 60:
        return "Good job. A little more practice will get you there."
    if pct >= 40:
        return "Not bad, but review the topics you missed."
    return "Keep practising. Review the material and try again."
