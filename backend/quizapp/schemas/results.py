"""Result record schemas — the immutable outcome of one finished session."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel

from quizapp.schemas.quiz import ChoiceOption, LiveStatus


class SubmitReason(str, Enum):
    MANUAL = "manual"
    TIMEOUT = "timeout"
    AUTO_ADVANCE = "auto-advance"


class LiveStatusSnapshot(BaseModel):
    status: LiveStatus = LiveStatus.IDLE
    message: str | None = None

    model_config = {"frozen": True}


class ResultEntry(BaseModel):
    """One question's raw outcome — enough to re-derive scoring later."""

    question_id: str
    kind: Literal["mcq", "live"] = "mcq"
    question_text: str = ""

    # static choice
    options: list[ChoiceOption] = []
    correct_option_ids: list[str] = []
    selected_option_ids: list[str] = []

    # live check
    external_id: str | None = None
    attempt: str = ""
    live_status: LiveStatusSnapshot | None = None
    attempts_used: int = 0
    attempts_limit: int | None = None
    setup_text: str = ""

    was_answered: bool | None = None  # older entries may not carry it
    is_correct: bool = False

    model_config = {"frozen": True}

    @property
    def status(self) -> LiveStatus:
        return self.live_status.status if self.live_status else LiveStatus.IDLE


class Participant(BaseModel):
    """Who took the session, snapshotted onto the record."""

    user_id: uuid.UUID | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    model_config = {"frozen": True}


class ResultRecord(BaseModel):
    """The unit of persistence: one finished session."""

    id: uuid.UUID | None = None
    user_id: uuid.UUID | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    topics: list[str] = []
    started_at: datetime
    finished_at: datetime
    duration_seconds: int
    total_questions: int
    attempted_count: int

    # aggregates stored at write time; legacy records only have these
    correct_count: int = 0
    wrong_count: int = 0
    skipped_count: int = 0
    timed_out_count: int = 0
    score: float | None = None

    reason: SubmitReason = SubmitReason.MANUAL
    results: list[ResultEntry] = []
    created_at: datetime | None = None

    model_config = {"frozen": True, "from_attributes": True}


class Breakdown(BaseModel):
    """Derived counts and points for a record."""

    total: int
    attempted: int
    correct: int
    wrong: int
    skipped: int
    timed_out: int
    points: float
    max_points: float

    @property
    def accuracy(self) -> float:
        return self.correct / self.attempted if self.attempted > 0 else 0.0


# ── API views ────────────────────────────────────────────────────────────────


class ResultSummaryRead(BaseModel):
    """History row: stored metadata with a freshly derived breakdown."""

    id: uuid.UUID
    topics: list[str]
    topic_labels: list[str] = []
    started_at: datetime
    finished_at: datetime
    duration_seconds: int
    reason: SubmitReason
    breakdown: Breakdown
    accuracy: float
    accuracy_label: str


class ResultDetailRead(ResultSummaryRead):
    """Result with per-question entries for review."""

    results: list[ResultEntry] = []


class LatestResultRead(ResultSummaryRead):
    """Home page summary of the most recent attempt."""

    message: str
    corrected: int = 0  # live entries fixed by a read-time re-check
