"""Admin dashboard schemas — aggregated trainee results and re-grading."""

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from quizapp.schemas.results import Breakdown, SubmitReason


class PeriodFilter(str, Enum):
    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


class SortField(str, Enum):
    DATE = "date"
    SCORE = "score"
    DURATION = "duration"
    USER = "user"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class AdminResultRow(BaseModel):
    """One trainee attempt in the admin table."""

    id: uuid.UUID
    user_id: uuid.UUID | None = None
    email: str | None = None
    display_name: str
    topics: list[str]
    topics_label: str
    started_at: datetime
    finished_at: datetime
    duration_seconds: int
    reason: SubmitReason
    breakdown: Breakdown
    accuracy: float
    accuracy_label: str


class RegradeSummary(BaseModel):
    """Outcome of POST /api/admin/regrade."""

    records_scanned: int
    questions_rechecked: int
    questions_corrected: int
    records_patched: int
    cancelled: bool = False
