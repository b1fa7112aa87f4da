"""Quiz schemas — questions, quiz configuration, and live session views."""

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, model_validator


class QuestionKind(str, Enum):
    STATIC_CHOICE = "mcq"
    LIVE_CHECK = "live"


class LiveStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    CORRECT = "correct"
    INCORRECT = "incorrect"
    TIMEOUT = "timeout"
    ERROR = "error"


TERMINAL_LIVE_STATUSES = frozenset({LiveStatus.CORRECT, LiveStatus.TIMEOUT})


# ── Questions ────────────────────────────────────────────────────────────────


class PromptSpan(BaseModel):
    """One span of rich prompt text."""

    type: Literal["text", "code"] = "text"
    value: str

    model_config = {"frozen": True}


class ChoiceOption(BaseModel):
    id: str
    text: str = ""
    is_correct: bool = False

    model_config = {"frozen": True}


class StaticChoiceQuestion(BaseModel):
    """Pre-authored multiple-choice question (one or more correct options)."""

    kind: Literal["mcq"] = "mcq"
    id: str = Field(min_length=1)
    topic: str
    prompt: str = ""
    prompt_parts: list[PromptSpan] | None = None
    options: list[ChoiceOption] = []

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _has_correct_option(self) -> "StaticChoiceQuestion":
        if not any(o.is_correct for o in self.options):
            raise ValueError(f"question {self.id!r} has no correct option")
        return self

    @property
    def correct_option_ids(self) -> list[str]:
        return [o.id for o in self.options if o.is_correct]


class LiveCheckQuestion(BaseModel):
    """Question answered by submitting text to the external checker."""

    kind: Literal["live"] = "live"
    id: str = Field(min_length=1)
    topic: str
    external_id: str = Field(min_length=1)
    prompt: str = ""  # filled lazily from the checker's format lookup
    prompt_parts: list[PromptSpan] | None = None
    retry_limit: int | None = None
    time_budget_seconds: int | None = None
    source: Any = None
    display: list[Any] = []

    model_config = {"frozen": True}


Question = Annotated[
    Union[StaticChoiceQuestion, LiveCheckQuestion], Field(discriminator="kind")
]


class SessionQuestion(BaseModel):
    """A question sampled into a session, with its time and retry budget."""

    question: Question
    allotted_seconds: int
    retry_limit: int | None = None

    model_config = {"frozen": True}

    @property
    def id(self) -> str:
        return self.question.id

    @property
    def kind(self) -> QuestionKind:
        return QuestionKind(self.question.kind)


# ── Configuration ────────────────────────────────────────────────────────────


class ScoringPolicy(BaseModel):
    """Points awarded per breakdown bucket."""

    correct: float = 1
    wrong: float = -1
    skipped: float = 0
    timed_out: float = 0


class QuizConfig(BaseModel):
    """Quiz knobs passed into the assembler and the session."""

    questions_per_attempt: int = 30
    seconds_by_kind: dict[QuestionKind, int] = {
        QuestionKind.STATIC_CHOICE: 15,
        QuestionKind.LIVE_CHECK: 20,
    }
    retry_limit_by_kind: dict[QuestionKind, int] = {QuestionKind.LIVE_CHECK: 2}
    scoring: ScoringPolicy = ScoringPolicy()
    live_topic: str = "live"
    live_recent_count: int = 5
    auto_advance_delay_seconds: float = 1.2

    @classmethod
    def from_settings(cls, s: Any) -> "QuizConfig":
        return cls(
            questions_per_attempt=s.QUESTIONS_PER_ATTEMPT,
            seconds_by_kind={
                QuestionKind.STATIC_CHOICE: s.MCQ_SECONDS,
                QuestionKind.LIVE_CHECK: s.LIVE_SECONDS,
            },
            retry_limit_by_kind={QuestionKind.LIVE_CHECK: s.LIVE_ATTEMPTS_LIMIT},
            scoring=ScoringPolicy(
                correct=s.SCORE_CORRECT,
                wrong=s.SCORE_WRONG,
                skipped=s.SCORE_SKIPPED,
                timed_out=s.SCORE_TIMED_OUT,
            ),
            live_topic=s.LIVE_TOPIC,
            live_recent_count=s.LIVE_RECENT_COUNT,
            auto_advance_delay_seconds=s.AUTO_ADVANCE_DELAY_SECONDS,
        )

    @model_validator(mode="after")
    def _budgets_cover_every_kind(self) -> "QuizConfig":
        missing = [k.value for k in QuestionKind if k not in self.seconds_by_kind]
        if missing:
            raise ValueError(f"no time budget configured for: {', '.join(missing)}")
        if QuestionKind.LIVE_CHECK not in self.retry_limit_by_kind:
            raise ValueError("no retry limit configured for live questions")
        return self

    def default_seconds(self, kind: QuestionKind) -> int:
        return self.seconds_by_kind[kind]

    def default_retry_limit(self, kind: QuestionKind) -> int:
        return self.retry_limit_by_kind[kind]


# ── Requests ─────────────────────────────────────────────────────────────────


class QuizStartRequest(BaseModel):
    """POST /api/quiz/start"""

    topics: list[str] = Field(min_length=1)


class OptionToggleRequest(BaseModel):
    """POST /api/quiz/session/options"""

    question_id: str
    option_id: str


class AttemptTextRequest(BaseModel):
    """PUT /api/quiz/session/attempt"""

    question_id: str
    text: str = ""


class LiveRunRequest(BaseModel):
    """POST /api/quiz/session/run"""

    question_id: str


# ── Responses ────────────────────────────────────────────────────────────────


class TopicRead(BaseModel):
    id: str
    label: str


class OptionView(BaseModel):
    """Option as shown during the quiz — correctness is never exposed."""

    id: str
    text: str


class LiveStateRead(BaseModel):
    status: LiveStatus = LiveStatus.IDLE
    message: str | None = None
    attempts_used: int = 0
    attempts_limit: int
    seconds_left: int | None = None


class QuestionView(BaseModel):
    id: str
    kind: QuestionKind
    topic: str
    prompt: str = ""
    prompt_parts: list[PromptSpan] | None = None
    options: list[OptionView] = []
    external_id: str | None = None
    allotted_seconds: int


class SessionRead(BaseModel):
    """Snapshot of the caller's active quiz session."""

    topics: list[str]
    current_index: int
    total_questions: int
    time_left_seconds: int | None = None  # None in live-only mode
    finished: bool = False
    result_id: str | None = None
    question: QuestionView
    selected_option_ids: list[str] = []
    attempt: str = ""
    live: LiveStateRead | None = None


class LiveFormatRead(BaseModel):
    """Display data for a live question."""

    external_id: str
    prompt: str = ""
    setup: str = ""
    expected: str = ""
