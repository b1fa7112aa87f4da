"""Pydantic schemas — re‑exported for convenience."""

from quizapp.schemas.user import (  # noqa: F401
    AuthResponse,
    UserCreate,
    UserLogin,
    UserRead,
)
from quizapp.schemas.quiz import (  # noqa: F401
    ChoiceOption,
    LiveCheckQuestion,
    LiveStatus,
    Question,
    QuestionKind,
    QuizConfig,
    ScoringPolicy,
    SessionQuestion,
    StaticChoiceQuestion,
)
from quizapp.schemas.results import (  # noqa: F401
    Breakdown,
    LiveStatusSnapshot,
    Participant,
    ResultEntry,
    ResultRecord,
    SubmitReason,
)
from quizapp.schemas.admin import (  # noqa: F401
    AdminResultRow,
    RegradeSummary,
)
