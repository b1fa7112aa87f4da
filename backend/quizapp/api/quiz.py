"""Quiz session routes: topics, start, navigation, responses, live checks."""

import logging
from contextlib import contextmanager

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from quizapp.api.deps import (
    get_checker,
    get_current_user,
    get_question_bank,
    get_quiz_config,
    get_registry,
)
from quizapp.config import settings
from quizapp.db.models import User
from quizapp.db.session import get_db
from quizapp.schemas.quiz import (
    AttemptTextRequest,
    LiveFormatRead,
    LiveRunRequest,
    OptionToggleRequest,
    QuizConfig,
    QuizStartRequest,
    SessionRead,
    TopicRead,
)
from quizapp.schemas.results import Participant, SubmitReason
from quizapp.services.checker_client import CheckerClient
from quizapp.services.errors import (
    CheckerUnavailable,
    NavigationError,
    NoQuestionsAvailable,
    SessionFinished,
    UnknownQuestion,
)
from quizapp.services.question_pool import QuestionBank
from quizapp.services.quiz_session import QuizSession
from quizapp.services.rate_limiter import require_check_rate_limit
from quizapp.services.session_assembler import SessionAssembler
from quizapp.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)
router = APIRouter()


@contextmanager
def _quiz_errors():
    """Translate engine exceptions into HTTP errors."""
    try:
        yield
    except NoQuestionsAvailable as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except UnknownQuestion as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SessionFinished as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except NavigationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _active(user: User, reg: SessionRegistry) -> QuizSession:
    session = reg.get(user.id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No active quiz session"
        )
    return session


def _render(session: QuizSession, reg: SessionRegistry, db: Session) -> SessionRead:
    session.poll()
    reg.persist_if_finished(session, db)
    return session.view()


# ── Topics & start ────────────────────────────────────────────────────────────


@router.get("/topics", response_model=list[TopicRead])
async def list_topics():
    return [TopicRead(id=k, label=v) for k, v in settings.TOPICS.items()]


@router.post("/start", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
async def start_quiz(
    body: QuizStartRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    bank: QuestionBank = Depends(get_question_bank),
    checker: CheckerClient = Depends(get_checker),
    config: QuizConfig = Depends(get_quiz_config),
    reg: SessionRegistry = Depends(get_registry),
):
    """Assemble a new session for the selected topics, replacing any active one."""
    pools = await bank.pools_for(body.topics, checker)
    with _quiz_errors():
        plan = SessionAssembler(config).assemble(body.topics, pools)

    participant = Participant(
        user_id=current_user.id,
        email=current_user.email,
        first_name=current_user.first_name or None,
        last_name=current_user.last_name or None,
    )
    session = QuizSession(plan, config, participant)
    reg.start(current_user.id, session)
    logger.info(
        "User %s started quiz: %s (%d questions)",
        current_user.email, ", ".join(plan.topics), len(plan.questions),
    )
    return _render(session, reg, db)


# ── Session state ─────────────────────────────────────────────────────────────


@router.get("/session", response_model=SessionRead)
async def get_session(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    reg: SessionRegistry = Depends(get_registry),
):
    return _render(_active(current_user, reg), reg, db)


@router.post("/session/options", response_model=SessionRead)
async def toggle_option(
    body: OptionToggleRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    reg: SessionRegistry = Depends(get_registry),
):
    session = _active(current_user, reg)
    with _quiz_errors():
        session.toggle_option(body.question_id, body.option_id)
    return _render(session, reg, db)


@router.put("/session/attempt", response_model=SessionRead)
async def set_attempt(
    body: AttemptTextRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    reg: SessionRegistry = Depends(get_registry),
):
    session = _active(current_user, reg)
    with _quiz_errors():
        session.set_attempt_text(body.question_id, body.text)
    return _render(session, reg, db)


@router.post(
    "/session/run",
    response_model=SessionRead,
    dependencies=[Depends(require_check_rate_limit)],
)
async def run_live(
    body: LiveRunRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    checker: CheckerClient = Depends(get_checker),
    reg: SessionRegistry = Depends(get_registry),
):
    """Send the current attempt text of a live question to the checker."""
    session = _active(current_user, reg)
    with _quiz_errors():
        await session.run_live(body.question_id, checker)
    return _render(session, reg, db)


# ── Navigation ────────────────────────────────────────────────────────────────


@router.post("/session/next", response_model=SessionRead)
async def go_next(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    reg: SessionRegistry = Depends(get_registry),
):
    session = _active(current_user, reg)
    with _quiz_errors():
        session.go_next()
    return _render(session, reg, db)


@router.post("/session/back", response_model=SessionRead)
async def go_back(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    reg: SessionRegistry = Depends(get_registry),
):
    session = _active(current_user, reg)
    with _quiz_errors():
        session.go_back()
    return _render(session, reg, db)


@router.post("/session/skip", response_model=SessionRead)
async def skip(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    reg: SessionRegistry = Depends(get_registry),
):
    session = _active(current_user, reg)
    with _quiz_errors():
        session.skip()
    return _render(session, reg, db)


@router.post("/session/submit", response_model=SessionRead)
async def submit(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    reg: SessionRegistry = Depends(get_registry),
):
    """Finish the session; the result is stored once and its id returned."""
    session = _active(current_user, reg)
    with _quiz_errors():
        session.submit(SubmitReason.MANUAL)
    return _render(session, reg, db)


# ── Live question display ─────────────────────────────────────────────────────


@router.get("/live/{external_id}/format", response_model=LiveFormatRead)
async def live_format(
    external_id: str,
    current_user: User = Depends(get_current_user),
    checker: CheckerClient = Depends(get_checker),
):
    try:
        fmt = await checker.format(external_id)
    except CheckerUnavailable as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return LiveFormatRead(external_id=external_id, **fmt.model_dump())
