"""FastAPI dependencies shared across routes."""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from quizapp.config import settings
from quizapp.core.security import decode_access_token
from quizapp.db.models import RoleEnum, User
from quizapp.db.session import get_db
from quizapp.schemas.quiz import QuizConfig
from quizapp.services.checker_client import CheckerClient, get_checker_client
from quizapp.services.question_pool import QuestionBank
from quizapp.services.session_registry import SessionRegistry, registry

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Decode JWT and return the authenticated user, or 401."""
    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = payload.get("sub")
    try:
        uid = uuid.UUID(user_id) if user_id else None
    except ValueError:
        uid = None
    if uid is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload"
        )
    user = db.query(User).filter(User.id == uid).first()
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Raise 403 unless the caller is an admin."""
    if current_user.role != RoleEnum.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required"
        )
    return current_user


def get_checker() -> CheckerClient:
    """Live checker client; overridden with a fake in tests."""
    return get_checker_client()


# ── quiz engine collaborators ─────────────────────────────────────────────────

_bank: QuestionBank | None = None


def get_question_bank() -> QuestionBank:
    global _bank
    if _bank is None:
        _bank = QuestionBank(settings.QUESTION_BANK_DIR, settings.TOPICS.keys(), settings.LIVE_TOPIC)
    return _bank


def get_quiz_config() -> QuizConfig:
    return QuizConfig.from_settings(settings)


def get_registry() -> SessionRegistry:
    return registry
