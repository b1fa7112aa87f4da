"""User registration, login, and profile routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from quizapp.api.deps import get_current_user
from quizapp.core.security import hash_password, token_for_user, verify_password
from quizapp.db.models import RoleEnum, User
from quizapp.db.session import get_db
from quizapp.schemas.user import AuthResponse, UserCreate, UserLogin, UserRead
from quizapp.services.profiles import is_admin_email, seed_names_from_email

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(body: UserCreate, db: Session = Depends(get_db)):
    """Create a trainee account (admin when the e-mail is on the admin list)."""
    email = body.email.lower()
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )
    try:
        hashed = hash_password(body.password)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    seeded_first, seeded_last = seed_names_from_email(email)
    user = User(
        email=email,
        hashed_password=hashed,
        first_name=(body.first_name or "").strip() or seeded_first,
        last_name=(body.last_name or "").strip() or seeded_last,
        role=RoleEnum.ADMIN if is_admin_email(email) else RoleEnum.TRAINEE,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered %s (%s)", user.email, user.role.value)

    token = token_for_user(user.id, user.role.value)
    return AuthResponse(access_token=token, user=UserRead.model_validate(user))


@router.post("/login", response_model=AuthResponse)
def login(body: UserLogin, db: Session = Depends(get_db)):
    """Authenticate and return a JWT access token + user profile."""
    user = db.query(User).filter(User.email == body.email.lower()).first()
    if not user or not verify_password(body.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account deactivated",
        )

    token = token_for_user(user.id, user.role.value)
    return AuthResponse(access_token=token, user=UserRead.model_validate(user))


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)):
    """Return the authenticated user's profile."""
    return current_user
