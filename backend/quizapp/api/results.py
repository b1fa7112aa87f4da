"""Result history routes for the signed-in trainee."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from quizapp.api.deps import get_checker, get_current_user, get_quiz_config, get_registry
from quizapp.config import settings
from quizapp.db.models import User
from quizapp.db.session import get_db
from quizapp.schemas.quiz import QuizConfig
from quizapp.schemas.results import LatestResultRead, ResultDetailRead, ResultSummaryRead
from quizapp.services import result_store
from quizapp.services.checker_client import CheckerClient
from quizapp.services.result_views import backfill_prompts, detail_view, latest_view, summary_view
from quizapp.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=list[ResultSummaryRead])
def list_results(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    config: QuizConfig = Depends(get_quiz_config),
):
    """History, newest first, with the breakdown recomputed from each record."""
    records = result_store.list_for_user(db, current_user.id)
    return [summary_view(r, config.scoring, settings.TOPICS) for r in records]


@router.get("/latest", response_model=LatestResultRead)
async def latest_result(
    recheck: bool = Query(False, description="Re-check failed live attempts first"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    config: QuizConfig = Depends(get_quiz_config),
    checker: CheckerClient = Depends(get_checker),
    reg: SessionRegistry = Depends(get_registry),
):
    """Home page summary of the most recent attempt."""
    record = result_store.latest_for_user(db, current_user.id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No results yet")

    corrected = 0
    if recheck:
        outcome = await reg.regrade(current_user.id, [record], checker)
        if not outcome.cancelled and outcome.patched:
            result_store.apply_regrade_patches(db, outcome.patched)
            record = outcome.records[0]
            corrected = outcome.corrected
    return latest_view(record, config.scoring, settings.TOPICS, corrected=corrected)


@router.get("/{result_id}", response_model=ResultDetailRead)
async def get_result(
    result_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    config: QuizConfig = Depends(get_quiz_config),
    checker: CheckerClient = Depends(get_checker),
):
    """One result with per-question entries; bare live ids get their prompt filled in."""
    record = result_store.get_for_user(db, current_user.id, result_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Result not found")
    entries = await backfill_prompts(list(record.results), checker)
    return detail_view(record.model_copy(update={"results": entries}), config.scoring, settings.TOPICS)
