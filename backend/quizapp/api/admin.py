"""Admin routes: all trainees' results and re-grading."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from quizapp.api.deps import get_checker, get_quiz_config, get_registry, require_admin
from quizapp.config import settings
from quizapp.db.models import User
from quizapp.db.session import get_db
from quizapp.schemas.admin import (
    AdminResultRow,
    PeriodFilter,
    RegradeSummary,
    SortDirection,
    SortField,
)
from quizapp.schemas.quiz import QuizConfig
from quizapp.services import result_store
from quizapp.services.checker_client import CheckerClient
from quizapp.services.result_views import admin_row, filter_rows, sort_rows
from quizapp.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/results", response_model=list[AdminResultRow])
def list_all_results(
    user: str | None = Query(None, description="User id or e-mail"),
    topic: str | None = Query(None),
    period: PeriodFilter = Query(PeriodFilter.ALL),
    sort: SortField = Query(SortField.DATE),
    direction: SortDirection = Query(SortDirection.DESC),
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    config: QuizConfig = Depends(get_quiz_config),
):
    rows = [admin_row(r, config.scoring, settings.TOPICS) for r in result_store.list_all(db)]
    rows = filter_rows(rows, user=user, topic=topic, period=period)
    return sort_rows(rows, sort, direction)


@router.post("/regrade", response_model=RegradeSummary)
async def regrade_all(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    checker: CheckerClient = Depends(get_checker),
    reg: SessionRegistry = Depends(get_registry),
):
    """Re-check every failed live attempt and persist corrections as patches."""
    records = result_store.list_all(db)
    outcome = await reg.regrade(
        admin.id, records, checker, concurrency=settings.REGRADE_CONCURRENCY
    )
    if outcome.cancelled:
        return RegradeSummary(
            records_scanned=len(records),
            questions_rechecked=outcome.rechecked,
            questions_corrected=0,
            records_patched=0,
            cancelled=True,
        )
    patched = result_store.apply_regrade_patches(db, outcome.patched)
    logger.info("Admin %s re-graded %d results (%d patched)", admin.email, len(records), patched)
    return RegradeSummary(
        records_scanned=len(records),
        questions_rechecked=outcome.rechecked,
        questions_corrected=outcome.corrected,
        records_patched=patched,
    )
