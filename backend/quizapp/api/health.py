"""Health check endpoint."""

from fastapi import APIRouter, Depends

from quizapp.api.deps import get_checker
from quizapp.services.checker_client import CheckerClient

router = APIRouter()


@router.get("/health")
async def health(checker: CheckerClient = Depends(get_checker)):
    return {
        "status": "healthy",
        "service": "onboarding-quiz-backend",
        "live_checker": "up" if await checker.healthy() else "down",
    }
