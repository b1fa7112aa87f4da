"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware

from quizapp.config import settings
from quizapp.api import (
    health_router,
    users_router,
    quiz_router,
    results_router,
    admin_router,
)
from quizapp.services.checker_client import close_checker_client
from quizapp.services.session_registry import registry

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s  %(name)-25s  %(levelname)-8s  %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Onboarding quiz backend starting (checker: %s)", settings.LIVE_CHECKER_URL)
    yield
    await registry.shutdown()
    await close_checker_client()
    logger.info("Onboarding quiz backend shut down")


app = FastAPI(
    title="Onboarding Quiz API",
    description="Timed topic quizzes with live-checked questions for trainees",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware ─────────────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

# ── Routers ───────────────────────────────────────────────────────────────────

app.include_router(health_router, tags=["Health"])
app.include_router(users_router, prefix="/api/users", tags=["Users"])
app.include_router(quiz_router, prefix="/api/quiz", tags=["Quiz"])
app.include_router(results_router, prefix="/api/results", tags=["Results"])
app.include_router(admin_router, prefix="/api/admin", tags=["Admin"])


@app.get("/")
async def root():
    return {
        "name": "Onboarding Quiz API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }
