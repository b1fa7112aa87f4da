"""API route package — imports all routers for main.py."""

from quizapp.api.health import router as health_router  # noqa: F401
from quizapp.api.users import router as users_router  # noqa: F401
from quizapp.api.quiz import router as quiz_router  # noqa: F401
from quizapp.api.results import router as results_router  # noqa: F401
from quizapp.api.admin import router as admin_router  # noqa: F401
