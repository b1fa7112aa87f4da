"""Exceptions raised by the quiz engine and its collaborators."""


class QuizError(Exception):
    """Base class for quiz engine errors."""


class NoQuestionsAvailable(QuizError):
    """The selected topics produced an empty pool — no session can start."""


class SessionFinished(QuizError):
    """The session was already submitted (or abandoned)."""


class NavigationError(QuizError):
    """Cursor move outside the session's question range."""


class UnknownQuestion(QuizError):
    """Question id is not part of the session."""


class CheckerUnavailable(Exception):
    """The live checker could not be reached or answered with an error.

    Distinct from a failing verdict: it must never consume an attempt.
    """
