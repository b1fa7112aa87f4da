"""Session and per-question countdowns.

The two clocks own disjoint state: the session clock is a shared pool of
seconds for the whole attempt, the question clock belongs to the live
question currently on screen.
"""

import math
from datetime import datetime, timedelta


class SessionClock:
    """Shared countdown seeded with the sum of all question allotments."""

    def __init__(self, total_seconds: int) -> None:
        self.total_seconds = total_seconds
        self.remaining = total_seconds

    @property
    def expired(self) -> bool:
        return self.remaining <= 0

    def tick(self) -> bool:
        """Count down one second; True when this tick reached zero."""
        if self.expired:
            return False
        self.remaining -= 1
        return self.expired

    def debit(self, seconds: int) -> bool:
        """Subtract ``seconds``; True when the clock is now exhausted."""
        self.remaining = max(0, self.remaining - max(0, seconds))
        return self.expired


class QuestionClock:
    """Countdown for one live question, stopped once the question is terminal."""

    def __init__(self, seconds: int) -> None:
        self.remaining = seconds
        self.running = True

    def tick(self) -> bool:
        if not self.running or self.remaining <= 0:
            return False
        self.remaining -= 1
        if self.remaining <= 0:
            self.running = False
            return True
        return False

    def stop(self) -> None:
        self.running = False


def skip_remainder(allotted_seconds: float, elapsed_seconds: float) -> int:
    """Unused part of an allotment: ``max(0, ceil(allotted - elapsed))``."""
    return max(0, math.ceil(allotted_seconds - elapsed_seconds))


def clamp_finish(
    started_at: datetime, finished_at: datetime, total_allowed_seconds: int
) -> tuple[datetime, int]:
    """Bound ``finished_at`` and the duration by the sum of all allotments."""
    latest = started_at + timedelta(seconds=total_allowed_seconds)
    finished = min(finished_at, latest)
    elapsed = max(0.0, (finished - started_at).total_seconds())
    return finished, min(round(elapsed), total_allowed_seconds)
