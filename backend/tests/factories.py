"""Test doubles and question factories shared by the test modules."""

from datetime import timedelta

from quizapp.schemas.quiz import ChoiceOption, LiveCheckQuestion, StaticChoiceQuestion
from quizapp.services.checker_payloads import CheckVerdict, LiveFormat, LiveQuestionMeta
from quizapp.services.errors import CheckerUnavailable


class FakeChecker:
    """In-memory stand-in for the live checker.

    ``answers`` maps external id → the attempt text that passes.  With
    ``fail=True`` every call raises ``CheckerUnavailable``.
    """

    def __init__(self, answers=None, *, fail=False, live_ids=()):
        self.answers = dict(answers or {})
        self.fail = fail
        self.live_ids = list(live_ids)
        self.calls = []

    async def healthy(self):
        return not self.fail

    async def list_live_questions(self):
        if self.fail:
            raise CheckerUnavailable("down")
        return [LiveQuestionMeta(external_id=i) for i in self.live_ids]

    async def format(self, external_id):
        if self.fail:
            raise CheckerUnavailable("down")
        return LiveFormat(prompt=f"Prompt for {external_id}", setup="t:([] a:1 2)", expected="3")

    async def check(self, external_id, attempt):
        self.calls.append((external_id, attempt))
        if self.fail:
            raise CheckerUnavailable("down")
        if self.answers.get(external_id) == attempt:
            return CheckVerdict(passed=True, message="Success")
        return CheckVerdict(passed=False, message="Incorrect")


class FakeBank:
    """Fixed pools per topic."""

    def __init__(self, pools):
        self.pools = pools

    async def pools_for(self, topics, checker):
        return {t: list(self.pools[t]) for t in topics if t in self.pools}


def mcq(qid, topic="git", correct=("a",), options=("a", "b", "c")):
    return StaticChoiceQuestion(
        id=qid,
        topic=topic,
        prompt=f"Question {qid}?",
        options=[
            ChoiceOption(id=f"{qid}_{o}", text=o.upper(), is_correct=o in correct)
            for o in options
        ],
    )


def live(ext, topic="live", **kw):
    return LiveCheckQuestion(id=f"live_{ext}", topic=topic, external_id=ext, prompt=f"Solve {ext}", **kw)


def register(client, email, password="pwd1"):
    """Register a user and return bearer auth headers."""
    r = client.post("/api/users/register", json={"email": email, "password": password})
    assert r.status_code == 201, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


class ManualClock:
    """Injectable clock advanced by hand."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)
