"""Integration tests for the quiz session endpoints."""

from fastapi.testclient import TestClient

from factories import register


def _start(client, headers, topics):
    return client.post("/api/quiz/start", json={"topics": topics}, headers=headers)


def test_list_topics(client: TestClient):
    response = client.get("/api/quiz/topics")
    assert response.status_code == 200
    ids = [t["id"] for t in response.json()]
    assert ids[:3] == ["git", "linux", "q"]
    assert "live" in ids


def test_start_requires_auth(client: TestClient):
    assert _start(client, {}, ["git"]).status_code == 401


def test_start_unknown_topic_has_no_questions(client: TestClient, auth_headers):
    response = _start(client, auth_headers, ["nope"])
    assert response.status_code == 404
    assert "no questions" in response.json()["detail"].lower()


def test_start_rejects_empty_topic_list(client: TestClient, auth_headers):
    assert _start(client, auth_headers, []).status_code == 422


def test_start_and_view_session(client: TestClient, auth_headers):
    response = _start(client, auth_headers, ["git"])
    assert response.status_code == 201
    data = response.json()
    assert data["total_questions"] == 2
    assert data["current_index"] == 0
    assert data["time_left_seconds"] == 30
    assert data["finished"] is False
    assert all("is_correct" not in o for o in data["question"]["options"])

    again = client.get("/api/quiz/session", headers=auth_headers)
    assert again.status_code == 200
    assert again.json()["question"]["id"] == data["question"]["id"]


def test_no_session_is_404(client: TestClient, auth_headers):
    assert client.get("/api/quiz/session", headers=auth_headers).status_code == 404


def test_answer_navigate_and_submit(client: TestClient, auth_headers):
    first = _start(client, auth_headers, ["git"]).json()["question"]
    option_id = first["options"][0]["id"]

    r = client.post(
        "/api/quiz/session/options",
        json={"question_id": first["id"], "option_id": option_id},
        headers=auth_headers,
    )
    assert r.json()["selected_option_ids"] == [option_id]

    assert client.post("/api/quiz/session/back", headers=auth_headers).status_code == 400
    r = client.post("/api/quiz/session/next", headers=auth_headers)
    assert r.json()["current_index"] == 1
    assert client.post("/api/quiz/session/skip", headers=auth_headers).status_code == 400

    r = client.post("/api/quiz/session/submit", headers=auth_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["finished"] is True
    assert body["result_id"]

    history = client.get("/api/results/", headers=auth_headers).json()
    assert len(history) == 1
    assert history[0]["id"] == body["result_id"]
    assert history[0]["breakdown"]["total"] == 2
    assert history[0]["reason"] == "manual"


def test_submit_twice_stores_one_result(client: TestClient, auth_headers):
    _start(client, auth_headers, ["linux"])
    first = client.post("/api/quiz/session/submit", headers=auth_headers).json()
    second = client.post("/api/quiz/session/submit", headers=auth_headers).json()
    assert first["result_id"] == second["result_id"]
    assert len(client.get("/api/results/", headers=auth_headers).json()) == 1

    r = client.post(
        "/api/quiz/session/options",
        json={"question_id": "l1", "option_id": "l1_a"},
        headers=auth_headers,
    )
    assert r.status_code == 409


def test_unknown_question_is_404(client: TestClient, auth_headers):
    _start(client, auth_headers, ["git"])
    r = client.post(
        "/api/quiz/session/options",
        json={"question_id": "zzz", "option_id": "x"},
        headers=auth_headers,
    )
    assert r.status_code == 404


def test_live_only_session_solved_and_auto_submitted(client: TestClient, auth_headers):
    data = _start(client, auth_headers, ["live"]).json()
    assert data["time_left_seconds"] is None
    assert data["question"]["kind"] == "live"
    assert data["live"]["attempts_limit"] == 2

    r = client.put(
        "/api/quiz/session/attempt",
        json={"question_id": "live_q1", "text": "sum 1 2"},
        headers=auth_headers,
    )
    assert r.json()["attempt"] == "sum 1 2"

    r = client.post("/api/quiz/session/run", json={"question_id": "live_q1"}, headers=auth_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["live"]["status"] == "correct"
    assert body["finished"] is True
    assert body["result_id"]

    latest = client.get("/api/results/latest", headers=auth_headers).json()
    assert latest["reason"] == "auto-advance"
    assert latest["breakdown"]["correct"] == 1


def test_checker_outage_does_not_consume_attempts(client: TestClient, auth_headers, checker):
    _start(client, auth_headers, ["live"])
    client.put(
        "/api/quiz/session/attempt",
        json={"question_id": "live_q1", "text": "sum 1 2"},
        headers=auth_headers,
    )
    checker.fail = True
    for _ in range(3):
        r = client.post("/api/quiz/session/run", json={"question_id": "live_q1"}, headers=auth_headers)
        assert r.status_code == 200
        live = r.json()["live"]
        assert live["status"] == "error"
        assert live["attempts_used"] == 0


def test_restart_replaces_session(client: TestClient, auth_headers):
    _start(client, auth_headers, ["git"])
    r = _start(client, auth_headers, ["linux"])
    assert r.json()["topics"] == ["linux"]
    assert client.get("/api/quiz/session", headers=auth_headers).json()["topics"] == ["linux"]


def test_sessions_are_per_user(client: TestClient, auth_headers):
    _start(client, auth_headers, ["git"])
    other = register(client, "sam@ex.com")
    assert client.get("/api/quiz/session", headers=other).status_code == 404


def test_live_format(client: TestClient, auth_headers, checker):
    r = client.get("/api/quiz/live/q1/format", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == {
        "external_id": "q1",
        "prompt": "Prompt for q1",
        "setup": "t:([] a:1 2)",
        "expected": "3",
    }
    checker.fail = True
    assert client.get("/api/quiz/live/q1/format", headers=auth_headers).status_code == 502


def test_health_reports_checker(client: TestClient, checker):
    assert client.get("/health").json() == {
        "status": "healthy",
        "service": "onboarding-quiz-backend",
        "live_checker": "up",
    }
    checker.fail = True
    assert client.get("/health").json()["live_checker"] == "down"
