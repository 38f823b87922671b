from __future__ import annotations

from fastapi.testclient import TestClient
import pytest

from quest_app.core.quest_manager import QuestManager
from quest_app.core.services.question_source import TemplateQuestionSource
from quest_app.server.api_server import create_api_app


@pytest.fixture
def manager(scheduler) -> QuestManager:
    return QuestManager(question_source=TemplateQuestionSource.from_default_bank(), scheduler=scheduler)


@pytest.fixture
def client(manager) -> TestClient:
    return TestClient(create_api_app(manager))


@pytest.fixture
def user_id(client) -> str:
    response = client.post("/users", json={"username": "ada"})
    assert response.status_code == 201
    return response.json()["user"]["user_id"]


def _correct_option(manager: QuestManager, session_id: str) -> int:
    return manager.get_session(session_id).get_current_question().correct_option_index


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_register_returns_profile(client, user_id):
    profile = client.get(f"/users/{user_id}").json()

    assert profile["user"]["username"] == "ada"
    assert profile["user"]["level"] == 1
    assert profile["exp_to_next_level"] == 100
    assert len(profile["achievements"]) == 6


def test_unknown_user_is_404(client):
    assert client.get("/users/nobody").status_code == 404


def test_topics_and_levels(client, user_id):
    assert client.get("/topics").json() == {"topics": ["JavaScript", "Python", "React"]}

    levels = client.get(f"/users/{user_id}/topics/python").json()["levels"]

    assert [entry["status"] for entry in levels] == ["unlocked"] + ["locked"] * 5
    assert levels[4]["difficulty"] == "Advanced"


def test_full_quest_over_http(client, manager, user_id):
    response = client.post(f"/users/{user_id}/quests", json={"topic": "Python"})
    assert response.status_code == 201
    session = response.json()
    session_id = session["session_id"]
    assert session["phase"] == "awaiting_answer"
    assert session["question_count"] == 10
    assert session["difficulty"] == "Beginner"
    assert session["question"]["question_html"].startswith("<p>")

    for _ in range(10):
        answered = client.post(
            f"/sessions/{session_id}/answer",
            json={"selected_option_index": _correct_option(manager, session_id)},
        ).json()
        assert answered["phase"] == "showing_feedback"
        assert answered["feedback"]["is_correct"] is True
        client.post(f"/sessions/{session_id}/advance")

    final = client.get(f"/sessions/{session_id}").json()
    assert final["phase"] == "completed"
    assert final["question"] is None
    assert final["score"] == 100
    assert final["result"]["exp_awarded"] == 80
    assert final["result"]["next_level_unlocked"] is True

    attempts = client.get(f"/users/{user_id}/attempts").json()
    assert [a["score"] for a in attempts] == [100]


def test_double_answer_conflicts(client, user_id):
    session_id = client.post(f"/users/{user_id}/quests", json={"topic": "React"}).json()["session_id"]

    assert client.post(f"/sessions/{session_id}/answer", json={"selected_option_index": 0}).status_code == 200
    second = client.post(f"/sessions/{session_id}/answer", json={"selected_option_index": 1})

    assert second.status_code == 409


def test_advance_before_answer_conflicts(client, user_id):
    session_id = client.post(f"/users/{user_id}/quests", json={"topic": "React"}).json()["session_id"]

    assert client.post(f"/sessions/{session_id}/advance").status_code == 409


def test_locked_level_conflicts(client, user_id):
    response = client.post(f"/users/{user_id}/quests", json={"topic": "Python", "level": 3})

    assert response.status_code == 409


def test_invalid_level_is_unprocessable(client, user_id):
    response = client.post(f"/users/{user_id}/quests", json={"topic": "Python", "level": 9})

    assert response.status_code == 422


def test_unsupported_topic_is_bad_gateway(client, user_id):
    response = client.post(f"/users/{user_id}/quests", json={"topic": "Cobol"})

    assert response.status_code == 502


def test_abandon_session(client, user_id):
    session_id = client.post(f"/users/{user_id}/quests", json={"topic": "Python"}).json()["session_id"]

    assert client.delete(f"/sessions/{session_id}").status_code == 204
    assert client.get(f"/sessions/{session_id}").status_code == 404
    assert client.get(f"/users/{user_id}/attempts").json() == []


def test_login_endpoint(client, user_id):
    first = client.post(f"/users/{user_id}/login", json={"today": "2024-01-01"}).json()
    second = client.post(f"/users/{user_id}/login", json={"today": "2024-01-02"}).json()
    repeat = client.post(f"/users/{user_id}/login", json={"today": "2024-01-02"}).json()

    assert first["new_streak"] == 1
    assert second["new_streak"] == 2
    assert repeat["did_login_today"] is False
    assert client.get(f"/users/{user_id}").json()["user"]["last_login_date"] == "2024-01-02"


def test_leaderboard_endpoint(client, user_id):
    other = client.post("/users", json={"username": "bob"}).json()["user"]["user_id"]
    client.post(f"/users/{other}/login", json={"today": "2024-01-01"})

    board = client.get("/leaderboard", params={"category": "streak", "user_id": user_id}).json()

    assert board["category"] == "streak"
    assert [entry["username"] for entry in board["entries"]] == ["bob", "ada"]
    assert [entry["rank"] for entry in board["entries"]] == [1, 2]
    assert board["entries"][0]["stat"] == "1 days"
    assert board["my_rank"] == 2


def test_leaderboard_rejects_unknown_category_and_bad_limit(client):
    assert client.get("/leaderboard", params={"category": "karma"}).status_code == 422
    assert client.get("/leaderboard", params={"limit": 0}).status_code == 422
