"""Test the chat assistant and its provider fallbacks."""
from datetime import date
from unittest import mock

import pytest
import requests
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app import assistant
from backend.app.main import app
from backend.app.db import Base, get_db

POSTURE_STATS = {
    "total_sessions": 12,
    "good_posture_percentage": 58,
    "average_forward_head": 9.4,
    "average_score": 58,
    "improvement_rate": 20,
    "weekly_trend": [{"date": "2025-10-09", "score": 58, "sessions": 3}],
}
GAIT_STATS = {
    "total_sessions": 4,
    "average_symmetry": 87,
    "average_cadence": 124,
    "normal_gait_percentage": 75,
    "weekly_trend": [],
}


@pytest.fixture(autouse=True)
def no_api_keys(monkeypatch):
    """Run every test without provider keys unless a test sets one."""
    monkeypatch.setattr("backend.app.settings.GEMINI_API_KEY", "")
    monkeypatch.setattr("backend.app.settings.OPENAI_API_KEY", "")


@pytest.fixture
def test_db():
    """Create a fresh in-memory test database for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides.clear()
    engine.dispose()


@pytest.fixture
def client(test_db):
    """Test client with test database."""
    return TestClient(app)


def _response(status_code, payload):
    resp = mock.Mock()
    resp.status_code = status_code
    resp.json.return_value = payload
    resp.text = str(payload)
    return resp


def test_context_without_data():
    context = assistant.build_context(None, {"total_sessions": 0})
    assert "No posture sessions recorded yet" in context
    assert "No gait sessions recorded yet" in context


def test_context_with_data():
    context = assistant.build_context(POSTURE_STATS, GAIT_STATS)
    assert "Total posture sessions recorded: 12" in context
    assert "Improvement rate: 20%" in context
    assert "Average gait symmetry: 87%" in context
    assert "Recent weekly trend: No recent data" in context


def test_context_with_undefined_improvement():
    stats = dict(POSTURE_STATS, improvement_rate=None)
    assert "Improvement rate: undefined" in assistant.build_context(stats, None)


def test_no_keys_uses_fallback():
    with mock.patch("backend.app.assistant.requests.post") as post:
        reply, source = assistant.answer("How can I fix my posture?", POSTURE_STATS, GAIT_STATS)
    post.assert_not_called()
    assert source == "fallback"
    assert "Sessions analyzed: 12" in reply
    assert "Improvement trend: +20%" in reply


def test_gemini_success(monkeypatch):
    monkeypatch.setattr("backend.app.settings.GEMINI_API_KEY", "g-key")
    payload = {"candidates": [{"content": {"parts": [{"text": "Do chin tucks."}]}}]}
    with mock.patch("backend.app.assistant.requests.post",
                    return_value=_response(200, payload)) as post:
        reply, source = assistant.answer("Any advice?", POSTURE_STATS, GAIT_STATS)

    assert (reply, source) == ("Do chin tucks.", "gemini")
    _, kwargs = post.call_args
    assert kwargs["params"] == {"key": "g-key"}
    assert "Any advice?" in kwargs["json"]["contents"][0]["parts"][0]["text"]


def test_gemini_error_falls_back_to_openai(monkeypatch):
    monkeypatch.setattr("backend.app.settings.GEMINI_API_KEY", "g-key")
    monkeypatch.setattr("backend.app.settings.OPENAI_API_KEY", "o-key")
    openai_payload = {"choices": [{"message": {"content": "Walk more."}}]}
    with mock.patch("backend.app.assistant.requests.post",
                    side_effect=[_response(500, {"error": "boom"}),
                                 _response(200, openai_payload)]):
        reply, source = assistant.answer("Any advice?", None, None)
    assert (reply, source) == ("Walk more.", "openai")


def test_network_failures_fall_back_to_canned(monkeypatch):
    monkeypatch.setattr("backend.app.settings.GEMINI_API_KEY", "g-key")
    monkeypatch.setattr("backend.app.settings.OPENAI_API_KEY", "o-key")
    with mock.patch("backend.app.assistant.requests.post",
                    side_effect=requests.exceptions.ConnectionError("offline")):
        reply, source = assistant.answer("gait symmetry?", None, GAIT_STATS)
    assert source == "fallback"
    assert "Symmetry score: 87%" in reply


def test_malformed_provider_response_is_ignored(monkeypatch):
    monkeypatch.setattr("backend.app.settings.GEMINI_API_KEY", "g-key")
    with mock.patch("backend.app.assistant.requests.post",
                    return_value=_response(200, {"candidates": []})):
        assert assistant.ask_gemini("ctx", "question") is None


def test_fallback_answers_calendar_questions():
    reply = assistant.fallback_response("what is the date", None, None, today=date(2025, 3, 14))
    assert reply.startswith("Today is Friday, March 14, 2025.")


def test_fallback_greeting_mentions_missing_data():
    reply = assistant.fallback_response("Hello", None, None)
    assert "No posture data yet" in reply
    assert "No gait data yet" in reply


def test_fallback_topics():
    assert "wall angels (2x15)" in assistant.fallback_response("exercise plan", None, None)
    assert "eye level" in assistant.fallback_response("ergonomic desk", None, None)
    assert "medical evaluation" in assistant.fallback_response("neck pain", None, None)
    assert "Try asking" in assistant.fallback_response("quantum", None, None)


@pytest.mark.parametrize("message", ["any tips?", "how to get better", "improve overall"])
def test_fallback_improvement_plan(message):
    reply = assistant.fallback_response(message, None, None)
    assert reply.startswith("Improvement plan:")


def test_fallback_wrong_position_routes_to_posture():
    reply = assistant.fallback_response("wrong position again", POSTURE_STATS, None)
    assert reply.startswith("Your posture profile:")
    assert "Evidence-based solutions:" in reply


def test_chat_endpoint_uses_subject_stats(client):
    client.post("/gait/sessions", json={
        "step_count": 40,
        "symmetry_score": 90.0,
        "cadence": 120.0,
        "left_right_balance": 50.0,
        "analysis_type": "motion",
    })
    response = client.post("/chat", json={"message": "walking symmetry?"})
    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "fallback"
    assert "Gait sessions: 1" in data["reply"]
    assert "Symmetry score: 90%" in data["reply"]


def test_chat_rejects_empty_message(client):
    assert client.post("/chat", json={"message": ""}).status_code == 422
