"""Test profile and dashboard overview endpoints."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db import Base, get_db


@pytest.fixture(scope="function")
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


def test_profile_missing_returns_404(client):
    assert client.get("/profile").status_code == 404


def test_profile_created_with_default_preferences(client):
    response = client.put("/profile", json={"height": 172.5, "age": 34, "goals": ["fix posture"]})
    assert response.status_code == 200
    profile = response.json()
    assert profile["subject_id"] == "anonymous-user"
    assert profile["height"] == 172.5
    assert profile["age"] == 34
    assert profile["goals"] == ["fix posture"]
    assert profile["medical_conditions"] == []
    assert profile["preferences"] == {"dark_mode": False, "notifications": True, "units": "metric"}

    assert client.get("/profile").json() == profile


def test_profile_partial_update_keeps_other_fields(client):
    client.put("/profile", json={"height": 180.0, "weight": 75.0})
    updated = client.put("/profile", json={
        "weight": 72.0,
        "preferences": {"dark_mode": True, "notifications": False, "units": "imperial"},
    }).json()

    assert updated["height"] == 180.0
    assert updated["weight"] == 72.0
    assert updated["preferences"]["units"] == "imperial"
    assert updated["preferences"]["dark_mode"] is True


def test_profile_rejects_invalid_values(client):
    assert client.put("/profile", json={"height": -1}).status_code == 422
    assert client.put("/profile", json={"preferences": {"units": "cubits"}}).status_code == 422


def test_dashboard_overview_empty(client):
    overview = client.get("/dashboard/overview").json()
    assert overview == {
        "total_sessions": 0,
        "total_posture_sessions": 0,
        "total_gait_sessions": 0,
        "total_reports": 0,
        "recent_posture_sessions": 0,
        "recent_gait_sessions": 0,
        "last_activity": 0,
    }


def test_dashboard_overview_counts(client):
    client.post("/posture/sessions", json={
        "forward_head_angle": 45.0,
        "shoulder_tilt": 2.0,
        "neck_angle": 5.0,
        "spine_alignment": 90.0,
        "duration": 60.0,
    })
    gait = client.post("/gait/sessions", json={
        "step_count": 40,
        "symmetry_score": 92.0,
        "cadence": 120.0,
        "left_right_balance": 50.0,
        "analysis_type": "motion",
    }).json()
    client.post("/reports", json={"type": "combined"})

    overview = client.get("/dashboard/overview").json()
    # Implausible posture sessions still count toward dashboard totals
    assert overview["total_posture_sessions"] == 1
    assert overview["total_gait_sessions"] == 1
    assert overview["total_sessions"] == 2
    assert overview["total_reports"] == 1
    assert overview["recent_posture_sessions"] == 1
    assert overview["recent_gait_sessions"] == 1

    stored = client.get(f"/gait/sessions/{gait['session_id']}").json()
    assert overview["last_activity"] >= stored["timestamp"]
