"""Test record-store helpers against a shared database."""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.db import Base
from backend.app.ingest import (
    record_posture_sample,
    delete_session,
    delete_all_sessions,
    list_sessions,
)
from backend.app.models import PostureSession


@pytest.fixture
def session_factory():
    """In-memory database that several sessions can open at once."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def create_posture(**overrides):
    sample = {
        "forward_head_angle": 5.0,
        "shoulder_tilt": 2.0,
        "neck_angle": 5.0,
        "spine_alignment": 90.0,
        "duration": 60.0,
    }
    sample.update(overrides)
    return sample


def test_delete_all_after_interleaved_writes(session_factory):
    """Bulk delete counts what is present when it runs, despite other writers."""
    first = session_factory()
    second = session_factory()
    try:
        rows = [record_posture_sample(first, "subject-a", create_posture(), timestamp=i)
                for i in range(5)]
        # Another session removes one row and adds one before the wipe
        assert delete_session(second, PostureSession, "subject-a", rows[0].id)
        record_posture_sample(second, "subject-a", create_posture(), timestamp=10)
        record_posture_sample(second, "subject-b", create_posture(), timestamp=11)

        deleted = delete_all_sessions(first, PostureSession, "subject-a")

        assert deleted == 5
        assert list_sessions(first, PostureSession, "subject-a") == []
        assert list_sessions(second, PostureSession, "subject-a") == []
        assert len(list_sessions(second, PostureSession, "subject-b")) == 1
    finally:
        first.close()
        second.close()


def test_delete_all_interleaved_with_inserts_between_calls(session_factory):
    first = session_factory()
    second = session_factory()
    try:
        record_posture_sample(first, "subject-a", create_posture(), timestamp=1)
        assert delete_all_sessions(first, PostureSession, "subject-a") == 1

        record_posture_sample(second, "subject-a", create_posture(), timestamp=2)
        record_posture_sample(second, "subject-a", create_posture(), timestamp=3)
        assert delete_all_sessions(first, PostureSession, "subject-a") == 2
        assert delete_all_sessions(second, PostureSession, "subject-a") == 0
    finally:
        first.close()
        second.close()


def test_record_uses_given_timestamp(session_factory):
    db = session_factory()
    try:
        session = record_posture_sample(db, "subject-a", create_posture(), timestamp=1234)
        assert session.timestamp == 1234
        assert session.classification == "good"
        assert session.subject_id == "subject-a"
    finally:
        db.close()
