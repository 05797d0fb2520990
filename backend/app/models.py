"""SQLAlchemy ORM models."""
import json

from sqlalchemy import Column, Index, Integer, BigInteger, String, Boolean, Float, Text

from .db import Base


def _load_list(raw):
    return json.loads(raw) if raw else []


class PostureSession(Base):
    """One classified posture observation."""
    __tablename__ = "posture_sessions"
    __table_args__ = (Index("ix_posture_sessions_subject_ts", "subject_id", "timestamp"),)

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(String, index=True, nullable=False)
    timestamp = Column(BigInteger, index=True, nullable=False)  # ms since epoch
    forward_head_angle = Column(Float, nullable=False)
    shoulder_tilt = Column(Float, nullable=False)
    neck_angle = Column(Float, nullable=False)
    spine_alignment = Column(Float, nullable=False)
    duration = Column(Float, nullable=False)  # seconds
    sitting_position = Column(String, index=True, nullable=True)
    hand_folding = Column(Boolean, nullable=True)
    kneeling = Column(Boolean, nullable=True)
    spine_angle = Column(Float, nullable=True)
    ear_to_hip_angle = Column(Float, nullable=True)
    posture_score = Column(Float, nullable=True)  # 0-100
    keypoint_confidence = Column(Float, nullable=True)  # 0-100
    classification = Column(String, nullable=False)  # "good", "fair", "poor"
    recommendations_json = Column(Text, nullable=False)
    raw_data = Column(Text, nullable=True)  # opaque serialized time series
    data_points = Column(Integer, nullable=True)

    @property
    def recommendations(self):
        return _load_list(self.recommendations_json)


class GaitSession(Base):
    """One classified gait observation (camera, CSV upload or IMU)."""
    __tablename__ = "gait_sessions"
    __table_args__ = (Index("ix_gait_sessions_subject_ts", "subject_id", "timestamp"),)

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(String, index=True, nullable=False)
    timestamp = Column(BigInteger, index=True, nullable=False)
    step_count = Column(Integer, nullable=False)
    symmetry_score = Column(Float, nullable=False)  # 0-100
    cadence = Column(Float, nullable=False)  # steps per minute
    stride_length = Column(Float, nullable=True)
    gait_speed = Column(Float, nullable=True)
    left_right_balance = Column(Float, nullable=False)  # percentage
    analysis_type = Column(String, index=True, nullable=False)  # "motion", "csv", "esp32", ...
    raw_data_path = Column(Text, nullable=True)
    stance_phase = Column(Float, nullable=True)
    swing_phase = Column(Float, nullable=True)
    double_support_phase = Column(Float, nullable=True)
    heel_strike_force = Column(Float, nullable=True)
    toe_off_force = Column(Float, nullable=True)
    classification = Column(String, nullable=False)  # "normal", "irregular", "asymmetric"
    recommendations_json = Column(Text, nullable=False)

    @property
    def recommendations(self):
        return _load_list(self.recommendations_json)


class Report(Base):
    """Narrative snapshot of posture and/or gait statistics."""
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(String, index=True, nullable=False)
    session_ids_json = Column(Text, nullable=False)
    type = Column(String, nullable=False)  # "posture", "gait", "combined"
    title = Column(String, nullable=False)
    summary = Column(Text, nullable=False)
    recommendations_json = Column(Text, nullable=False)
    created_at = Column(BigInteger, index=True, nullable=False)

    @property
    def session_ids(self):
        return _load_list(self.session_ids_json)

    @property
    def recommendations(self):
        return _load_list(self.recommendations_json)


class UserProfile(Base):
    """Body measurements and preferences for a subject."""
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(String, unique=True, index=True, nullable=False)
    height = Column(Float, nullable=True)  # cm
    weight = Column(Float, nullable=True)  # kg
    age = Column(Integer, nullable=True)
    activity_level = Column(String, nullable=True)
    medical_conditions_json = Column(Text, nullable=True)
    goals_json = Column(Text, nullable=True)
    preferences_json = Column(Text, nullable=False)

    @property
    def medical_conditions(self):
        return _load_list(self.medical_conditions_json)

    @property
    def goals(self):
        return _load_list(self.goals_json)

    @property
    def preferences(self):
        return json.loads(self.preferences_json)
