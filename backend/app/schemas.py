"""Pydantic schemas for request/response validation."""
from typing import Dict, List, Optional, Literal
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel


class SampleModel(BaseModel):
    """Base for sensor payloads: accepts snake_case or camelCase keys and
    ignores anything it does not know."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class PostureSample(SampleModel):
    """One webcam pose observation."""
    forward_head_angle: float
    shoulder_tilt: float
    neck_angle: float
    spine_alignment: float
    duration: float
    sitting_position: Optional[str] = None  # "straight", "hunchback", "reclined", "unknown"
    hand_folding: Optional[bool] = None
    kneeling: Optional[bool] = None
    spine_angle: Optional[float] = None
    ear_to_hip_angle: Optional[float] = None
    posture_score: Optional[float] = None
    keypoint_confidence: Optional[float] = None
    raw_data: Optional[str] = None
    data_points: Optional[int] = None


class GaitSample(SampleModel):
    """One gait observation from video, CSV upload or IMU."""
    step_count: int
    symmetry_score: float
    cadence: float
    left_right_balance: float
    analysis_type: str
    stride_length: Optional[float] = None
    gait_speed: Optional[float] = None
    raw_data_path: Optional[str] = None
    stance_phase: Optional[float] = None
    swing_phase: Optional[float] = None
    double_support_phase: Optional[float] = None
    heel_strike_force: Optional[float] = None
    toe_off_force: Optional[float] = None


class DeviceReading(SampleModel):
    """Raw IMU packet posted by a wearable sensor."""
    device_id: str
    timestamp: int
    acceleration: Dict[str, float]
    gyroscope: Dict[str, float]
    temperature: Optional[float] = None


class AnalysisResponse(BaseModel):
    """Result of ingesting a sample."""
    session_id: int
    classification: str
    recommendations: List[str]
    score: float


class DeviceIngestResponse(BaseModel):
    success: bool
    session_id: int
    message: str


class DeviceStatusResponse(BaseModel):
    status: str
    message: str
    timestamp: str


class DeletedResponse(BaseModel):
    deleted_count: int


class PostureSessionResponse(BaseModel):
    """Response schema for a stored posture session."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    subject_id: str
    timestamp: int
    forward_head_angle: float
    shoulder_tilt: float
    neck_angle: float
    spine_alignment: float
    duration: float
    sitting_position: Optional[str] = None
    hand_folding: Optional[bool] = None
    kneeling: Optional[bool] = None
    spine_angle: Optional[float] = None
    ear_to_hip_angle: Optional[float] = None
    posture_score: Optional[float] = None
    keypoint_confidence: Optional[float] = None
    classification: str
    recommendations: List[str]
    raw_data: Optional[str] = None
    data_points: Optional[int] = None


class GaitSessionResponse(BaseModel):
    """Response schema for a stored gait session."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    subject_id: str
    timestamp: int
    step_count: int
    symmetry_score: float
    cadence: float
    stride_length: Optional[float] = None
    gait_speed: Optional[float] = None
    left_right_balance: float
    analysis_type: str
    raw_data_path: Optional[str] = None
    stance_phase: Optional[float] = None
    swing_phase: Optional[float] = None
    double_support_phase: Optional[float] = None
    heel_strike_force: Optional[float] = None
    toe_off_force: Optional[float] = None
    classification: str
    recommendations: List[str]


class TrendPoint(BaseModel):
    """One trailing-day bucket of the weekly trend."""
    date: str
    score: int
    sessions: int
    symmetry: Optional[int] = None  # gait only


class AdvancedPostureStats(BaseModel):
    sitting_position_stats: Dict[str, int]
    hand_folding_percentage: int
    kneeling_percentage: int
    average_posture_score: int
    average_keypoint_confidence: int


class PostureStatsResponse(BaseModel):
    """Aggregate posture statistics, recomputed on every read."""
    total_sessions: int
    average_score: int
    good_posture_percentage: int
    average_forward_head: float
    improvement_rate: Optional[int]
    classification_breakdown: Dict[str, int]
    averages: Dict[str, float]
    weekly_trend: List[TrendPoint]
    advanced_stats: AdvancedPostureStats


class GaitStatsResponse(BaseModel):
    """Aggregate gait statistics, recomputed on every read."""
    total_sessions: int
    average_symmetry: int
    average_cadence: int
    normal_gait_percentage: int
    improvement_rate: Optional[int]
    classification_breakdown: Dict[str, int]
    averages: Dict[str, float]
    weekly_trend: List[TrendPoint]


class ReportRequest(BaseModel):
    type: Literal["posture", "gait", "combined"]
    title: Optional[str] = None
    session_ids: List[str] = Field(default_factory=list)


class ReportResponse(BaseModel):
    """Response schema for a stored report."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    subject_id: str
    session_ids: List[str]
    type: str
    title: str
    summary: str
    recommendations: List[str]
    created_at: int


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)


class ChatResponse(BaseModel):
    reply: str
    source: Literal["gemini", "openai", "fallback"]


class Preferences(BaseModel):
    dark_mode: bool = False
    notifications: bool = True
    units: Literal["metric", "imperial"] = "metric"


class UserProfileUpdate(BaseModel):
    """Partial profile update; omitted fields keep their stored value."""
    height: Optional[float] = Field(None, gt=0)
    weight: Optional[float] = Field(None, gt=0)
    age: Optional[int] = Field(None, ge=0)
    activity_level: Optional[str] = None
    medical_conditions: Optional[List[str]] = None
    goals: Optional[List[str]] = None
    preferences: Optional[Preferences] = None


class UserProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    subject_id: str
    height: Optional[float] = None
    weight: Optional[float] = None
    age: Optional[int] = None
    activity_level: Optional[str] = None
    medical_conditions: List[str]
    goals: List[str]
    preferences: Preferences


class DashboardOverviewResponse(BaseModel):
    total_sessions: int
    total_posture_sessions: int
    total_gait_sessions: int
    total_reports: int
    recent_posture_sessions: int
    recent_gait_sessions: int
    last_activity: int
