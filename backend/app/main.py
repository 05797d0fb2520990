"""FastAPI application for posture and gait telemetry."""
import json
import logging
import os
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, Depends, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from .db import get_db, ensure_schema
from .models import PostureSession, GaitSession, Report, UserProfile
from .schemas import (
    PostureSample,
    GaitSample,
    DeviceReading,
    AnalysisResponse,
    DeviceIngestResponse,
    DeviceStatusResponse,
    DeletedResponse,
    PostureSessionResponse,
    GaitSessionResponse,
    PostureStatsResponse,
    GaitStatsResponse,
    ReportRequest,
    ReportResponse,
    ChatRequest,
    ChatResponse,
    Preferences,
    UserProfileUpdate,
    UserProfileResponse,
    DashboardOverviewResponse,
)
from .ingest import (
    now_ms,
    record_posture_sample,
    record_gait_sample,
    device_reading_to_gait_sample,
    list_sessions,
    get_session,
    delete_session,
    delete_all_sessions,
    purge_implausible_posture,
)
from .classifier import posture_analysis_score
from .metrics import compute_posture_stats, compute_gait_stats, compute_overview
from .reports import compose_report
from .assistant import answer
from .settings import (
    DEFAULT_SUBJECT_ID,
    HISTORY_LIMIT,
    REPORT_LIST_LIMIT,
    LOG_LEVEL,
)

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# Create tables on startup
ensure_schema()

app = FastAPI(title="Biomech Telemetry API", version="0.1.0")

# CORS configuration
_allowed_origins_env = os.getenv("ALLOWED_ORIGINS")
if _allowed_origins_env:
    allowed_origins = [origin.strip() for origin in _allowed_origins_env.split(",")]
else:
    allowed_origins = ["http://localhost:5173"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_subject_id(x_subject_id: Optional[str] = Header(None)) -> str:
    """Subject the request acts for; the anonymous subject when unspecified."""
    return x_subject_id or DEFAULT_SUBJECT_ID


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


# Posture Endpoints

@app.post("/posture/sessions", response_model=AnalysisResponse)
def analyze_posture(
    sample: PostureSample,
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    """Classify and store a posture sample."""
    session = record_posture_sample(db, subject_id, sample.model_dump())
    return AnalysisResponse(
        session_id=session.id,
        classification=session.classification,
        recommendations=session.recommendations,
        score=posture_analysis_score(session.classification),
    )


@app.get("/posture/sessions", response_model=List[PostureSessionResponse])
def get_posture_history(
    limit: int = HISTORY_LIMIT,
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    """Most recent posture sessions, newest first."""
    return list_sessions(db, PostureSession, subject_id, limit=limit, newest_first=True)


@app.get("/posture/sessions/{session_id}", response_model=PostureSessionResponse)
def get_posture_session(
    session_id: int,
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    session = get_session(db, PostureSession, subject_id, session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Posture session not found")
    return session


@app.delete("/posture/sessions/{session_id}", response_model=DeletedResponse)
def delete_posture_session(
    session_id: int,
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    if not delete_session(db, PostureSession, subject_id, session_id):
        raise HTTPException(status_code=404, detail="Posture session not found")
    return DeletedResponse(deleted_count=1)


@app.delete("/posture/sessions", response_model=DeletedResponse)
def delete_all_posture_sessions(
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    return DeletedResponse(deleted_count=delete_all_sessions(db, PostureSession, subject_id))


@app.post("/posture/cleanup", response_model=DeletedResponse)
def cleanup_posture_data(
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    """Remove sessions with physically implausible forward head angles."""
    return DeletedResponse(deleted_count=purge_implausible_posture(db, subject_id))


@app.get("/posture/stats", response_model=PostureStatsResponse)
def get_posture_stats(
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    """Aggregate posture statistics over every stored session."""
    sessions = list_sessions(db, PostureSession, subject_id)
    return compute_posture_stats(sessions, now_ms())


# Gait Endpoints

@app.post("/gait/sessions", response_model=AnalysisResponse)
def analyze_gait(
    sample: GaitSample,
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    """Classify and store a gait sample."""
    session = record_gait_sample(db, subject_id, sample.model_dump())
    return AnalysisResponse(
        session_id=session.id,
        classification=session.classification,
        recommendations=session.recommendations,
        score=session.symmetry_score,
    )


@app.get("/gait/sessions", response_model=List[GaitSessionResponse])
def get_gait_history(
    limit: int = HISTORY_LIMIT,
    analysis_type: Optional[str] = None,
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    """Most recent gait sessions, newest first, optionally for one analysis type."""
    return list_sessions(
        db, GaitSession, subject_id,
        limit=limit, newest_first=True, analysis_type=analysis_type,
    )


@app.get("/gait/sessions/{session_id}", response_model=GaitSessionResponse)
def get_gait_session(
    session_id: int,
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    session = get_session(db, GaitSession, subject_id, session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Gait session not found")
    return session


@app.delete("/gait/sessions/{session_id}", response_model=DeletedResponse)
def delete_gait_session(
    session_id: int,
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    if not delete_session(db, GaitSession, subject_id, session_id):
        raise HTTPException(status_code=404, detail="Gait session not found")
    return DeletedResponse(deleted_count=1)


@app.delete("/gait/sessions", response_model=DeletedResponse)
def delete_all_gait_sessions(
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    return DeletedResponse(deleted_count=delete_all_sessions(db, GaitSession, subject_id))


@app.get("/gait/stats", response_model=GaitStatsResponse)
def get_gait_stats(
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    """Aggregate gait statistics over every stored session."""
    sessions = list_sessions(db, GaitSession, subject_id)
    return compute_gait_stats(sessions, now_ms())


# Device Endpoints

@app.post("/api/esp32-data", response_model=DeviceIngestResponse)
def ingest_device_reading(
    reading: DeviceReading,
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    """Store a raw IMU packet from a wearable as a gait session."""
    sample = device_reading_to_gait_sample(reading.model_dump(by_alias=True))
    session = record_gait_sample(db, subject_id, sample)
    return DeviceIngestResponse(
        success=True,
        session_id=session.id,
        message="ESP32 data received successfully",
    )


@app.get("/api/esp32-status", response_model=DeviceStatusResponse)
def device_status():
    return DeviceStatusResponse(
        status="ready",
        message="ESP32 endpoint is operational",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


# Report Endpoints

@app.post("/reports", response_model=ReportResponse)
def generate_report(
    body: ReportRequest,
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    """Compose a report from the subject's sessions and store it."""
    posture = list_sessions(db, PostureSession, subject_id) if body.type != "gait" else []
    gait = list_sessions(db, GaitSession, subject_id) if body.type != "posture" else []

    draft = compose_report(
        body.type,
        posture_records=posture,
        gait_records=gait,
        session_ids=body.session_ids,
        title=body.title,
        now_ms=now_ms(),
    )
    report = Report(
        subject_id=subject_id,
        session_ids_json=json.dumps(draft.session_ids),
        type=draft.type,
        title=draft.title,
        summary=draft.summary,
        recommendations_json=json.dumps(draft.recommendations),
        created_at=draft.created_at,
    )
    db.add(report)
    db.commit()
    db.refresh(report)
    logger.info("Created %s report %s for %s", report.type, report.id, subject_id)
    return report


@app.get("/reports", response_model=List[ReportResponse])
def get_reports(
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    """Latest reports, newest first."""
    return (
        db.query(Report)
        .filter(Report.subject_id == subject_id)
        .order_by(Report.created_at.desc(), Report.id.desc())
        .limit(REPORT_LIST_LIMIT)
        .all()
    )


def _get_report_or_404(db: Session, subject_id: str, report_id: int) -> Report:
    report = db.query(Report).filter(
        Report.id == report_id,
        Report.subject_id == subject_id,
    ).first()
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    return report


@app.get("/reports/{report_id}", response_model=ReportResponse)
def get_report(
    report_id: int,
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    return _get_report_or_404(db, subject_id, report_id)


@app.delete("/reports/{report_id}", response_model=DeletedResponse)
def delete_report(
    report_id: int,
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    report = _get_report_or_404(db, subject_id, report_id)
    db.delete(report)
    db.commit()
    return DeletedResponse(deleted_count=1)


# Assistant

@app.post("/chat", response_model=ChatResponse)
def chat(
    body: ChatRequest,
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    """Answer a question using the subject's current aggregate statistics."""
    now = now_ms()
    posture_stats = compute_posture_stats(list_sessions(db, PostureSession, subject_id), now)
    gait_stats = compute_gait_stats(list_sessions(db, GaitSession, subject_id), now)
    reply, source = answer(body.message, posture_stats, gait_stats)
    return ChatResponse(reply=reply, source=source)


# Profile and Dashboard

@app.get("/profile", response_model=UserProfileResponse)
def get_profile(
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    profile = db.query(UserProfile).filter(UserProfile.subject_id == subject_id).first()
    if not profile:
        raise HTTPException(status_code=404, detail="No profile found for subject")
    return profile


@app.put("/profile", response_model=UserProfileResponse)
def update_profile(
    body: UserProfileUpdate,
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    """Create the subject's profile or update the fields provided."""
    updates = body.model_dump(exclude_unset=True)
    profile = db.query(UserProfile).filter(UserProfile.subject_id == subject_id).first()
    if not profile:
        profile = UserProfile(
            subject_id=subject_id,
            preferences_json=json.dumps(Preferences().model_dump()),
        )
        db.add(profile)

    for name in ("height", "weight", "age", "activity_level"):
        if name in updates:
            setattr(profile, name, updates[name])
    if "medical_conditions" in updates:
        profile.medical_conditions_json = json.dumps(updates["medical_conditions"])
    if "goals" in updates:
        profile.goals_json = json.dumps(updates["goals"])
    if updates.get("preferences") is not None:
        profile.preferences_json = json.dumps(updates["preferences"])

    db.commit()
    db.refresh(profile)
    return profile


@app.get("/dashboard/overview", response_model=DashboardOverviewResponse)
def get_dashboard_overview(
    db: Session = Depends(get_db),
    subject_id: str = Depends(get_subject_id),
):
    """Session, report and recent-activity counts across both domains."""
    total_reports = db.query(Report).filter(Report.subject_id == subject_id).count()
    return compute_overview(
        list_sessions(db, PostureSession, subject_id),
        list_sessions(db, GaitSession, subject_id),
        total_reports,
        now_ms(),
    )
