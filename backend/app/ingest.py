"""Session ingestion and record-store helpers."""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from .classifier import classify_posture, classify_gait
from .models import PostureSession, GaitSession
from .rules import DEVICE_ANALYSIS_TYPE
from .settings import MAX_PLAUSIBLE_FORWARD_HEAD

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def record_posture_sample(
    db: Session,
    subject_id: str,
    sample: Dict[str, Any],
    timestamp: Optional[int] = None,
) -> PostureSession:
    """Classify a posture sample and store it as an immutable session.

    Values are stored as given; implausible angles are only filtered out
    later, when reports are composed.
    """
    label, recommendations = classify_posture(sample)
    session = PostureSession(
        subject_id=subject_id,
        timestamp=timestamp if timestamp is not None else now_ms(),
        forward_head_angle=sample["forward_head_angle"],
        shoulder_tilt=sample["shoulder_tilt"],
        neck_angle=sample["neck_angle"],
        spine_alignment=sample["spine_alignment"],
        duration=sample["duration"],
        sitting_position=sample.get("sitting_position"),
        hand_folding=sample.get("hand_folding"),
        kneeling=sample.get("kneeling"),
        spine_angle=sample.get("spine_angle"),
        ear_to_hip_angle=sample.get("ear_to_hip_angle"),
        posture_score=sample.get("posture_score"),
        keypoint_confidence=sample.get("keypoint_confidence"),
        classification=label,
        recommendations_json=json.dumps(recommendations),
        raw_data=sample.get("raw_data"),
        data_points=sample.get("data_points"),
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info("Stored posture session %s for %s (%s)", session.id, subject_id, label)
    return session


def record_gait_sample(
    db: Session,
    subject_id: str,
    sample: Dict[str, Any],
    timestamp: Optional[int] = None,
) -> GaitSession:
    """Classify a gait sample and store it as an immutable session."""
    label, recommendations = classify_gait(sample)
    session = GaitSession(
        subject_id=subject_id,
        timestamp=timestamp if timestamp is not None else now_ms(),
        step_count=sample["step_count"],
        symmetry_score=sample["symmetry_score"],
        cadence=sample["cadence"],
        stride_length=sample.get("stride_length"),
        gait_speed=sample.get("gait_speed"),
        left_right_balance=sample["left_right_balance"],
        analysis_type=sample["analysis_type"],
        raw_data_path=sample.get("raw_data_path"),
        stance_phase=sample.get("stance_phase"),
        swing_phase=sample.get("swing_phase"),
        double_support_phase=sample.get("double_support_phase"),
        heel_strike_force=sample.get("heel_strike_force"),
        toe_off_force=sample.get("toe_off_force"),
        classification=label,
        recommendations_json=json.dumps(recommendations),
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info("Stored gait session %s for %s (%s)", session.id, subject_id, label)
    return session


def device_reading_to_gait_sample(reading: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap a raw IMU packet as a gait sample.

    Step metrics are not derived on the server; the packet is kept verbatim
    in raw_data_path for display.
    """
    return {
        "step_count": 0,
        "cadence": 0,
        "stride_length": 0,
        "gait_speed": 0,
        "symmetry_score": 0,
        "left_right_balance": 50,
        "stance_phase": 60,
        "swing_phase": 40,
        "double_support_phase": 10,
        "heel_strike_force": 0,
        "toe_off_force": 0,
        "analysis_type": DEVICE_ANALYSIS_TYPE,
        "raw_data_path": json.dumps(reading),
    }


def list_sessions(
    db: Session,
    model,
    subject_id: str,
    limit: Optional[int] = None,
    newest_first: bool = False,
    analysis_type: Optional[str] = None,
) -> List[Any]:
    """Sessions for a subject ordered by timestamp (insertion order breaks ties)."""
    query = db.query(model).filter(model.subject_id == subject_id)
    if analysis_type is not None:
        query = query.filter(model.analysis_type == analysis_type)
    if newest_first:
        query = query.order_by(model.timestamp.desc(), model.id.desc())
    else:
        query = query.order_by(model.timestamp, model.id)
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def get_session(db: Session, model, subject_id: str, session_id: int):
    return db.query(model).filter(
        model.id == session_id,
        model.subject_id == subject_id,
    ).first()


def delete_session(db: Session, model, subject_id: str, session_id: int) -> bool:
    session = get_session(db, model, subject_id, session_id)
    if session is None:
        return False
    db.delete(session)
    db.commit()
    return True


def _delete_each(db: Session, rows: List[Any]) -> int:
    # One commit per row: a failure part-way leaves earlier deletions in place.
    deleted = 0
    for row in rows:
        db.delete(row)
        db.commit()
        deleted += 1
    return deleted


def delete_all_sessions(db: Session, model, subject_id: str) -> int:
    """Best-effort wipe of one domain for a subject."""
    rows = db.query(model).filter(model.subject_id == subject_id).all()
    deleted = _delete_each(db, rows)
    logger.info("Deleted %d %s rows for %s", deleted, model.__tablename__, subject_id)
    return deleted


def purge_implausible_posture(db: Session, subject_id: str) -> int:
    """Delete posture sessions whose forward head angle is physically implausible."""
    rows = db.query(PostureSession).filter(
        PostureSession.subject_id == subject_id,
        PostureSession.forward_head_angle > MAX_PLAUSIBLE_FORWARD_HEAD,
    ).all()
    logger.info("Found %d posture sessions with implausible data to clean up", len(rows))
    return _delete_each(db, rows)
