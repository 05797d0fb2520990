"""Posture and gait classification applied once, at ingestion time."""
from typing import Any, List, Mapping, NamedTuple

from .rules import (
    Band,
    Rule,
    evaluate,
    field,
    above,
    below,
    outside,
    equals,
    is_set,
    off_center,
    POSTURE_LEVELS,
    GAIT_LEVELS,
    FORWARD_HEAD_POOR,
    FORWARD_HEAD_FAIR,
    SHOULDER_TILT_LIMIT,
    NECK_ANGLE_LIMIT,
    SPINE_ALIGNMENT_POOR,
    SPINE_ALIGNMENT_FAIR,
    POSTURE_SCORE_POOR,
    POSTURE_SCORE_FAIR,
    KEYPOINT_CONFIDENCE_MIN,
    SYMMETRY_ASYMMETRIC,
    SYMMETRY_IRREGULAR,
    BALANCE_TOLERANCE,
    CADENCE_RANGE,
    STANCE_PHASE_RANGE,
    SWING_PHASE_RANGE,
    FORCE_RATIO_RANGE,
    GAIT_SPEED_MIN,
    SENSOR_RULE_ANALYSIS_TYPE,
)

GOOD_POSTURE_MESSAGE = "Excellent posture! Keep maintaining this good posture"
NORMAL_GAIT_MESSAGE = "Normal gait pattern detected!"

POSTURE_SCORES = {"good": 90, "fair": 70, "poor": 40}


class Classification(NamedTuple):
    label: str
    recommendations: List[str]


POSTURE_RULES = (
    Rule("sitting_position", field("sitting_position"), (
        Band(equals("hunchback"),
             "Correct hunchback posture by sitting up straight and pulling shoulders back",
             "poor"),
        Band(equals("reclined"), "Adjust to a more upright sitting position", "fair"),
    )),
    Rule("hand_folding", field("hand_folding"), (
        Band(is_set, "Keep your arms relaxed at your sides for better posture"),
    )),
    Rule("kneeling", field("kneeling"), (
        Band(is_set, "Sit with both feet flat on the ground for proper posture"),
    )),
    Rule("forward_head_angle", field("forward_head_angle"), (
        Band(above(FORWARD_HEAD_POOR),
             "Reduce forward head posture by adjusting monitor height", "poor"),
        Band(above(FORWARD_HEAD_FAIR),
             "Monitor forward head position throughout the day", "fair"),
    )),
    Rule("shoulder_tilt", field("shoulder_tilt", abs), (
        Band(above(SHOULDER_TILT_LIMIT),
             "Level your shoulders and check workspace ergonomics", "poor"),
    )),
    Rule("neck_angle", field("neck_angle"), (
        Band(above(NECK_ANGLE_LIMIT), "Maintain neutral neck position", "fair"),
    )),
    Rule("spine_alignment", field("spine_alignment"), (
        Band(below(SPINE_ALIGNMENT_POOR), "Improve spinal alignment with back support", "poor"),
        Band(below(SPINE_ALIGNMENT_FAIR), "Focus on maintaining good spinal alignment", "fair"),
    )),
    Rule("posture_score", field("posture_score", optional=True), (
        Band(below(POSTURE_SCORE_POOR), "Overall posture needs significant improvement", "poor"),
        Band(below(POSTURE_SCORE_FAIR), "Posture is acceptable but can be improved", "fair"),
    )),
    Rule("keypoint_confidence", field("keypoint_confidence", optional=True), (
        Band(below(KEYPOINT_CONFIDENCE_MIN),
             "Ensure good lighting and clear view for accurate posture analysis"),
    )),
)


def _is_sensor_sample(values: Mapping[str, Any]) -> bool:
    return values.get("analysis_type") == SENSOR_RULE_ANALYSIS_TYPE


def _force_ratio(values: Mapping[str, Any]):
    heel = values.get("heel_strike_force")
    toe = values.get("toe_off_force")
    if not heel or not toe:
        return None
    return heel / toe


GAIT_RULES = (
    Rule("symmetry_score", field("symmetry_score"), (
        Band(below(SYMMETRY_ASYMMETRIC),
             "Significant gait asymmetry detected - consider consulting a healthcare professional",
             "asymmetric"),
        Band(below(SYMMETRY_IRREGULAR),
             "Minor gait irregularities detected - focus on balanced movement",
             "irregular"),
    )),
    Rule("left_right_balance", field("left_right_balance", off_center(50.0)), (
        Band(above(BALANCE_TOLERANCE),
             "Uneven weight distribution between left and right steps", "irregular"),
    )),
    Rule("cadence", field("cadence"), (
        Band(outside(CADENCE_RANGE),
             "Cadence outside normal range - aim for 120-160 steps per minute"),
    )),
    Rule("stance_phase", field("stance_phase", optional=True), (
        Band(outside(STANCE_PHASE_RANGE),
             "Abnormal stance phase duration - may indicate balance issues"),
    ), when=_is_sensor_sample),
    Rule("swing_phase", field("swing_phase", optional=True), (
        Band(outside(SWING_PHASE_RANGE),
             "Abnormal swing phase duration - may indicate mobility limitations"),
    ), when=_is_sensor_sample),
    Rule("force_ratio", _force_ratio, (
        Band(outside(FORCE_RATIO_RANGE),
             "Uneven ground reaction forces - consider gait training"),
    ), when=_is_sensor_sample),
    Rule("gait_speed", field("gait_speed", optional=True), (
        Band(below(GAIT_SPEED_MIN),
             "Slow gait speed - consider increasing walking pace gradually"),
    ), when=_is_sensor_sample),
)


def classify_posture(sample: Mapping[str, Any]) -> Classification:
    """Label a posture sample good/fair/poor and collect recommendations."""
    outcome = evaluate(POSTURE_RULES, sample, POSTURE_LEVELS)
    recommendations = outcome.messages or [GOOD_POSTURE_MESSAGE]
    return Classification(outcome.level, recommendations)


def classify_gait(sample: Mapping[str, Any]) -> Classification:
    """Label a gait sample normal/irregular/asymmetric and collect recommendations."""
    outcome = evaluate(GAIT_RULES, sample, GAIT_LEVELS)
    recommendations = outcome.messages or [NORMAL_GAIT_MESSAGE]
    return Classification(outcome.level, recommendations)


def posture_analysis_score(label: str) -> int:
    return POSTURE_SCORES[label]
