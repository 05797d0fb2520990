"""Test posture and gait classification rules."""
import pytest

from backend.app.classifier import (
    classify_posture,
    classify_gait,
    posture_analysis_score,
    GOOD_POSTURE_MESSAGE,
    NORMAL_GAIT_MESSAGE,
)
from backend.app.rules import POSTURE_LEVELS


def posture(**overrides):
    """Helper to build a posture sample that passes every rule."""
    sample = {
        "forward_head_angle": 5,
        "shoulder_tilt": 2,
        "neck_angle": 5,
        "spine_alignment": 90,
        "duration": 60,
    }
    sample.update(overrides)
    return sample


def gait(**overrides):
    """Helper to build a gait sample that passes every rule."""
    sample = {
        "step_count": 40,
        "symmetry_score": 92,
        "cadence": 130,
        "left_right_balance": 50,
        "analysis_type": "motion",
    }
    sample.update(overrides)
    return sample


def test_good_posture_gets_affirmation():
    label, recs = classify_posture(posture())
    assert label == "good"
    assert recs == [GOOD_POSTURE_MESSAGE]


def test_forward_head_over_15_is_poor():
    """forwardHeadAngle 20 alone makes the sample poor."""
    label, recs = classify_posture({
        "forward_head_angle": 20,
        "shoulder_tilt": 2,
        "neck_angle": 5,
        "spine_alignment": 90,
    })
    assert label == "poor"
    assert recs == ["Reduce forward head posture by adjusting monitor height"]


def test_forward_head_between_10_and_15_is_fair():
    label, recs = classify_posture(posture(forward_head_angle=12))
    assert label == "fair"
    assert recs == ["Monitor forward head position throughout the day"]


def test_negative_shoulder_tilt_uses_magnitude():
    label, _ = classify_posture(posture(shoulder_tilt=-11))
    assert label == "poor"


def test_hunchback_stays_poor_after_fair_rules():
    """Later fair-level rules cannot improve a poor label."""
    label, recs = classify_posture(posture(
        sitting_position="hunchback", neck_angle=20, spine_alignment=80,
    ))
    assert label == "poor"
    assert recs == [
        "Correct hunchback posture by sitting up straight and pulling shoulders back",
        "Maintain neutral neck position",
        "Focus on maintaining good spinal alignment",
    ]


def test_reclined_is_fair():
    label, recs = classify_posture(posture(sitting_position="reclined"))
    assert label == "fair"
    assert recs == ["Adjust to a more upright sitting position"]


def test_flags_only_add_recommendations():
    label, recs = classify_posture(posture(hand_folding=True, kneeling=True))
    assert label == "good"
    assert recs == [
        "Keep your arms relaxed at your sides for better posture",
        "Sit with both feet flat on the ground for proper posture",
    ]


def test_low_keypoint_confidence_is_advisory():
    label, recs = classify_posture(posture(keypoint_confidence=50))
    assert label == "good"
    assert recs == ["Ensure good lighting and clear view for accurate posture analysis"]


def test_posture_score_rules():
    assert classify_posture(posture(posture_score=55)).label == "poor"
    assert classify_posture(posture(posture_score=75)).label == "fair"
    assert classify_posture(posture(posture_score=95)).label == "good"


def test_missing_or_zero_optional_fields_skip_their_rules():
    assert classify_posture(posture(posture_score=None)).label == "good"
    assert classify_posture(posture(posture_score=0)).label == "good"
    assert classify_posture(posture(keypoint_confidence=0)).recommendations == [
        GOOD_POSTURE_MESSAGE
    ]


@pytest.mark.parametrize("overrides", [
    {"sitting_position": "hunchback"},
    {"forward_head_angle": 16},
    {"shoulder_tilt": 11},
    {"spine_alignment": 60},
    {"posture_score": 40},
])
def test_poor_is_never_improved_by_later_rules(overrides):
    """Once any rule sets poor, adding milder problems keeps it poor."""
    mild = {"sitting_position": "reclined", "neck_angle": 16, "keypoint_confidence": 60}
    for key, value in mild.items():
        overrides.setdefault(key, value)
    assert classify_posture(posture(**overrides)).label == "poor"


def test_label_never_better_than_single_worst_rule():
    """Adding problems never yields a better label than any one of them alone."""
    problems = [
        {"forward_head_angle": 12},
        {"neck_angle": 16},
        {"spine_alignment": 65},
        {"sitting_position": "reclined"},
    ]
    combined = {}
    worst = 0
    for problem in problems:
        combined.update(problem)
        alone = POSTURE_LEVELS.index(classify_posture(posture(**problem)).label)
        worst = max(worst, alone)
        together = POSTURE_LEVELS.index(classify_posture(posture(**combined)).label)
        assert together >= worst


def test_normal_gait_scenario():
    label, recs = classify_gait({
        "symmetry_score": 92,
        "cadence": 130,
        "left_right_balance": 50,
        "analysis_type": "motion",
    })
    assert label == "normal"
    assert recs == [NORMAL_GAIT_MESSAGE]


@pytest.mark.parametrize("balance,cadence", [(50, 130), (90, 130), (10, 60), (50, 200)])
def test_low_symmetry_is_always_asymmetric(balance, cadence):
    label, _ = classify_gait(gait(symmetry_score=65, left_right_balance=balance, cadence=cadence))
    assert label == "asymmetric"


def test_moderate_symmetry_is_irregular():
    label, recs = classify_gait(gait(symmetry_score=80))
    assert label == "irregular"
    assert recs == ["Minor gait irregularities detected - focus on balanced movement"]


def test_balance_escalates_normal_to_irregular():
    label, recs = classify_gait(gait(left_right_balance=70))
    assert label == "irregular"
    assert recs == ["Uneven weight distribution between left and right steps"]


def test_cadence_out_of_range_is_advisory():
    label, recs = classify_gait(gait(cadence=90))
    assert label == "normal"
    assert recs == ["Cadence outside normal range - aim for 120-160 steps per minute"]


def test_sensor_rules_apply_only_to_sensor_samples():
    sensor_fields = {
        "stance_phase": 75,
        "swing_phase": 20,
        "heel_strike_force": 300,
        "toe_off_force": 200,
        "gait_speed": 0.5,
    }
    label, recs = classify_gait(gait(analysis_type="esp32", **sensor_fields))
    assert label == "normal"
    assert recs == [
        "Abnormal stance phase duration - may indicate balance issues",
        "Abnormal swing phase duration - may indicate mobility limitations",
        "Uneven ground reaction forces - consider gait training",
        "Slow gait speed - consider increasing walking pace gradually",
    ]

    _, recs = classify_gait(gait(analysis_type="motion", **sensor_fields))
    assert recs == [NORMAL_GAIT_MESSAGE]


def test_device_readings_skip_sensor_rules():
    """Only uploaded esp32 analyses get the phase, force and speed rules."""
    label, recs = classify_gait(gait(
        analysis_type="esp32-wifi",
        stance_phase=75,
        swing_phase=20,
        heel_strike_force=300,
        toe_off_force=200,
        gait_speed=0.5,
    ))
    assert label == "normal"
    assert recs == [NORMAL_GAIT_MESSAGE]


def test_force_ratio_needs_both_forces():
    _, recs = classify_gait(gait(analysis_type="esp32", heel_strike_force=300, toe_off_force=0))
    assert recs == [NORMAL_GAIT_MESSAGE]


def test_posture_analysis_scores():
    assert posture_analysis_score("good") == 90
    assert posture_analysis_score("fair") == 70
    assert posture_analysis_score("poor") == 40
