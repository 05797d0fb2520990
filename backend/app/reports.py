"""Narrative report composition from recent posture and gait sessions."""
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

from .metrics import mean
from .rules import (
    Band,
    Rule,
    evaluate,
    field,
    above,
    below,
    outside,
    equals,
    off_center,
    RISK_LEVELS,
    FORWARD_HEAD_POOR,
    FORWARD_HEAD_FAIR,
    SHOULDER_TILT_LIMIT,
    SHOULDER_TILT_MINOR,
    SPINE_ALIGNMENT_POOR,
    SPINE_ALIGNMENT_SUBOPTIMAL,
    KEYPOINT_CONFIDENCE_MIN,
    SYMMETRY_ASYMMETRIC,
    SYMMETRY_MODERATE,
    BALANCE_RISK,
    BALANCE_MINOR,
    CADENCE_RISK_RANGE,
    DEVICE_ANALYSIS_TYPE,
)
from .settings import MAX_PLAUSIBLE_FORWARD_HEAD, REPORT_WINDOW

REPORT_TYPES = ("posture", "gait", "combined")
DEFAULT_RECOMMENDATION = "Continue maintaining good biomechanical patterns"
NO_POSTURE_DATA = (
    "No valid posture sessions available for analysis. "
    "Please record new sessions with proper camera positioning."
)
NO_GAIT_DATA = "No gait sessions available for analysis. Please record gait data using ESP32 sensors."

TREND_SIGNIFICANT = 5.0
HAND_FOLDING_HABIT = 0.5
KNEELING_HABIT = 0.3
POSTURE_SCORE_LOW = 70.0
POSTURE_SCORE_HIGH = 85.0


class ReportDraft(NamedTuple):
    type: str
    title: str
    summary: str
    recommendations: List[str]
    session_ids: List[str]
    created_at: int


POSTURE_RISK_RULES = (
    Rule("forward_head", field("avg_forward_head"), (
        Band(above(FORWARD_HEAD_POOR), "High forward head posture", "HIGH"),
        Band(above(FORWARD_HEAD_FAIR), "Moderate forward head posture", "MODERATE"),
    )),
    Rule("shoulder_tilt", field("avg_shoulder_tilt"), (
        Band(above(SHOULDER_TILT_LIMIT), "Significant shoulder imbalance", "HIGH"),
        Band(above(SHOULDER_TILT_MINOR), "Minor shoulder imbalance", "MODERATE"),
    )),
    Rule("spine_alignment", field("avg_spine_alignment"), (
        Band(below(SPINE_ALIGNMENT_POOR), "Poor spinal alignment", "HIGH"),
        Band(below(SPINE_ALIGNMENT_SUBOPTIMAL), "Suboptimal spinal alignment", "MODERATE"),
    )),
    Rule("sitting_position", field("dominant_sitting_position"), (
        Band(equals("hunchback"), "Frequent hunchback posture", "MODERATE"),
    )),
)

POSTURE_ADVICE_RULES = (
    Rule("forward_head", field("avg_forward_head"), (
        Band(above(FORWARD_HEAD_POOR),
             "URGENT: Reduce forward head posture - adjust monitor height to eye level, "
             "use ergonomic workstation setup"),
        Band(above(FORWARD_HEAD_FAIR),
             "Monitor forward head position throughout the day - set hourly posture reminders"),
    )),
    Rule("shoulder_tilt", field("avg_shoulder_tilt"), (
        Band(above(SHOULDER_TILT_LIMIT),
             "Address shoulder imbalance - check desk height, keyboard position, "
             "and consider shoulder strengthening exercises"),
    )),
    Rule("spine_alignment", field("avg_spine_alignment"), (
        Band(below(SPINE_ALIGNMENT_SUBOPTIMAL),
             "Improve spinal alignment - use lumbar support, practice spine-strengthening "
             "exercises, maintain neutral spine during work"),
    )),
    Rule("sitting_position", field("dominant_sitting_position"), (
        Band(equals("hunchback"),
             "Correct hunchback posture - practice chest opening stretches, strengthen "
             "upper back muscles, maintain upright sitting"),
    )),
    Rule("hand_folding", field("hand_folding_share"), (
        Band(above(HAND_FOLDING_HABIT),
             "Reduce hand folding habit - keep arms relaxed at sides, use proper keyboard positioning"),
    )),
    Rule("kneeling", field("kneeling_share"), (
        Band(above(KNEELING_HABIT),
             "Avoid kneeling while sitting - maintain both feet flat on ground for proper "
             "posture support"),
    )),
    Rule("posture_score", field("avg_posture_score"), (
        Band(below(POSTURE_SCORE_LOW),
             "Overall posture improvement needed - consider ergonomic assessment, posture "
             "training, and regular movement breaks"),
        Band(above(POSTURE_SCORE_HIGH),
             "Excellent posture maintenance - continue current practices and consider "
             "advanced ergonomic optimizations"),
    )),
    Rule("trend", field("score_trend"), (
        Band(below(-TREND_SIGNIFICANT),
             "Posture declining - review recent changes in workstation or habits, consider "
             "professional ergonomic consultation"),
        Band(above(TREND_SIGNIFICANT),
             "Great improvement trend - maintain current practices and continue monitoring progress"),
    )),
    Rule("keypoint_confidence", field("avg_keypoint_confidence"), (
        Band(below(KEYPOINT_CONFIDENCE_MIN),
             "Improve measurement accuracy - ensure good lighting and clear camera view for "
             "more reliable posture analysis"),
    )),
)

GAIT_RISK_RULES = (
    Rule("symmetry", field("avg_symmetry"), (
        Band(below(SYMMETRY_ASYMMETRIC), "Poor gait symmetry", "HIGH"),
        Band(below(SYMMETRY_MODERATE), "Moderate gait asymmetry", "MODERATE"),
    )),
    Rule("balance", field("avg_balance", off_center(50.0)), (
        Band(above(BALANCE_RISK), "Significant left-right imbalance", "HIGH"),
        Band(above(BALANCE_MINOR), "Minor left-right imbalance", "MODERATE"),
    )),
    Rule("cadence", field("avg_cadence"), (
        Band(outside(CADENCE_RISK_RANGE), "Abnormal cadence pattern", "MODERATE"),
    )),
)

GAIT_ADVICE_RULES = (
    Rule("symmetry", field("avg_symmetry"), (
        Band(below(SYMMETRY_ASYMMETRIC),
             "URGENT: Poor gait symmetry detected - consider physical therapy consultation "
             "and gait training exercises"),
        Band(below(SYMMETRY_MODERATE),
             "Improve gait symmetry - practice balance exercises, single-leg stands, and walking drills"),
    )),
    Rule("balance", field("avg_balance", off_center(50.0)), (
        Band(above(BALANCE_RISK),
             "Address left-right imbalance - focus on bilateral strengthening exercises and "
             "gait symmetry training"),
    )),
    Rule("cadence", field("avg_cadence"), (
        Band(below(CADENCE_RISK_RANGE[0]),
             "Increase walking pace - practice walking with metronome at 110-120 BPM for "
             "improved cadence"),
        Band(above(CADENCE_RISK_RANGE[1]),
             "Reduce walking pace - focus on longer strides rather than faster steps for "
             "better efficiency"),
    )),
    Rule("asymmetric_sessions", field("asymmetric_excess"), (
        Band(above(0),
             "Frequent asymmetric gait patterns - consider biomechanical assessment and "
             "corrective exercises"),
    )),
    Rule("irregular_sessions", field("irregular_excess"), (
        Band(above(0),
             "Address irregular gait patterns - practice consistent walking rhythm and "
             "consider balance training"),
    )),
    Rule("trend", field("symmetry_trend"), (
        Band(below(-TREND_SIGNIFICANT),
             "Gait quality declining - review recent changes in activity or footwear, "
             "consider professional assessment"),
        Band(above(TREND_SIGNIFICANT),
             "Excellent gait improvement - maintain current training and continue monitoring progress"),
    )),
)


def plausible_posture(records: Sequence[Any]) -> List[Any]:
    """Drop sessions whose forward head angle cannot be physically real."""
    return [r for r in records if r.forward_head_angle <= MAX_PLAUSIBLE_FORWARD_HEAD]


def recent(records: Sequence[Any], limit: int = REPORT_WINDOW) -> List[Any]:
    ordered = sorted(records, key=lambda r: r.timestamp)
    return ordered[-limit:] if limit > 0 else []


def half_split_delta(values: Sequence[float]) -> float:
    """Mean of the second half minus mean of the first half (split at n // 2)."""
    midpoint = len(values) // 2
    if midpoint == 0:
        return 0.0
    return mean(values[midpoint:]) - mean(values[:midpoint])


def _trend_word(delta: float) -> str:
    if delta > 0:
        return "Improving"
    if delta < 0:
        return "Declining"
    return "Stable"


def _signed(delta: float) -> str:
    return f"{'+' if delta > 0 else ''}{delta:.1f}"


def _share(count: int, total: int) -> str:
    return f"{count}/{total} sessions ({count / total * 100:.1f}%)"


def posture_report_metrics(sessions: Sequence[Any]) -> Dict[str, Any]:
    """Report-level posture figures over an already filtered, recent window."""
    n = len(sessions)
    labels = Counter(s.classification for s in sessions)
    positions = Counter(s.sitting_position or "unknown" for s in sessions)
    dominant, dominant_count = positions.most_common(1)[0]
    hand_folding = sum(1 for s in sessions if s.hand_folding)
    kneeling = sum(1 for s in sessions if s.kneeling)
    scores = [s.posture_score or 0 for s in sessions]
    return {
        "sessions": n,
        "good_sessions": labels["good"],
        "fair_sessions": labels["fair"],
        "poor_sessions": labels["poor"],
        "avg_forward_head": mean(s.forward_head_angle for s in sessions),
        "avg_shoulder_tilt": mean(abs(s.shoulder_tilt) for s in sessions),
        "avg_spine_alignment": mean(s.spine_alignment for s in sessions),
        "avg_posture_score": mean(scores),
        "avg_keypoint_confidence": mean(s.keypoint_confidence or 0 for s in sessions),
        "dominant_sitting_position": dominant,
        "dominant_sitting_count": dominant_count,
        "hand_folding_sessions": hand_folding,
        "kneeling_sessions": kneeling,
        "hand_folding_share": hand_folding / n,
        "kneeling_share": kneeling / n,
        "score_trend": half_split_delta(scores),
    }


def gait_report_metrics(sessions: Sequence[Any]) -> Dict[str, Any]:
    """Report-level gait figures over a recent window."""
    labels = Counter(s.classification for s in sessions)
    strides = [s.stride_length for s in sessions if s.stride_length]
    sensor = [s for s in sessions if s.analysis_type == DEVICE_ANALYSIS_TYPE]
    stance = [s.stance_phase for s in sensor if s.stance_phase]
    swing = [s.swing_phase for s in sensor if s.swing_phase]
    return {
        "sessions": len(sessions),
        "normal_sessions": labels["normal"],
        "asymmetric_sessions": labels["asymmetric"],
        "irregular_sessions": labels["irregular"],
        "asymmetric_excess": labels["asymmetric"] - labels["normal"],
        "irregular_excess": labels["irregular"] - labels["normal"] * 0.5,
        "avg_symmetry": mean(s.symmetry_score for s in sessions),
        "avg_cadence": mean(s.cadence for s in sessions),
        "avg_balance": mean(s.left_right_balance for s in sessions),
        "avg_stride_length": mean(strides) if strides else None,
        "sensor_sessions": len(sensor),
        "avg_stance_phase": mean(stance) if stance else None,
        "avg_swing_phase": mean(swing) if swing else None,
        "symmetry_trend": half_split_delta([s.symmetry_score for s in sessions]),
    }


def _risk_lines(outcome) -> List[str]:
    factors = ", ".join(outcome.messages) if outcome.messages else "None identified"
    return [f"• Risk Level: {outcome.level}", f"• Risk Factors: {factors}"]


def posture_section(sessions: Sequence[Any]):
    """Return (text, recommendations, metrics) for the posture part of a report."""
    if not sessions:
        return NO_POSTURE_DATA, [], None

    m = posture_report_metrics(sessions)
    n = m["sessions"]
    lines = [
        "",
        "=== COMPREHENSIVE POSTURE ANALYSIS ===",
        "",
        "OVERALL PERFORMANCE:",
        f"• Posture Quality: {m['good_sessions']} good, {m['fair_sessions']} fair, "
        f"{m['poor_sessions']} poor sessions",
        f"• Overall Posture Score: {m['avg_posture_score']:.1f}/100",
        f"• Trend: {_trend_word(m['score_trend'])} ({_signed(m['score_trend'])} points)",
        "",
        "POSTURAL ALIGNMENT:",
        f"• Forward Head Posture: {m['avg_forward_head']:.1f}° (Normal: 0-10°, Concerning: >15°)",
        f"• Shoulder Tilt: {m['avg_shoulder_tilt']:.1f}% (Normal: 0-5%, Concerning: >10%)",
        f"• Spinal Alignment: {m['avg_spine_alignment']:.1f}% "
        "(Excellent: >90%, Good: 80-90%, Poor: <80%)",
        "",
        "SITTING BEHAVIORS:",
        f"• Dominant Position: {m['dominant_sitting_position']} "
        f"({m['dominant_sitting_count']} sessions)",
        f"• Hand Folding: {_share(m['hand_folding_sessions'], n)}",
        f"• Kneeling: {_share(m['kneeling_sessions'], n)}",
        "",
        "DATA QUALITY:",
        f"• Measurement Confidence: {m['avg_keypoint_confidence']:.1f}% (Higher = more reliable)",
        f"• Sessions Analyzed: {n} recent sessions",
        "",
        "HEALTH RISK ASSESSMENT:",
    ]
    lines += _risk_lines(evaluate(POSTURE_RISK_RULES, m, RISK_LEVELS))
    advice = evaluate(POSTURE_ADVICE_RULES, m).messages
    return "\n".join(lines) + "\n", advice, m


def gait_section(sessions: Sequence[Any]):
    """Return (text, recommendations, metrics) for the gait part of a report."""
    if not sessions:
        return NO_GAIT_DATA, [], None

    m = gait_report_metrics(sessions)
    stride = m["avg_stride_length"]
    lines = [
        "",
        "=== COMPREHENSIVE GAIT ANALYSIS ===",
        "",
        "GAIT QUALITY ASSESSMENT:",
        f"• Gait Classification: {m['normal_sessions']} normal, "
        f"{m['asymmetric_sessions']} asymmetric, {m['irregular_sessions']} irregular",
        f"• Overall Symmetry: {m['avg_symmetry']:.1f}% (Excellent: >90%, Good: 80-90%, Poor: <80%)",
        f"• Trend: {_trend_word(m['symmetry_trend'])} ({_signed(m['symmetry_trend'])}%)",
        "",
        "GAIT MECHANICS:",
        f"• Cadence: {m['avg_cadence']:.1f} steps/min (Normal: 110-130, Optimal: 115-125)",
        f"• Stride Length: {f'{stride:.1f}m' if stride else 'Not available'}",
        f"• Left-Right Balance: {m['avg_balance']:.1f}% (Optimal: 50%, Acceptable: 45-55%)",
        "",
    ]
    if m["sensor_sessions"]:
        stance = m["avg_stance_phase"]
        swing = m["avg_swing_phase"]
        lines += [
            "ESP32 SENSOR ANALYSIS:",
            f"• Stance Phase: {f'{stance:.1f}%' if stance else 'Not available'} (Normal: 60-62%)",
            f"• Swing Phase: {f'{swing:.1f}%' if swing else 'Not available'} (Normal: 38-40%)",
            f"• Sensor Sessions: {m['sensor_sessions']}/{m['sessions']} sessions",
            "",
        ]
    lines.append("GAIT RISK ASSESSMENT:")
    lines += _risk_lines(evaluate(GAIT_RISK_RULES, m, RISK_LEVELS))
    advice = evaluate(GAIT_ADVICE_RULES, m).messages
    return "\n".join(lines) + "\n", advice, m


CLOSING_SECTIONS = """
NEXT STEPS:
• Review recommendations and prioritize based on risk level
• Implement ergonomic improvements for workspace setup
• Schedule regular monitoring sessions for progress tracking
• Consider professional consultation for high-risk areas
• Set up posture reminders and movement breaks

PROFESSIONAL CONSULTATION RECOMMENDED FOR:
• Persistent pain or discomfort
• High-risk posture patterns
• Declining performance trends
• Complex biomechanical issues

TIPS FOR SUCCESS:
• Consistency is key - small daily improvements compound over time
• Listen to your body - pain is a signal to adjust
• Environment matters - optimize your workspace ergonomically
• Movement variety - avoid prolonged static positions
• Track progress - regular assessments show improvement patterns

---
Report generated by Biomech Telemetry - Biomechanical Analysis System
For questions or concerns, consult with healthcare professionals
"""


def compose_report(
    report_type: str,
    posture_records: Sequence[Any] = (),
    gait_records: Sequence[Any] = (),
    session_ids: Sequence[str] = (),
    title: Optional[str] = None,
    now_ms: Optional[int] = None,
) -> ReportDraft:
    """Build a report from the subject's stored sessions.

    Posture sessions with an implausible forward head angle are excluded
    before the recent window is taken; the dashboard statistics keep them.
    """
    if report_type not in REPORT_TYPES:
        raise ValueError(f"Unknown report type: {report_type!r}")
    if now_ms is None:
        now_ms = int(datetime.now(timezone.utc).timestamp() * 1000)

    summary = ""
    recommendations: List[str] = []
    takeaways: List[str] = []

    if report_type in ("posture", "combined"):
        text, advice, m = posture_section(recent(plausible_posture(posture_records)))
        summary += text
        recommendations += advice
        if m is not None:
            score = m["avg_posture_score"]
            if score < POSTURE_SCORE_LOW:
                focus = "Posture improvement needed"
            elif score > POSTURE_SCORE_HIGH:
                focus = "Maintain excellent posture"
            else:
                focus = "Continue good practices"
            takeaways += [
                f"• Posture Quality Score: {score:.1f}/100",
                f"• Primary Focus: {focus}",
            ]

    if report_type in ("gait", "combined"):
        text, advice, m = gait_section(recent(gait_records))
        summary += text
        recommendations += advice
        if m is not None:
            symmetry = m["avg_symmetry"]
            focus = (
                "Gait symmetry improvement needed"
                if symmetry < SYMMETRY_MODERATE
                else "Maintain good gait patterns"
            )
            takeaways += [
                f"• Gait Symmetry Score: {symmetry:.1f}%",
                f"• Primary Focus: {focus}",
            ]

    recommendations = list(dict.fromkeys(recommendations)) or [DEFAULT_RECOMMENDATION]
    generated = datetime.fromtimestamp(now_ms / 1000, tz=timezone.utc)

    summary += "\n".join([
        "",
        "=== EXECUTIVE SUMMARY ===",
        "",
        "REPORT OVERVIEW:",
        f"• Report Type: {report_type.upper()}",
        f"• Analysis Period: Recent {len(session_ids)} sessions",
        f"• Total Recommendations: {len(recommendations)}",
        f"• Report Generated: {generated.strftime('%Y-%m-%d %H:%M:%S UTC')}",
        "",
        "KEY TAKEAWAYS:",
        *takeaways,
    ])
    summary += "\n" + CLOSING_SECTIONS

    return ReportDraft(
        type=report_type,
        title=title or f"{report_type.capitalize()} Report",
        summary=summary,
        recommendations=recommendations,
        session_ids=list(session_ids),
        created_at=now_ms,
    )
