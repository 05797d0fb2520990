"""Aggregate statistics over stored sessions.

Everything here is recomputed from the full session list on every read;
nothing is cached or persisted.  Functions accept ORM rows or any objects
exposing the same attributes.

- percentages are rounded half-up to whole numbers
- weekly_trend has seven points, oldest first; point i covers
  (now - (i+1) days, now - i days], so the points partition the last week
- improvement_rate compares the good share of the first and second halves
  of the chronological list (split at n // 2); it is 0 when either half is
  empty and None when the first half has no good sessions, since a
  relative change from zero is undefined
"""
import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .rules import POSTURE_LEVELS, GAIT_LEVELS

DAY_MS = 24 * 60 * 60 * 1000
TREND_DAYS = 7

POSTURE_NUMERIC_FIELDS = (
    "forward_head_angle", "shoulder_tilt", "neck_angle", "spine_alignment", "duration",
)
GAIT_NUMERIC_FIELDS = (
    "step_count", "symmetry_score", "cadence", "left_right_balance",
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward +infinity."""
    return int(math.floor(value + 0.5))


def mean(values: Iterable[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


def label_percentage(records: Sequence[Any], label: str) -> float:
    if not records:
        return 0.0
    return sum(1 for r in records if r.classification == label) / len(records) * 100


def classification_breakdown(records: Sequence[Any], labels: Sequence[str]) -> Dict[str, int]:
    return {label: round_half_up(label_percentage(records, label)) for label in labels}


def field_averages(records: Sequence[Any], fields: Sequence[str]) -> Dict[str, float]:
    return {name: mean(getattr(r, name) for r in records) for name in fields}


def chronological(records: Iterable[Any]) -> List[Any]:
    return sorted(records, key=lambda r: r.timestamp)


def weekly_trend(
    records: Sequence[Any],
    now_ms: int,
    good_label: str,
    extra: Optional[Callable[[List[Any]], Dict[str, Any]]] = None,
) -> List[Dict[str, Any]]:
    """Seven trailing one-day buckets ending at now_ms."""
    points = []
    for days_back in range(TREND_DAYS - 1, -1, -1):
        end = now_ms - days_back * DAY_MS
        start = end - DAY_MS
        bucket = [r for r in records if start < r.timestamp <= end]
        point = {
            "date": datetime.fromtimestamp(end / 1000, tz=timezone.utc).date().isoformat(),
            "score": round_half_up(label_percentage(bucket, good_label)),
            "sessions": len(bucket),
        }
        if extra is not None:
            point.update(extra(bucket))
        points.append(point)
    return points


def improvement_rate(records: Sequence[Any], good_label: str) -> Optional[int]:
    """Percent change of the good share between the two chronological halves."""
    midpoint = len(records) // 2
    first_half = records[:midpoint]
    second_half = records[midpoint:]
    if not first_half or not second_half:
        return 0

    first_pct = label_percentage(first_half, good_label)
    second_pct = label_percentage(second_half, good_label)
    if first_pct == 0:
        return None
    return round_half_up((second_pct - first_pct) / first_pct * 100)


def compute_posture_stats(records: Iterable[Any], now_ms: int) -> Dict[str, Any]:
    """Dashboard statistics for posture sessions.

    Unlike report composition, no plausibility filter is applied here.
    """
    sessions = chronological(records)
    if not sessions:
        return {
            "total_sessions": 0,
            "average_score": 0,
            "good_posture_percentage": 0,
            "average_forward_head": 0.0,
            "improvement_rate": 0,
            "classification_breakdown": {label: 0 for label in POSTURE_LEVELS},
            "averages": {name: 0.0 for name in POSTURE_NUMERIC_FIELDS},
            "weekly_trend": [],
            "advanced_stats": {
                "sitting_position_stats": {},
                "hand_folding_percentage": 0,
                "kneeling_percentage": 0,
                "average_posture_score": 0,
                "average_keypoint_confidence": 0,
            },
        }

    n = len(sessions)
    good_pct = round_half_up(label_percentage(sessions, "good"))
    averages = field_averages(sessions, POSTURE_NUMERIC_FIELDS)

    sitting_position_stats: Dict[str, int] = {}
    for s in sessions:
        if s.sitting_position:
            sitting_position_stats[s.sitting_position] = (
                sitting_position_stats.get(s.sitting_position, 0) + 1
            )

    hand_folding = sum(1 for s in sessions if s.hand_folding)
    kneeling = sum(1 for s in sessions if s.kneeling)
    avg_posture_score = mean(s.posture_score for s in sessions if s.posture_score is not None)
    avg_confidence = mean(
        s.keypoint_confidence for s in sessions if s.keypoint_confidence is not None
    )

    return {
        "total_sessions": n,
        "average_score": good_pct,
        "good_posture_percentage": good_pct,
        "average_forward_head": round_half_up(averages["forward_head_angle"] * 10) / 10,
        "improvement_rate": improvement_rate(sessions, "good"),
        "classification_breakdown": classification_breakdown(sessions, POSTURE_LEVELS),
        "averages": averages,
        "weekly_trend": weekly_trend(sessions, now_ms, "good"),
        "advanced_stats": {
            "sitting_position_stats": sitting_position_stats,
            "hand_folding_percentage": round_half_up(hand_folding / n * 100),
            "kneeling_percentage": round_half_up(kneeling / n * 100),
            "average_posture_score": round_half_up(avg_posture_score),
            "average_keypoint_confidence": round_half_up(avg_confidence),
        },
    }


def _bucket_symmetry(bucket: List[Any]) -> Dict[str, int]:
    return {"symmetry": round_half_up(mean(s.symmetry_score for s in bucket))}


def compute_gait_stats(records: Iterable[Any], now_ms: int) -> Dict[str, Any]:
    """Dashboard statistics for gait sessions."""
    sessions = chronological(records)
    if not sessions:
        return {
            "total_sessions": 0,
            "average_symmetry": 0,
            "average_cadence": 0,
            "normal_gait_percentage": 0,
            "improvement_rate": 0,
            "classification_breakdown": {label: 0 for label in GAIT_LEVELS},
            "averages": {name: 0.0 for name in GAIT_NUMERIC_FIELDS},
            "weekly_trend": [],
        }

    averages = field_averages(sessions, GAIT_NUMERIC_FIELDS)
    return {
        "total_sessions": len(sessions),
        "average_symmetry": round_half_up(averages["symmetry_score"]),
        "average_cadence": round_half_up(averages["cadence"]),
        "normal_gait_percentage": round_half_up(label_percentage(sessions, "normal")),
        "improvement_rate": improvement_rate(sessions, "normal"),
        "classification_breakdown": classification_breakdown(sessions, GAIT_LEVELS),
        "averages": averages,
        "weekly_trend": weekly_trend(sessions, now_ms, "normal", extra=_bucket_symmetry),
    }


def compute_overview(
    posture_records: Sequence[Any],
    gait_records: Sequence[Any],
    total_reports: int,
    now_ms: int,
) -> Dict[str, Any]:
    """Activity counts across both domains."""
    week_ago = now_ms - TREND_DAYS * DAY_MS
    timestamps = [s.timestamp for s in posture_records] + [s.timestamp for s in gait_records]
    return {
        "total_sessions": len(posture_records) + len(gait_records),
        "total_posture_sessions": len(posture_records),
        "total_gait_sessions": len(gait_records),
        "total_reports": total_reports,
        "recent_posture_sessions": sum(1 for s in posture_records if s.timestamp > week_ago),
        "recent_gait_sessions": sum(1 for s in gait_records if s.timestamp > week_ago),
        "last_activity": max(timestamps, default=0),
    }
