"""Ordered threshold rules shared by session classification and report
risk assessment.

A rule reads one value out of a flat mapping (a sample, or a dict of
averages) and walks its bands in order; the first band whose test passes
fires.  A band either escalates the running severity to its level and adds
its message, or (``level=None``) only adds its message.  Severity is an
ordered scale and escalation keeps the maximum, so a later rule can never
improve a label an earlier rule set.
"""
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

POSTURE_LEVELS = ("good", "fair", "poor")
GAIT_LEVELS = ("normal", "irregular", "asymmetric")
RISK_LEVELS = ("LOW", "MODERATE", "HIGH")

# Posture thresholds
FORWARD_HEAD_POOR = 15.0
FORWARD_HEAD_FAIR = 10.0
SHOULDER_TILT_LIMIT = 10.0
SHOULDER_TILT_MINOR = 5.0
NECK_ANGLE_LIMIT = 15.0
SPINE_ALIGNMENT_POOR = 70.0
SPINE_ALIGNMENT_FAIR = 85.0
SPINE_ALIGNMENT_SUBOPTIMAL = 80.0
POSTURE_SCORE_POOR = 60.0
POSTURE_SCORE_FAIR = 80.0
KEYPOINT_CONFIDENCE_MIN = 70.0

# Gait thresholds
SYMMETRY_ASYMMETRIC = 70.0
SYMMETRY_IRREGULAR = 85.0
SYMMETRY_MODERATE = 80.0
BALANCE_TOLERANCE = 15.0
BALANCE_RISK = 10.0
BALANCE_MINOR = 5.0
CADENCE_RANGE = (100.0, 180.0)
CADENCE_RISK_RANGE = (100.0, 140.0)
STANCE_PHASE_RANGE = (55.0, 70.0)
SWING_PHASE_RANGE = (25.0, 40.0)
FORCE_RATIO_RANGE = (0.8, 1.2)
GAIT_SPEED_MIN = 0.8

# Uploaded IMU analyses get the phase and force rules
SENSOR_RULE_ANALYSIS_TYPE = "esp32"
# Readings posted directly by a wearable; the report sensor section covers these
DEVICE_ANALYSIS_TYPE = "esp32-wifi"

Values = Mapping[str, Any]


@dataclass(frozen=True)
class Band:
    test: Callable[[Any], bool]
    message: str
    level: Optional[str] = None  # None: advisory only


@dataclass(frozen=True)
class Rule:
    name: str
    value: Callable[[Values], Any]
    bands: Tuple[Band, ...]
    when: Optional[Callable[[Values], bool]] = None


@dataclass
class Outcome:
    level: Optional[str]
    messages: List[str]


def field(name: str, transform: Optional[Callable[[Any], Any]] = None,
          optional: bool = False) -> Callable[[Values], Any]:
    """Extractor for a named value.

    Missing values skip the rule.  ``optional`` fields are also skipped when
    zero, since sensors report 0 for "not measured".
    """
    def extract(values: Values):
        value = values.get(name)
        if value is None or (optional and not value):
            return None
        return transform(value) if transform else value
    return extract


def above(limit):
    return lambda v: v > limit


def below(limit):
    return lambda v: v < limit


def outside(bounds):
    lo, hi = bounds
    return lambda v: v < lo or v > hi


def equals(expected):
    return lambda v: v == expected


def is_set(v) -> bool:
    return bool(v)


def off_center(center: float):
    """Transform measuring distance from a balanced midpoint."""
    return lambda v: abs(v - center)


def evaluate(rules: Sequence[Rule], values: Values,
             levels: Optional[Sequence[str]] = None) -> Outcome:
    """Run rules in order over values.

    With ``levels`` the outcome starts at ``levels[0]`` and only escalates;
    without, the rules are advisory and ``Outcome.level`` is None.
    """
    rank = 0
    messages: List[str] = []
    for rule in rules:
        if rule.when is not None and not rule.when(values):
            continue
        value = rule.value(values)
        if value is None:
            continue
        for band in rule.bands:
            if band.test(value):
                if band.level is not None and levels is not None:
                    rank = max(rank, levels.index(band.level))
                messages.append(band.message)
                break
    return Outcome(levels[rank] if levels is not None else None, messages)
