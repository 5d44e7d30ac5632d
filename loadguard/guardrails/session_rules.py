"""Session predicates and transformations used by the guardrail monitor.

Everything here is pure: inputs are never mutated, transformations return a
new session dict. Persistence and event emission stay in the monitor.
"""

import copy
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timedelta
from typing import Any

from loadguard.guardrails.types import GuardrailAdjustment
from loadguard.metrics.load_engine import extract_zone
from loadguard.utils.dates import session_date

HIGH_INTENSITY_TAGS = frozenset({"HIIT", "anaerobic_capacity", "VO2"})
HIGH_INTENSITY_ZONES = frozenset({"Z4", "Z5"})
HIGH_INTENSITY_RPE = 8

ZONE_INTENSITY: dict[str, float] = {"Z1": 0.2, "Z2": 0.4, "Z3": 0.6, "Z4": 0.8, "Z5": 1.0}
DEFAULT_SESSION_INTENSITY = 0.6
DEFAULT_ZONE_LEVEL = 3

MIN_INTERVAL_INTENSITY = 0.6
LARGE_REDUCTION = 0.3
INTENSITY_TOLERANCE = 1.1

RAMP_MODIFICATION_REASON = "guardrail_ramp_rate"
INTENSITY_ADJUSTMENT_TYPES = frozenset({"immediate_downshift", "gradual_return", "deload_week"})


def _main_block_zone(session: Mapping[str, Any]) -> str | None:
    structure = session.get("structure")
    if not isinstance(structure, list):
        return None
    main_block = next((b for b in structure if b.get("block_type") == "main"), None)
    if not main_block or not main_block.get("intensity"):
        return None
    return extract_zone(str(main_block["intensity"]).split("-")[0])


def is_high_intensity_session(session: Mapping[str, Any]) -> bool:
    """True for HIIT/VO2/anaerobic tags, Z4-Z5 intensity, RPE >= 8 or a Z4-Z5 main block."""
    tags = session.get("tags")
    if isinstance(tags, (list, tuple, set, frozenset)) and HIGH_INTENSITY_TAGS.intersection(tags):
        return True
    if extract_zone(session.get("intensity")) in HIGH_INTENSITY_ZONES:
        return True
    rpe = session.get("rpe")
    if isinstance(rpe, (int, float)) and not isinstance(rpe, bool) and rpe >= HIGH_INTENSITY_RPE:
        return True
    return _main_block_zone(session) in HIGH_INTENSITY_ZONES


def get_session_intensity(session: Mapping[str, Any]) -> float:
    """Intensity score in [0.1, 1]: RPE/10 first, then the primary zone, else 0.6."""
    rpe = session.get("rpe")
    if isinstance(rpe, (int, float)) and not isinstance(rpe, bool) and rpe > 0:
        return max(1.0, min(10.0, float(rpe))) / 10.0
    zone = extract_zone(session.get("intensity"))
    if zone:
        return ZONE_INTENSITY[zone]
    return DEFAULT_SESSION_INTENSITY


def original_intensity(session: Mapping[str, Any]) -> Any:
    """Intensity label as displayed: primary zone, intensity field or first block intensity."""
    intensity = session.get("intensity")
    if isinstance(intensity, Mapping) and intensity.get("primary_zone"):
        return intensity["primary_zone"]
    if intensity:
        return intensity
    structure = session.get("structure")
    if isinstance(structure, list) and structure:
        return structure[0].get("intensity")
    return None


def baseline_intensity(session: Mapping[str, Any]) -> float:
    """Intensity score before any guardrail modification was applied."""
    for modification in reversed(session.get("modifications") or []):
        score = modification.get("original_intensity_score")
        if isinstance(score, (int, float)):
            return float(score)
    return get_session_intensity(session)


def reduce_intensity_zone(zone: Any, reduction: float) -> str:
    """Step a zone down by one, or by two when reduction >= 0.3. Never below Z1.

    Unknown zones are treated as Z3.
    """
    current = extract_zone(str(zone).split("-")[0]) if zone else None
    level = int(current[1]) if current else DEFAULT_ZONE_LEVEL
    step = 2 if reduction >= LARGE_REDUCTION else 1
    return f"Z{max(1, level - step)}"


def count_consecutive_training_days(sessions: Iterable[Mapping[str, Any]], today: date) -> int:
    """Length of the unbroken run of training days ending today.

    Walks backward from today and stops at the first day without a session,
    so a rest day today gives 0. Several sessions on one day count once.
    """
    training_days = {d for d in (session_date(s) for s in sessions) if d is not None}

    day = today
    consecutive = 0
    while day in training_days:
        consecutive += 1
        day -= timedelta(days=1)
    return consecutive


def session_violates_adjustment(session: Mapping[str, Any], adjustment: GuardrailAdjustment) -> bool:
    """Check a planned session against one active adjustment.

    reduce_hiit: a high-intensity session without a ramp-rate modification.
    immediate_downshift / gradual_return / deload_week: a session inside the
    adjustment window whose intensity exceeds the reduced baseline by more than
    10%. extend_recovery is advisory and never rejects a session.
    """
    if adjustment.type == "reduce_hiit":
        if not is_high_intensity_session(session):
            return False
        return not any(
            m.get("reason") == RAMP_MODIFICATION_REASON for m in session.get("modifications") or []
        )

    if adjustment.type in INTENSITY_ADJUSTMENT_TYPES:
        day = session_date(session)
        if adjustment.end_date is not None and day is not None and day > adjustment.end_date.date():
            return False
        allowed = baseline_intensity(session) * (1 - adjustment.reduction) * INTENSITY_TOLERANCE
        return get_session_intensity(session) > allowed

    return False


def _modification(
    reduction: float,
    reason: str,
    applied_at: datetime,
    before: Mapping[str, Any],
    after: Mapping[str, Any],
    original_score: float,
) -> dict[str, Any]:
    return {
        "type": "intensity_reduction",
        "amount": reduction,
        "reason": reason,
        "applied_at": applied_at.isoformat(),
        "original_intensity": original_intensity(before),
        "new_intensity": original_intensity(after),
        "original_intensity_score": original_score,
    }


def apply_hiit_reduction(session: Mapping[str, Any], reduction: float, applied_at: datetime) -> dict[str, Any]:
    """Return a copy of a high-intensity session with its intervals and main blocks reduced.

    Interval targets scale by (1 - reduction) and never drop below 0.6; main
    block zones step down through reduce_intensity_zone. A modification entry
    with the ramp-rate reason is appended.
    """
    modified = copy.deepcopy(dict(session))

    intervals = modified.get("intervals")
    if isinstance(intervals, list):
        for interval in intervals:
            target = interval.get("target_intensity")
            if isinstance(target, (int, float)):
                interval["target_intensity"] = max(target * (1 - reduction), MIN_INTERVAL_INTENSITY)

    structure = modified.get("structure")
    if isinstance(structure, list):
        for block in structure:
            if block.get("block_type") == "main" and block.get("intensity"):
                block["intensity"] = reduce_intensity_zone(block["intensity"], reduction)

    modified["modifications"] = list(modified.get("modifications") or []) + [
        _modification(
            reduction, RAMP_MODIFICATION_REASON, applied_at, session, modified, baseline_intensity(session)
        )
    ]
    return modified


def _reduced_zone(target_score: float) -> str:
    eligible = [zone for zone, score in ZONE_INTENSITY.items() if score <= target_score * INTENSITY_TOLERANCE]
    return eligible[-1] if eligible else "Z1"


def apply_adjustment(
    session: Mapping[str, Any], adjustment: GuardrailAdjustment, applied_at: datetime
) -> dict[str, Any]:
    """Return a new session that satisfies the adjustment; the input is left untouched.

    reduce_hiit delegates to apply_hiit_reduction for high-intensity sessions.
    Intensity adjustments bring RPE (or the primary zone) down to
    baseline x (1 - reduction), measured from the pre-modification baseline so
    repeated application does not compound. extend_recovery leaves the
    session as is.
    """
    if adjustment.type == "reduce_hiit":
        if is_high_intensity_session(session):
            return apply_hiit_reduction(session, adjustment.reduction, applied_at)
        return copy.deepcopy(dict(session))

    if adjustment.type not in INTENSITY_ADJUSTMENT_TYPES:
        return copy.deepcopy(dict(session))

    modified = copy.deepcopy(dict(session))
    baseline = baseline_intensity(session)
    target = baseline * (1 - adjustment.reduction)

    rpe = modified.get("rpe")
    if isinstance(rpe, (int, float)) and not isinstance(rpe, bool) and rpe > 0:
        modified["rpe"] = max(1.0, round(target * 10, 1))
    else:
        zone = _reduced_zone(target)
        if isinstance(modified.get("intensity"), Mapping):
            modified["intensity"] = {**modified["intensity"], "primary_zone": zone}
        else:
            modified["intensity"] = zone

    modified["modifications"] = list(modified.get("modifications") or []) + [
        _modification(adjustment.reduction, f"guardrail_{adjustment.type}", applied_at, session, modified, baseline)
    ]
    return modified
