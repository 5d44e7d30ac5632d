"""Pure load calculation engine.

Converts one session into one comparable training-load score.

Priority order (most physiologically precise first):
1. HR-based TRIMP (Banister)
2. Zone distribution (minutes x zone multiplier)
3. Session-RPE x duration (optionally zone-scaled)
4. MET-minutes (modality x zone lookup)

Every function here is deterministic and side-effect free so that two
alternative sessions can be compared by their loads ("substitution
mathematics"). All numeric outputs are rounded to 2 decimals.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, Field

from loadguard.metrics.errors import InsufficientDataError, InvalidInputError

LoadMethod = Literal["TRIMP", "Zone_RPE", "RPE_Duration", "MET_Minutes", "unknown"]

# Fixed confidence per method
TRIMP_CONFIDENCE = 0.95
ZONE_CONFIDENCE = 0.85
RPE_CONFIDENCE = 0.75
MET_CONFIDENCE = 0.65

# TRIMP coefficients (gender-specific)
TRIMP_B_MEN = 1.92
TRIMP_B_WOMEN = 1.67
DEFAULT_AGE = 35
DEFAULT_REST_HR = 60

ZONE_LOAD_MULTIPLIERS: dict[str, float] = {"Z1": 1.0, "Z2": 2.0, "Z3": 4.0, "Z4": 7.0, "Z5": 10.0}
RPE_ZONE_MULTIPLIERS: dict[str, float] = {"Z1": 0.5, "Z2": 1.0, "Z3": 1.5, "Z4": 2.0, "Z5": 2.5}

MET_VALUES: dict[str, dict[str, float]] = {
    "running": {"Z1": 8, "Z2": 10, "Z3": 12, "Z4": 15, "Z5": 18},
    "cycling": {"Z1": 6, "Z2": 8, "Z3": 10, "Z4": 13, "Z5": 16},
    "swimming": {"Z1": 10, "Z2": 12, "Z3": 14, "Z4": 17, "Z5": 20},
}
MET_CONVERSION_FACTOR = 0.8

ZONE_DURATION_TOLERANCE_MIN = 5.0

_ZONE_PATTERN = re.compile(r"Z[1-5]")


class LoadResult(BaseModel):
    """Result of a single-session load computation.

    Attributes:
        total_load: Load score (>= 0)
        method_used: First method of the cascade whose inputs were valid
        confidence: Fixed confidence of that method
        breakdown: Method-specific inputs and contributions
        details: Diagnostic fields
    """

    total_load: float = 0.0
    method_used: LoadMethod = "unknown"
    confidence: float = 0.0
    breakdown: dict[str, Any] = Field(default_factory=dict)
    details: dict[str, Any] = Field(default_factory=dict)


def _to_number(value: Any) -> float | None:
    """Coerce a raw field to a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def normalize_zone(zone: Any) -> str | None:
    """Normalize a zone identifier to canonical Z1-Z5.

    The first ``Z[1-5]`` found in the upper-cased label wins, so ``"z4-foo"``
    becomes ``"Z4"`` and ``"nonsense"`` becomes None.
    """
    if not zone:
        return None
    match = _ZONE_PATTERN.search(str(zone).upper())
    return match.group(0) if match else None


def extract_zone(intensity: Any) -> str | None:
    """Read a zone from either a zone label or a ``{"primary_zone": ...}`` mapping."""
    if isinstance(intensity, Mapping):
        return normalize_zone(intensity.get("primary_zone"))
    return normalize_zone(intensity)


def estimate_max_hr(age: float | None = None, gender: str | None = None) -> int:
    """Estimate maximum heart rate from age and gender.

    Args:
        age: Age in years (defaults to 35)
        gender: "female" selects the 206 - 0.88 x age formula, anything else 220 - age

    Returns:
        Estimated max HR (bpm)
    """
    age_value = _to_number(age)
    if age_value is None:
        age_value = DEFAULT_AGE
    if gender == "female":
        return round(206 - 0.88 * age_value)
    return round(220 - age_value)


def get_rpe_category(rpe: float) -> str:
    if rpe <= 2:
        return "Very Easy"
    if rpe <= 4:
        return "Easy"
    if rpe <= 6:
        return "Moderate"
    if rpe <= 8:
        return "Hard"
    return "Very Hard"


def get_met_category(met_value: float) -> str:
    if met_value < 6:
        return "Light Intensity"
    if met_value < 12:
        return "Moderate Intensity"
    return "Vigorous Intensity"


def calculate_trimp(session: Mapping[str, Any]) -> dict[str, Any]:
    """Compute Banister TRIMP from average heart rate.

    Formula: r = clamp((HR_avg - HR_rest) / (HR_max - HR_rest), 0, 1)
    Formula: TRIMP = D_min * r * b^r

    Args:
        session: Session with ``hr_data.avg_hr``, ``duration_minutes`` and an
            optional ``user_profile`` (max_hr, rest_hr, age, gender)

    Returns:
        ``{"valid": False}`` when the inputs are unusable, otherwise the
        score with breakdown and details
    """
    hr_data = session.get("hr_data") or {}
    profile = session.get("user_profile") or {}

    duration = _to_number(session.get("duration_minutes"))
    average_hr = _to_number(hr_data.get("avg_hr")) if isinstance(hr_data, Mapping) else None
    if duration is None or duration <= 0:
        return {"valid": False}
    if average_hr is None or average_hr <= 0:
        return {"valid": False}

    gender = profile.get("gender")
    max_hr = _to_number(profile.get("max_hr")) or estimate_max_hr(profile.get("age"), gender)
    rest_hr = _to_number(profile.get("rest_hr")) or DEFAULT_REST_HR
    hr_reserve = max_hr - rest_hr
    if hr_reserve <= 0:
        return {"valid": False}

    ratio = max(0.0, min(1.0, (average_hr - rest_hr) / hr_reserve))
    gender_factor = TRIMP_B_WOMEN if gender == "female" else TRIMP_B_MEN
    exponential_component = gender_factor**ratio
    trimp_score = duration * ratio * exponential_component

    return {
        "valid": True,
        "trimp_score": round(trimp_score, 2),
        "breakdown": {
            "duration_minutes": duration,
            "avg_hr": average_hr,
            "hrr_fraction": round(ratio, 3),
            "gender_factor": gender_factor,
        },
        "details": {
            "max_hr": max_hr,
            "rest_hr": rest_hr,
            "hr_reserve": hr_reserve,
            "exponential_factor": round(exponential_component, 3),
        },
    }


def calculate_zone_based_load(session: Mapping[str, Any]) -> dict[str, Any]:
    """Compute load from minutes spent per zone.

    Zones that do not normalize to Z1-Z5 or carry non-positive minutes are
    skipped. A zero total is reported as invalid so the cascade falls through.
    """
    zone_distribution = session.get("zone_distribution")
    duration = _to_number(session.get("duration_minutes"))
    if not isinstance(zone_distribution, Mapping) or not zone_distribution:
        return {"valid": False}
    if duration is None or duration <= 0:
        return {"valid": False}

    total_load = 0.0
    breakdown: dict[str, dict[str, float]] = {}
    for zone_key, minutes in zone_distribution.items():
        minutes_value = _to_number(minutes)
        if minutes_value is None or minutes_value <= 0:
            continue
        zone = normalize_zone(zone_key)
        if zone is None:
            continue

        multiplier = ZONE_LOAD_MULTIPLIERS[zone]
        zone_load = minutes_value * multiplier
        total_load += zone_load
        entry = breakdown.setdefault(zone, {"minutes": 0.0, "multiplier": multiplier, "load_contribution": 0.0})
        entry["minutes"] = round(entry["minutes"] + minutes_value, 2)
        entry["load_contribution"] = round(entry["load_contribution"] + zone_load, 2)

    if total_load == 0:
        return {"valid": False}

    return {
        "valid": True,
        "load_score": round(total_load, 2),
        "breakdown": breakdown,
        "details": {
            "total_minutes": duration,
            "zones_used": list(breakdown),
            "avg_intensity": round(total_load / duration, 3),
        },
    }


def calculate_rpe_load(session: Mapping[str, Any]) -> dict[str, Any]:
    """Compute session-RPE load: RPE x minutes, scaled by the session zone if any."""
    duration = _to_number(session.get("duration_minutes"))
    perceived_exertion = _to_number(session.get("rpe"))
    if duration is None or duration <= 0:
        return {"valid": False}
    if perceived_exertion is None:
        return {"valid": False}

    base_rpe = 1.0 if perceived_exertion <= 0 else perceived_exertion
    clamped_rpe = min(10.0, max(1.0, base_rpe))
    zone = extract_zone(session.get("intensity"))
    zone_multiplier = RPE_ZONE_MULTIPLIERS[zone] if zone else 1.0
    load_score = clamped_rpe * duration * zone_multiplier

    if zone_multiplier == 1.0:
        calculation = f"{clamped_rpe:g} × {duration:g}"
    else:
        calculation = f"{clamped_rpe:g} × {duration:g} × {zone_multiplier:g}"

    return {
        "valid": True,
        "load_score": round(load_score, 2),
        "breakdown": {
            "rpe": clamped_rpe,
            "duration_minutes": duration,
            "zone": zone or "N/A",
            "zone_multiplier": zone_multiplier,
            "calculation": calculation,
        },
        "details": {
            "rpe_scale": "1-10 (Borg CR10)",
            "intensity_category": get_rpe_category(clamped_rpe),
            "effective_load": round(load_score, 2),
        },
    }


def calculate_met_load(session: Mapping[str, Any]) -> dict[str, Any]:
    """Compute MET-minute load for running, cycling or swimming.

    Formula: load = MET(modality, zone) * duration_min * 0.8
    """
    modality = str(session.get("modality") or "").lower()
    zone = extract_zone(session.get("intensity"))
    duration = _to_number(session.get("duration_minutes"))

    modality_mets = MET_VALUES.get(modality)
    if modality_mets is None or zone is None:
        return {"valid": False}
    if duration is None or duration <= 0:
        return {"valid": False}

    met_value = modality_mets[zone]
    met_minutes = met_value * duration
    load_score = met_minutes * MET_CONVERSION_FACTOR

    return {
        "valid": True,
        "load_score": round(load_score, 2),
        "breakdown": {
            "modality": modality,
            "intensity": zone,
            "duration_minutes": duration,
            "met_value": met_value,
            "met_minutes": round(met_minutes, 2),
        },
        "details": {
            "conversion_factor": MET_CONVERSION_FACTOR,
            "met_category": get_met_category(met_value),
        },
    }


def compute_load(session: Mapping[str, Any]) -> LoadResult:
    """Compute the training load of one session through the priority cascade.

    Args:
        session: Raw session fields

    Returns:
        LoadResult from the first satisfiable method

    Raises:
        InvalidInputError: Session is not a mapping, or ``duration_minutes`` is
            present but not a finite number > 0
        InsufficientDataError: No method of the cascade could be satisfied
    """
    if not isinstance(session, Mapping):
        raise InvalidInputError("Session object is required")

    raw_duration = session.get("duration_minutes")
    if raw_duration is not None:
        duration = _to_number(raw_duration)
        if duration is None or duration <= 0:
            raise InvalidInputError("Session duration must be a positive number")
    else:
        duration = None

    hr_data = session.get("hr_data")
    if duration and isinstance(hr_data, Mapping) and hr_data.get("avg_hr"):
        trimp = calculate_trimp(session)
        if trimp["valid"]:
            return LoadResult(
                total_load=trimp["trimp_score"],
                method_used="TRIMP",
                confidence=TRIMP_CONFIDENCE,
                breakdown=trimp["breakdown"],
                details=trimp["details"],
            )

    if duration and session.get("zone_distribution"):
        zone_result = calculate_zone_based_load(session)
        if zone_result["valid"]:
            return LoadResult(
                total_load=zone_result["load_score"],
                method_used="Zone_RPE",
                confidence=ZONE_CONFIDENCE,
                breakdown=zone_result["breakdown"],
                details=zone_result["details"],
            )

    if duration and session.get("rpe") is not None:
        rpe_result = calculate_rpe_load(session)
        if rpe_result["valid"]:
            return LoadResult(
                total_load=rpe_result["load_score"],
                method_used="RPE_Duration",
                confidence=RPE_CONFIDENCE,
                breakdown=rpe_result["breakdown"],
                details=rpe_result["details"],
            )

    if duration and session.get("modality") and session.get("intensity"):
        met_result = calculate_met_load(session)
        if met_result["valid"]:
            return LoadResult(
                total_load=met_result["load_score"],
                method_used="MET_Minutes",
                confidence=MET_CONFIDENCE,
                breakdown=met_result["breakdown"],
                details=met_result["details"],
            )

    raise InsufficientDataError("Insufficient data for load calculation")


def validate_session(session: Any) -> dict[str, Any]:
    """Check a session before load computation.

    Returns:
        ``{"valid": bool, "errors": [...], "warnings": [...]}``. Only a
        missing or invalid duration is an error; implausible HR, RPE and
        zone totals are warnings.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not isinstance(session, Mapping):
        errors.append("Session object is required")
        return {"valid": False, "errors": errors, "warnings": warnings}

    duration = _to_number(session.get("duration_minutes"))
    if duration is None or duration <= 0:
        errors.append("Valid duration_minutes is required")

    hr_data = session.get("hr_data")
    if isinstance(hr_data, Mapping):
        avg_hr = _to_number(hr_data.get("avg_hr"))
        if avg_hr and (avg_hr < 30 or avg_hr > 220):
            warnings.append("Average HR seems unrealistic")

    rpe = _to_number(session.get("rpe"))
    if rpe is not None and (rpe < 1 or rpe > 10):
        warnings.append("RPE should be between 1-10")

    zone_distribution = session.get("zone_distribution")
    if isinstance(zone_distribution, Mapping) and zone_distribution:
        total_zone_minutes = sum(_to_number(minutes) or 0.0 for minutes in zone_distribution.values())
        if abs(total_zone_minutes - (duration or 0.0)) > ZONE_DURATION_TOLERANCE_MIN:
            warnings.append("Zone distribution minutes don't match total duration")

    return {"valid": not errors, "errors": errors, "warnings": warnings}
