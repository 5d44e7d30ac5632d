"""Experience-Tier Thresholds - Single Source of Truth.

Every load table used by the calculator and the guardrail monitor lives
here. Tiers are beginner, intermediate, advanced and elite; unknown tiers
resolve to intermediate.

RAMP BOUNDARY RULE
==================
A week-over-week ramp rate EXCEEDS its tier limit only when it is strictly
greater than ``max_weekly_increase``. A ramp exactly at the limit is safe.
Both ``LoadCalculator.check_load_progression`` and
``LoadGuardrails.analyze_ramp_rate`` go through ``ramp_exceeds``.
"""

from dataclasses import dataclass

DEFAULT_EXPERIENCE_LEVEL = "intermediate"

# Float slack for the ramp comparison so that 220/200 lands on the limit
RAMP_COMPARISON_EPSILON = 1e-9


@dataclass(frozen=True)
class LoadThresholds:
    """Absolute load targets for one experience tier.

    Attributes:
        weekly_load: Weekly load the tier is expected to absorb
        daily_load: Daily load the tier is expected to absorb
        recovery_time: Typical recovery time in hours
    """

    weekly_load: float
    daily_load: float
    recovery_time: float


@dataclass(frozen=True)
class RampRateThresholds:
    """Guardrail limits for one experience tier.

    Attributes:
        max_weekly_increase: Maximum safe week-over-week load increase (fraction)
        hiit_reduction: Base reduction applied to high-intensity sessions (fraction)
        consecutive_days_limit: Maximum consecutive training days
        min_rest_days: Minimum rest days per week
    """

    max_weekly_increase: float
    hiit_reduction: float
    consecutive_days_limit: int
    min_rest_days: int


LOAD_THRESHOLDS: dict[str, LoadThresholds] = {
    "beginner": LoadThresholds(weekly_load=100, daily_load=20, recovery_time=48),
    "intermediate": LoadThresholds(weekly_load=200, daily_load=40, recovery_time=36),
    "advanced": LoadThresholds(weekly_load=300, daily_load=60, recovery_time=24),
    "elite": LoadThresholds(weekly_load=400, daily_load=80, recovery_time=18),
}

RAMP_RATE_THRESHOLDS: dict[str, RampRateThresholds] = {
    "beginner": RampRateThresholds(
        max_weekly_increase=0.08, hiit_reduction=0.25, consecutive_days_limit=3, min_rest_days=2
    ),
    "intermediate": RampRateThresholds(
        max_weekly_increase=0.10, hiit_reduction=0.20, consecutive_days_limit=4, min_rest_days=1
    ),
    "advanced": RampRateThresholds(
        max_weekly_increase=0.12, hiit_reduction=0.15, consecutive_days_limit=5, min_rest_days=1
    ),
    "elite": RampRateThresholds(
        max_weekly_increase=0.15, hiit_reduction=0.10, consecutive_days_limit=6, min_rest_days=1
    ),
}

# Recovery protocols
RAMP_EXCEEDED_DURATION_DAYS = 7
EXTEND_RECOVERY_DAYS = 2
DELOAD_REDUCTION = 0.25
DELOAD_DURATION_DAYS = 7
DELOAD_CONSECUTIVE_INCREASES = 2

MISSED_DAYS_MIN = 3
MISSED_DAYS_RAMP_DOWN = 0.15
MISSED_DAYS_MAX_REDUCTION = 0.4
MISSED_DAYS_MAX_DURATION = 7

PAIN_BASE_REDUCTION = 0.30
PAIN_BASELINE_LEVEL = 5
PAIN_REDUCTION_PER_LEVEL = 0.05
PAIN_DURATION_DAYS = 14

MAX_GUARDRAIL_REDUCTION = 0.5
HIIT_SESSIONS_TO_MODIFY = 2


def resolve_experience_level(level: str | None) -> str:
    """Map a free-form experience label onto a known tier."""
    if not level:
        return DEFAULT_EXPERIENCE_LEVEL
    lowered = str(level).strip().lower()
    return lowered if lowered in RAMP_RATE_THRESHOLDS else DEFAULT_EXPERIENCE_LEVEL


def get_load_thresholds(level: str | None) -> LoadThresholds:
    return LOAD_THRESHOLDS[resolve_experience_level(level)]


def get_ramp_rate_thresholds(level: str | None) -> RampRateThresholds:
    return RAMP_RATE_THRESHOLDS[resolve_experience_level(level)]


def ramp_exceeds(ramp_rate: float, limit: float) -> bool:
    """Return True when ramp_rate is strictly above limit (limit itself is safe)."""
    return ramp_rate - limit > RAMP_COMPARISON_EPSILON
