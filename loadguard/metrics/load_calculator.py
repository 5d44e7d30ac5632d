"""Training load aggregation and recommendations.

Turns collections of sessions and external activities into weekly and
comprehensive load pictures, and those into bounded recommendations:

- Session load: volume (sets x reps x weight) + intensity (volume x RPE/10)
- Weekly summary: daily buckets, peak, coefficient of variation
- Recovery debt: hours of unresolved recovery from external activities
- Overtraining risk: additive score over total load and recovery debt
- Load spikes: current 7-day load vs the trailing 7-day load

Failure policy: every public aggregate method catches internal errors and
returns ``{"error": message}`` so one malformed record cannot take down a
dashboard. Callers must check for the ``error`` key.
"""

from __future__ import annotations

import statistics
from collections.abc import Iterable, Mapping
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any

from loguru import logger

from loadguard.metrics.errors import AggregationError
from loadguard.metrics.load_engine import ZONE_LOAD_MULTIPLIERS, extract_zone
from loadguard.thresholds import (
    get_load_thresholds,
    get_ramp_rate_thresholds,
    ramp_exceeds,
    resolve_experience_level,
)
from loadguard.utils.dates import parse_date, session_date

if TYPE_CHECKING:
    from loadguard.context import EngineContext

SPECIALIZED_DISCIPLINE = "soccer_shape"
HIGH_INTENSITY_ZONES = frozenset({"Z4", "Z5"})
AGILITY_TAGS = frozenset({"change_of_direction", "COD", "agility"})
AGILITY_KEYWORDS = ("shuttle", "agility", "change of direction")
INTERVAL_MULTIPLIER = 1.3
AGILITY_MULTIPLIER = 1.2

RATIO_FLOOR = 0.1
RATIO_CEILING = 10.0
MIN_RECOMMENDATION = 0.3

RECOVERY_TYPE_ADVICE: dict[str, tuple[str, str]] = {
    "Run": ("Reduce leg training", "High running load - reduce leg volume"),
    "Ride": ("Focus on upper body", "High cycling load - focus on upper body training"),
}

RISK_RECOMMENDATIONS: dict[str, dict[str, str]] = {
    "low": {"action": "Continue training", "message": "Low overtraining risk - maintain current training"},
    "medium": {
        "action": "Monitor closely",
        "message": "Medium overtraining risk - monitor recovery and adjust if needed",
    },
    "high": {"action": "Reduce training", "message": "High overtraining risk - reduce training load immediately"},
}


def _as_float(value: Any) -> float:
    """Coerce a raw numeric field to a non-negative float (missing counts as 0)."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return max(0.0, float(value))
    except (TypeError, ValueError):
        return 0.0


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _period_total(period: Any) -> float:
    if isinstance(period, Mapping):
        return float(period.get("total", period.get("total_load", 0.0)) or 0.0)
    return float(period or 0.0)


def is_specialized_session(session: Mapping[str, Any]) -> bool:
    """True when the session belongs to the specialized high-intensity discipline."""
    tags = session.get("tags") or []
    return (
        session.get("category") == SPECIALIZED_DISCIPLINE
        or session.get("subcategory") == SPECIALIZED_DISCIPLINE
        or SPECIALIZED_DISCIPLINE in tags
    )


class LoadCalculator:
    """Weekly, comprehensive and spike-aware training load analysis."""

    def __init__(self, context: EngineContext, training_level: str | None = None):
        self.context = context
        self.training_level = resolve_experience_level(
            training_level or context.settings.default_experience_level
        )

    def _today(self) -> date:
        return self.context.clock().date()

    # ---- Session level ----

    def calculate_session_load(self, session: Mapping[str, Any]) -> dict[str, float]:
        """Compute volume and intensity load for one session.

        Specialized-discipline sessions scale the running intensity total by
        1.3 for Z4/Z5 exercises, then by 1.2 for agility work. External
        activity stress scores count toward both volume and intensity.

        Returns:
            ``{total, volume, intensity, volume_ratio, intensity_ratio}``, all
            floored at 0, ratios clamped to [0, 1]
        """
        volume_load = 0.0
        intensity_load = 0.0
        specialized = is_specialized_session(session)

        for exercise in session.get("exercises") or []:
            exercise_volume = _as_float(exercise.get("sets")) * _as_float(exercise.get("reps")) * _as_float(
                exercise.get("weight")
            )
            volume_load += exercise_volume

            rpe = exercise.get("rpe")
            if rpe is not None:
                intensity_load += exercise_volume * (_clamp(_as_float(rpe), 1.0, 10.0) / 10.0)

            if specialized:
                if extract_zone(exercise.get("intensity")) in HIGH_INTENSITY_ZONES:
                    intensity_load *= INTERVAL_MULTIPLIER
                if AGILITY_TAGS.intersection(exercise.get("tags") or []):
                    intensity_load *= AGILITY_MULTIPLIER

        for activity in session.get("external_activities") or []:
            activity_load = _as_float(activity.get("training_stress_score"))
            volume_load += activity_load
            intensity_load += activity_load

        if specialized and session.get("structure"):
            structured_load = self.calculate_structured_session_load(session)
            if structured_load > 0:
                intensity_load = max(intensity_load, structured_load)

        total_load = max(0.0, volume_load + intensity_load)
        safe_total = max(total_load, 1.0)

        return {
            "total": total_load,
            "volume": max(0.0, volume_load),
            "intensity": max(0.0, intensity_load),
            "volume_ratio": _clamp(volume_load / safe_total, 0.0, 1.0) if total_load > 0 else 0.0,
            "intensity_ratio": _clamp(intensity_load / safe_total, 0.0, 1.0) if total_load > 0 else 0.0,
        }

    def calculate_structured_session_load(self, session: Mapping[str, Any]) -> float:
        """Load of the ``main`` blocks of a structured specialized session.

        Formula per block: work_minutes x zone multiplier, x1.3 in Z4/Z5,
        x1.2 for shuttle/agility/change-of-direction work. Warm-up, rest and
        cool-down blocks do not count.
        """
        structure = session.get("structure")
        if not isinstance(structure, list):
            return 0.0

        total_load = 0.0
        for block in structure:
            if block.get("block_type") != "main" or not block.get("intensity"):
                continue

            zone = extract_zone(str(block["intensity"]).split("-")[0]) or "Z3"
            multiplier = ZONE_LOAD_MULTIPLIERS.get(zone, 4.0)

            if block.get("sets") and block.get("work_duration"):
                work_minutes = _as_float(block["sets"]) * _as_float(block["work_duration"]) / 60.0
            else:
                work_minutes = _as_float(block.get("duration"))

            block_load = work_minutes * multiplier
            if zone in HIGH_INTENSITY_ZONES:
                block_load *= INTERVAL_MULTIPLIER

            description = str(block.get("description") or "").lower()
            if any(keyword in description for keyword in AGILITY_KEYWORDS):
                block_load *= AGILITY_MULTIPLIER

            total_load += block_load

        return round(total_load, 1)

    # ---- Weekly ----

    def calculate_weekly_load(self, sessions: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
        """Aggregate a week of sessions into a WeeklyLoadSummary.

        Sessions without a date are bucketed on today.
        """
        try:
            if sessions is None:
                raise AggregationError("sessions must be a list")

            total_load = 0.0
            volume_load = 0.0
            intensity_load = 0.0
            daily_loads: dict[str, dict[str, float]] = {}

            for session in sessions:
                session_load = self.calculate_session_load(session)
                total_load += session_load["total"]
                volume_load += session_load["volume"]
                intensity_load += session_load["intensity"]

                day = (session_date(session) or self._today()).isoformat()
                bucket = daily_loads.setdefault(day, {"total": 0.0, "volume": 0.0, "intensity": 0.0})
                bucket["total"] += session_load["total"]
                bucket["volume"] += session_load["volume"]
                bucket["intensity"] += session_load["intensity"]

            average_daily_load = total_load / 7
            return {
                "total_load": total_load,
                "volume_load": volume_load,
                "intensity_load": intensity_load,
                "average_daily_load": average_daily_load,
                "peak_daily_load": max((d["total"] for d in daily_loads.values()), default=0.0),
                "load_variation": self.calculate_load_variation(daily_loads),
                "daily_loads": daily_loads,
                "recommendation": self.get_load_recommendation(total_load),
                "next_day_intensity": self.suggest_next_day_intensity(total_load, average_daily_load),
            }
        except Exception as e:
            logger.bind(error=str(e)).exception("Failed to calculate weekly load")
            return {"error": str(e)}

    @staticmethod
    def calculate_load_variation(daily_loads: Mapping[str, Mapping[str, float]]) -> float:
        """Coefficient of variation of daily totals (0 when the mean is 0)."""
        loads = [d["total"] for d in daily_loads.values()]
        if not loads:
            return 0.0
        mean = statistics.fmean(loads)
        if mean <= 0:
            return 0.0
        return statistics.pstdev(loads) / mean

    def get_load_recommendation(self, total_load: float, level: str | None = None) -> dict[str, str]:
        weekly_threshold = get_load_thresholds(level or self.training_level).weekly_load

        if total_load < weekly_threshold * 0.7:
            return {
                "status": "low",
                "message": "Load is low - consider increasing training volume",
                "suggestion": "Add 1-2 additional sessions or increase intensity",
            }
        if total_load > weekly_threshold * 1.3:
            return {
                "status": "high",
                "message": "Load is high - risk of overtraining",
                "suggestion": "Reduce training volume or intensity for recovery",
            }
        return {
            "status": "optimal",
            "message": "Load is within optimal range",
            "suggestion": "Maintain current training load",
        }

    def suggest_next_day_intensity(
        self, total_load: float, average_daily_load: float, level: str | None = None
    ) -> dict[str, Any]:
        """Suggest tomorrow's intensity from weekly and daily load ratios.

        Both ratios are clamped to [0.1, 10] before thresholding.
        """
        thresholds = get_load_thresholds(level or self.training_level)
        safe_weekly = max(1.0, thresholds.weekly_load)
        safe_daily = max(1.0, thresholds.daily_load)

        load_ratio = _clamp(max(0.0, total_load) / safe_weekly, RATIO_FLOOR, RATIO_CEILING)
        daily_ratio = _clamp(max(0.0, average_daily_load) / safe_daily, RATIO_FLOOR, RATIO_CEILING)

        if load_ratio > 1.2 or daily_ratio > 1.5:
            return {
                "intensity": 0.6,
                "type": "recovery",
                "message": "High load detected - focus on recovery",
                "exercises": ["light cardio", "stretching", "mobility work"],
            }
        if load_ratio < 0.8:
            return {
                "intensity": 0.9,
                "type": "high",
                "message": "Low load - good time for high intensity",
                "exercises": ["heavy compound movements", "high-intensity intervals"],
            }
        return {
            "intensity": 0.8,
            "type": "moderate",
            "message": "Optimal load - moderate intensity recommended",
            "exercises": ["balanced training", "skill work", "strength training"],
        }

    # ---- Recovery and external load ----

    def calculate_recovery_debt(self, activities: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
        """Sum recovery debt hours overall and per activity type."""
        try:
            if activities is None:
                raise AggregationError("activities must be a list")

            total_debt = 0.0
            by_type: dict[str, float] = {}
            timeline: list[dict[str, Any]] = []

            for activity in activities:
                debt = _as_float(activity.get("recovery_debt_hours"))
                activity_type = activity.get("activity_type") or "unknown"
                total_debt += debt
                by_type[activity_type] = by_type.get(activity_type, 0.0) + debt
                timeline.append(
                    {"date": activity.get("start_time"), "type": activity_type, "debt": debt, "remaining": debt}
                )

            return {
                "total_debt": total_debt,
                "by_type": by_type,
                "timeline": timeline,
                "status": self.assess_recovery_status(total_debt),
                "recommendations": self.get_recovery_recommendations(total_debt, by_type),
            }
        except Exception as e:
            logger.bind(error=str(e)).exception("Failed to calculate recovery debt")
            return {"error": str(e)}

    @staticmethod
    def assess_recovery_status(total_debt: float) -> dict[str, Any]:
        if total_debt < 12:
            return {"level": "excellent", "message": "Excellent recovery status", "color": "green", "readiness": 0.9}
        if total_debt < 24:
            return {"level": "good", "message": "Good recovery status", "color": "yellow", "readiness": 0.7}
        if total_debt < 48:
            return {"level": "moderate", "message": "Moderate recovery debt", "color": "orange", "readiness": 0.5}
        return {"level": "poor", "message": "High recovery debt - rest needed", "color": "red", "readiness": 0.3}

    @staticmethod
    def get_recovery_recommendations(total_debt: float, by_type: Mapping[str, float]) -> list[dict[str, str]]:
        """Prioritized recovery advice, most urgent first."""
        recommendations: list[dict[str, str]] = []

        if total_debt > 24:
            recommendations.append(
                {
                    "priority": "high",
                    "action": "Take a rest day",
                    "description": "High recovery debt - focus on complete rest",
                }
            )

        for activity_type, debt in by_type.items():
            if debt <= 12:
                continue
            action, description = RECOVERY_TYPE_ADVICE.get(
                activity_type,
                (
                    f"Reduce {activity_type} volume",
                    f"High {activity_type} load - allow extra recovery before repeating it",
                ),
            )
            recommendations.append({"priority": "medium", "action": action, "description": description})

        if total_debt < 12:
            recommendations.append(
                {
                    "priority": "low",
                    "action": "Maintain current training",
                    "description": "Good recovery status - continue training",
                }
            )

        return recommendations

    def calculate_external_load(self, activities: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
        """Sum training stress of external activities, by type and by day."""
        total_load = 0.0
        load_by_type: dict[str, float] = {}
        daily_loads: dict[str, float] = {}

        for activity in activities:
            load = _as_float(activity.get("training_stress_score"))
            total_load += load

            activity_type = activity.get("activity_type") or "unknown"
            load_by_type[activity_type] = load_by_type.get(activity_type, 0.0) + load

            day = (parse_date(activity.get("start_time")) or self._today()).isoformat()
            daily_loads[day] = daily_loads.get(day, 0.0) + load

        safe_total = max(0.0, total_load)
        return {
            "total_load": safe_total,
            "load_by_type": load_by_type,
            "daily_loads": daily_loads,
            "average_daily_load": safe_total / 7,
        }

    # ---- Combined picture ----

    def calculate_comprehensive_load(
        self,
        sessions: Iterable[Mapping[str, Any]],
        activities: Iterable[Mapping[str, Any]],
    ) -> dict[str, Any]:
        """Combine internal (session) load, external load and recovery debt."""
        try:
            activities = list(activities)
            weekly_load = self.calculate_weekly_load(sessions)
            if "error" in weekly_load:
                raise AggregationError(weekly_load["error"])
            external_load = self.calculate_external_load(activities)
            recovery_debt = self.calculate_recovery_debt(activities)
            if "error" in recovery_debt:
                raise AggregationError(recovery_debt["error"])

            safe_internal = max(0.0, weekly_load.get("total_load") or 0.0)
            safe_external = max(0.0, external_load.get("total_load") or 0.0)
            total_load = safe_internal + safe_external

            return {
                "internal": weekly_load,
                "external": external_load,
                "recovery": recovery_debt,
                "combined": {
                    "total_load": total_load,
                    "recommendation": self.get_combined_recommendation(
                        safe_internal, safe_external, recovery_debt
                    ),
                    "risk_assessment": self.assess_overtraining_risk(total_load, recovery_debt["total_debt"]),
                },
            }
        except Exception as e:
            logger.bind(error=str(e)).exception("Failed to calculate comprehensive load")
            return {"error": str(e)}

    @staticmethod
    def get_combined_recommendation(
        internal_load: float, external_load: float, recovery_debt: Mapping[str, Any]
    ) -> dict[str, Any]:
        total_load = internal_load + external_load

        if recovery_debt["status"]["level"] == "poor":
            return {
                "priority": "high",
                "action": "Reduce training load",
                "message": "High recovery debt - reduce training intensity and volume",
                "adjustments": {"intensity": 0.6, "volume": 0.7, "focus": "recovery"},
            }
        if total_load > 400:
            return {
                "priority": "medium",
                "action": "Monitor load carefully",
                "message": "High combined load - monitor for overtraining signs",
                "adjustments": {"intensity": 0.8, "volume": 0.9, "focus": "maintenance"},
            }
        return {
            "priority": "low",
            "action": "Maintain current training",
            "message": "Load is within optimal range",
            "adjustments": {"intensity": 1.0, "volume": 1.0, "focus": "progression"},
        }

    @staticmethod
    def assess_overtraining_risk(total_load: float, recovery_debt: float) -> dict[str, Any]:
        """Score overtraining risk.

        +3 for load > 400 (+2 for > 300), +3 for debt > 48 h (+2 for > 24 h).
        Level is high at >= 5, medium at >= 3, otherwise low.
        """
        risk_score = 0
        factors: list[str] = []

        if total_load > 400:
            risk_score += 3
            factors.append("High training load")
        elif total_load > 300:
            risk_score += 2
            factors.append("Moderate-high training load")

        if recovery_debt > 48:
            risk_score += 3
            factors.append("High recovery debt")
        elif recovery_debt > 24:
            risk_score += 2
            factors.append("Moderate recovery debt")

        if risk_score >= 5:
            level = "high"
        elif risk_score >= 3:
            level = "medium"
        else:
            level = "low"

        return {
            "score": risk_score,
            "level": level,
            "factors": factors,
            "recommendation": RISK_RECOMMENDATIONS[level],
        }

    # ---- Progression ----

    @staticmethod
    def calculate_ramp_rate(current: Any, previous: Any) -> float:
        """Fractional change from previous to current period (0 when previous is 0)."""
        previous_total = _period_total(previous)
        if previous_total <= 0:
            return 0.0
        return (_period_total(current) - previous_total) / previous_total

    def check_load_progression(self, weekly_loads: list[Any], level: str | None = None) -> dict[str, Any]:
        """Check week-over-week progression against the tier ramp limit.

        Args:
            weekly_loads: Weekly totals, most recent first
            level: Experience tier (defaults to the calculator's tier)
        """
        threshold = get_ramp_rate_thresholds(level or self.training_level).max_weekly_increase
        if len(weekly_loads) < 2:
            return {
                "safe": True,
                "ramp_rate": 0.0,
                "threshold": threshold,
                "recommendation": "Not enough training history to assess progression",
            }

        ramp_rate = self.calculate_ramp_rate(weekly_loads[0], weekly_loads[1])
        if ramp_exceeds(ramp_rate, threshold):
            return {
                "safe": False,
                "ramp_rate": ramp_rate,
                "threshold": threshold,
                "recommendation": (
                    f"Reduce next week's load: {round(ramp_rate * 100)}% increase exceeds "
                    f"the {round(threshold * 100)}% weekly limit"
                ),
            }
        return {
            "safe": True,
            "ramp_rate": ramp_rate,
            "threshold": threshold,
            "recommendation": "Load progression is within safe limits",
        }

    # ---- Spike detection ----

    def calculate_seven_day_average(
        self,
        sessions: Iterable[Mapping[str, Any]],
        activities: Iterable[Mapping[str, Any]],
        today: date | None = None,
    ) -> float:
        """Combined load of the 7 days preceding the current 7-day window.

        Floored at 1 so downstream ratios never divide by zero; 1 on error.
        """
        try:
            today = today or self._today()
            window_end = today - timedelta(days=7)
            window_start = today - timedelta(days=13)

            trailing_sessions = [
                s for s in sessions if window_start <= (session_date(s) or date.min) <= window_end
            ]
            trailing_activities = [
                a for a in activities if window_start <= (parse_date(a.get("start_time")) or date.min) <= window_end
            ]

            weekly_load = self.calculate_weekly_load(trailing_sessions)
            if "error" in weekly_load:
                raise AggregationError(weekly_load["error"])
            session_load = max(0.0, weekly_load["total_load"])
            activity_load = max(0.0, self.calculate_external_load(trailing_activities)["total_load"])
            return max(1.0, session_load + activity_load)
        except Exception as e:
            logger.bind(error=str(e)).exception("Failed to calculate 7-day average")
            return 1.0

    @staticmethod
    def detect_load_spike(current_load: float, seven_day_average: float) -> dict[str, Any]:
        """Classify current load against the trailing load.

        Ratio is clamped to [0.1, 10]; severity is low above 1.1, medium
        above 1.3 and high above 1.5.
        """
        safe_current = max(0.0, current_load or 0.0)
        safe_average = max(0.0, seven_day_average or 0.0)

        if safe_average == 0:
            return {"is_spike": False, "ratio": 1.0, "severity": "none", "message": "Load within normal range"}

        ratio = _clamp(safe_current / safe_average, RATIO_FLOOR, RATIO_CEILING)
        if ratio > 1.5:
            severity = "high"
        elif ratio > 1.3:
            severity = "medium"
        elif ratio > 1.1:
            severity = "low"
        else:
            severity = "none"

        percent = f"{ratio * 100:.0f}%"
        messages = {
            "high": f"High load spike detected ({percent} of average) - recovery day recommended",
            "medium": f"Moderate load spike detected ({percent} of average) - consider reducing intensity",
            "low": f"Slight load increase ({percent} of average) - monitor recovery",
            "none": "Load within normal range",
        }
        return {"is_spike": ratio > 1.1, "ratio": ratio, "severity": severity, "message": messages[severity]}

    def generate_workout_intensity_recommendations(
        self,
        current_load: float,
        seven_day_average: float,
        load_spike: Mapping[str, Any],
        level: str | None = None,
    ) -> dict[str, Any]:
        """Turn load ratio and spike severity into intensity/volume multipliers.

        Final multipliers are clamped to [0.3, 1.0].
        """
        weekly_threshold = get_load_thresholds(level or self.training_level).weekly_load
        safe_current = max(0.0, current_load or 0.0)
        safe_average = max(0.0, seven_day_average or 0.0)

        raw_ratio = safe_current / safe_average if safe_average > 0 else 1.0
        load_ratio = _clamp(raw_ratio, RATIO_FLOOR, RATIO_CEILING)

        intensity = 1.0
        volume = 1.0
        message = "Normal training load"
        recovery_recommended = False

        if load_ratio > 1.0:
            volume = 0.8
            message = "Reduced volume due to high training load"
            if load_ratio > 1.3:
                volume = 0.6
                intensity = 0.8
                message = "Significantly reduced volume and intensity due to high training load"

        if load_spike.get("is_spike"):
            if load_spike.get("severity") == "high":
                recovery_recommended = True
                intensity = 0.5
                volume = 0.3
                message = "Recovery day recommended due to load spike"
            elif load_spike.get("severity") == "medium":
                intensity = 0.7
                volume = 0.6
                message = "Reduced intensity due to load spike"

        if safe_current > max(1.0, weekly_threshold) * 1.2:
            intensity *= 0.8
            volume *= 0.7
            message = "High absolute load - reduced intensity and volume"

        if current_load != safe_current or seven_day_average != safe_average:
            logger.bind(
                original_current_load=current_load,
                original_average=seven_day_average,
                load_ratio=load_ratio,
            ).debug("LOAD_BOUNDS_CHECK")

        intensity = _clamp(intensity, MIN_RECOMMENDATION, 1.0)
        volume = _clamp(volume, MIN_RECOMMENDATION, 1.0)
        return {
            "intensity": intensity,
            "volume": volume,
            "message": message,
            "recovery_recommended": recovery_recommended,
            "load_ratio": load_ratio,
            "adjustments": {
                "intensity_reduction": round((1 - intensity) * 100),
                "volume_reduction": round((1 - volume) * 100),
            },
        }

    # ---- Store-backed views ----

    async def get_current_load_status(self, user_id: str) -> dict[str, Any]:
        """Current 7-day load vs the trailing 7 days, with workout recommendations."""
        try:
            repository = self.context.repository
            sessions = await repository.get_recent_sessions(user_id, 14)
            activities = await repository.get_recent_activities(user_id, 14)

            today = self._today()
            window_start = today - timedelta(days=6)
            current_sessions = [s for s in sessions if window_start <= (session_date(s) or today) <= today]
            current_activities = [
                a for a in activities if window_start <= (parse_date(a.get("start_time")) or today) <= today
            ]

            weekly_load = self.calculate_weekly_load(current_sessions)
            if "error" in weekly_load:
                raise AggregationError(weekly_load["error"])
            external_load = self.calculate_external_load(current_activities)
            total_current = weekly_load["total_load"] + external_load["total_load"]

            seven_day_average = self.calculate_seven_day_average(sessions, activities, today)
            load_spike = self.detect_load_spike(total_current, seven_day_average)

            return {
                "current_load": total_current,
                "seven_day_average": seven_day_average,
                "load_spike": load_spike,
                "recommendations": self.generate_workout_intensity_recommendations(
                    total_current, seven_day_average, load_spike
                ),
                "weekly_breakdown": weekly_load,
                "external_breakdown": external_load,
            }
        except Exception as e:
            logger.bind(user_id=user_id, error=str(e)).exception("Failed to get current load status")
            return {
                "current_load": 0.0,
                "seven_day_average": 0.0,
                "load_spike": {"is_spike": False, "ratio": 1.0, "severity": "none"},
                "recommendations": {"intensity": 1.0, "volume": 1.0, "message": "Unable to calculate load"},
                "error": str(e),
            }

    async def get_load_dashboard(self, user_id: str) -> dict[str, Any]:
        """Comprehensive load of the last 7 days plus a summary for display."""
        try:
            sessions = await self.context.repository.get_recent_sessions(user_id, 7)
            activities = await self.context.repository.get_recent_activities(user_id, 7)

            comprehensive = self.calculate_comprehensive_load(sessions, activities)
            if "error" in comprehensive:
                return comprehensive

            return {
                "load": comprehensive,
                "summary": {
                    "total_load": comprehensive["combined"]["total_load"],
                    "recovery_status": comprehensive["recovery"]["status"],
                    "risk_level": comprehensive["combined"]["risk_assessment"]["level"],
                    "recommendation": comprehensive["combined"]["recommendation"],
                },
            }
        except Exception as e:
            logger.bind(user_id=user_id, error=str(e)).exception("Failed to get load dashboard")
            return {"error": str(e)}
