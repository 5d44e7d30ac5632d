"""Training load guardrail monitor.

Watches week-over-week load progression, missed-day gaps and pain reports,
and turns them into persisted, time-bounded adjustments that planned
sessions must respect.

Triggers and the adjustments they create:

- Ramp rate above the tier limit: reduce_hiit (7 days), plus extend_recovery
  (2 days) for high severity and deload_week (7 days) after two or more
  consecutive excessive weeks
- Three or more missed days: gradual_return, 15% per day capped at 40%
- Pain report: immediate_downshift for 14 days, 30% at pain level 5 and
  5% more per level, capped at 50%

State-changing entry points (check_weekly_ramp_rate, handle_missed_days,
handle_pain_flag) hold a per-user asyncio.Lock, so a user's adjustments
are written by one coroutine at a time.

Planned-session validation fails open: if the check itself breaks, the
session is allowed and the failure is logged. The ramp, missed-day and pain
handlers log failures and return ``{"status": "error", ...}`` instead of
raising.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from collections.abc import Awaitable, Callable, Mapping
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any

from loguru import logger

from loadguard.audit.audit_log import GUARDRAIL_TRIGGERED, MISSED_DAYS_ADJUSTMENT, PAIN_FLAG_RESPONSE
from loadguard.events.bus import (
    GUARDRAIL_APPLIED,
    PAIN_REPORTED,
    SESSION_COMPLETED,
    SESSION_PLANNED,
    SESSION_REJECTED,
)
from loadguard.guardrails.errors import GuardrailError
from loadguard.guardrails.session_rules import (
    apply_adjustment,
    apply_hiit_reduction,
    count_consecutive_training_days,
    is_high_intensity_session,
    session_violates_adjustment,
)
from loadguard.guardrails.types import (
    AdjustmentType,
    GuardrailAction,
    GuardrailAdjustment,
    RampAnalysis,
    WeeklyLoadCalculator,
)
from loadguard.thresholds import (
    DELOAD_CONSECUTIVE_INCREASES,
    DELOAD_DURATION_DAYS,
    DELOAD_REDUCTION,
    EXTEND_RECOVERY_DAYS,
    HIIT_SESSIONS_TO_MODIFY,
    MAX_GUARDRAIL_REDUCTION,
    MISSED_DAYS_MAX_DURATION,
    MISSED_DAYS_MAX_REDUCTION,
    MISSED_DAYS_MIN,
    MISSED_DAYS_RAMP_DOWN,
    PAIN_BASE_REDUCTION,
    PAIN_BASELINE_LEVEL,
    PAIN_DURATION_DAYS,
    PAIN_REDUCTION_PER_LEVEL,
    RAMP_EXCEEDED_DURATION_DAYS,
    RampRateThresholds,
    get_ramp_rate_thresholds,
    ramp_exceeds,
)
from loadguard.utils.dates import session_date

if TYPE_CHECKING:
    from loadguard.context import EngineContext

REVIEW_INTERVAL_DAYS = 7
CONSECUTIVE_DAYS_MESSAGE = "Too many consecutive training days. Rest day required."


def _week_start(day: date) -> date:
    """Sunday on or before day."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


class LoadGuardrails:
    """Stateful guardrail monitor for per-user training load safety."""

    def __init__(self, context: EngineContext, load_calculator: WeeklyLoadCalculator):
        self.context = context
        self.load_calculator = load_calculator
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._adjustment_history: dict[str, deque[dict[str, Any]]] = {}
        self._handlers_registered = False

    @property
    def repository(self):
        return self.context.repository

    def _user_lock(self, user_id: str) -> asyncio.Lock:
        return self._locks[user_id]

    async def get_user_experience_level(self, user_id: str) -> str:
        default = self.context.settings.default_experience_level
        try:
            return await self.repository.get_user_experience_level(user_id, default)
        except Exception as e:
            logger.bind(user_id=user_id, error=str(e)).warning("Failed to get user experience level")
            return default

    # ---- Ramp rate ----

    async def check_weekly_ramp_rate(self, user_id: str) -> dict[str, Any]:
        """Compare this week's load with last week's and apply guardrails when the ramp is too steep.

        Returns:
            ``{status, ramp_rate?, threshold?, actions?, message}`` where status
            is insufficient_data, within_limits, guardrail_applied or error
        """
        async with self._user_lock(user_id):
            try:
                return await self._check_weekly_ramp_rate(user_id)
            except Exception as e:
                logger.bind(user_id=user_id, error=str(e)).exception("Ramp rate check failed")
                return {"status": "error", "message": "Unable to check training load progression"}

    async def _check_weekly_ramp_rate(self, user_id: str) -> dict[str, Any]:
        thresholds = get_ramp_rate_thresholds(await self.get_user_experience_level(user_id))
        history = await self.get_weekly_load_history(user_id, 3)

        if len(history) < 2 or history[1]["total_load"] <= 0:
            return {
                "status": "insufficient_data",
                "message": "Not enough training history for ramp rate analysis",
            }

        current_week, previous_week = history[0], history[1]
        ramp_rate = (current_week["total_load"] - previous_week["total_load"]) / previous_week["total_load"]
        analysis = self.analyze_ramp_rate(ramp_rate, thresholds, history)

        if not analysis.exceeds_threshold:
            return {
                "status": "within_limits",
                "ramp_rate": ramp_rate,
                "threshold": thresholds.max_weekly_increase,
                "message": "Training load progression is within safe limits",
            }

        actions = await self.apply_ramp_rate_guardrails(user_id, analysis, thresholds)
        action_payloads = [action.model_dump() for action in actions]

        await self.context.audit_log.record(
            GUARDRAIL_TRIGGERED,
            user_id,
            trigger="ramp_rate_exceeded",
            ramp_rate=ramp_rate,
            threshold=thresholds.max_weekly_increase,
            actions=action_payloads,
        )

        return {
            "status": "guardrail_applied",
            "ramp_rate": ramp_rate,
            "threshold": thresholds.max_weekly_increase,
            "actions": action_payloads,
            "message": analysis.message,
        }

    async def get_weekly_load_history(self, user_id: str, weeks: int = 3) -> list[dict[str, Any]]:
        """Weekly load totals over Sunday-started calendar weeks, most recent first."""
        sessions = await self.repository.get_user_sessions(user_id)
        current_week_start = _week_start(self.context.clock().date())

        history = []
        for i in range(weeks):
            start = current_week_start - timedelta(weeks=i)
            end = start + timedelta(days=6)
            week_sessions = [s for s in sessions if start <= (session_date(s) or date.min) <= end]

            weekly_load = self.load_calculator.calculate_weekly_load(week_sessions)
            if "error" in weekly_load:
                raise GuardrailError(f"Weekly load unavailable for week starting {start}: {weekly_load['error']}")

            history.append(
                {
                    "week": i,
                    "start_date": start.isoformat(),
                    "end_date": end.isoformat(),
                    "total_load": weekly_load.get("total_load", 0.0),
                    "sessions": len(week_sessions),
                    "hiit_sessions": sum(1 for s in week_sessions if is_high_intensity_session(s)),
                }
            )
        return history

    def analyze_ramp_rate(
        self, ramp_rate: float, thresholds: RampRateThresholds, history: list[Mapping[str, Any]]
    ) -> RampAnalysis:
        limit = thresholds.max_weekly_increase
        if ramp_rate > limit * 1.5:
            severity = "high"
        elif ramp_rate > limit * 1.2:
            severity = "moderate"
        else:
            severity = "low"

        return RampAnalysis(
            ramp_rate=ramp_rate,
            exceeds_threshold=ramp_exceeds(ramp_rate, limit),
            severity=severity,
            consecutive_increases=self.check_consecutive_increases(history, limit),
            recommended_reduction=self.calculate_recommended_reduction(ramp_rate, thresholds),
            message=self.generate_ramp_rate_message(ramp_rate, thresholds, severity),
        )

    @staticmethod
    def check_consecutive_increases(history: list[Mapping[str, Any]], threshold: float) -> int:
        """Count leading week pairs, most recent first, whose ramp exceeds threshold."""
        consecutive = 0
        for current, previous in zip(history, history[1:]):
            previous_total = previous.get("total_load", 0.0)
            if previous_total <= 0:
                break
            rate = (current.get("total_load", 0.0) - previous_total) / previous_total
            if not ramp_exceeds(rate, threshold):
                break
            consecutive += 1
        return consecutive

    @staticmethod
    def calculate_recommended_reduction(ramp_rate: float, thresholds: RampRateThresholds) -> float:
        """hiit_reduction plus half the excess ramp, within [0, 0.5]."""
        excess_rate = ramp_rate - thresholds.max_weekly_increase
        scaled_reduction = thresholds.hiit_reduction + excess_rate * 0.5
        return max(0.0, min(scaled_reduction, MAX_GUARDRAIL_REDUCTION))

    def calculate_hiit_reduction(self, analysis: RampAnalysis, thresholds: RampRateThresholds) -> float:
        return self.calculate_recommended_reduction(analysis.ramp_rate, thresholds)

    @staticmethod
    def generate_ramp_rate_message(ramp_rate: float, thresholds: RampRateThresholds, severity: str) -> str:
        percentage = round(ramp_rate * 100)
        threshold = round(thresholds.max_weekly_increase * 100)
        reduction = round(thresholds.hiit_reduction * 100)

        if severity == "high":
            return (
                f"High load increase detected ({percentage}% vs {threshold}% max). "
                f"Next high-intensity session will be reduced by {reduction}% or more."
            )
        if severity == "moderate":
            return (
                f"Moderate load increase detected ({percentage}% vs {threshold}% max). "
                f"Next high-intensity session will be reduced by {reduction}%."
            )
        return (
            f"Load increase detected ({percentage}% vs {threshold}% max). "
            f"Next high-intensity session will be reduced by {reduction}%."
        )

    async def apply_ramp_rate_guardrails(
        self, user_id: str, analysis: RampAnalysis, thresholds: RampRateThresholds
    ) -> list[GuardrailAction]:
        """Decide the ramp-rate actions, record them in history, then apply them."""
        hiit_reduction = self.calculate_hiit_reduction(analysis, thresholds)
        actions = [
            GuardrailAction(
                type="reduce_hiit",
                reduction=hiit_reduction,
                duration=RAMP_EXCEEDED_DURATION_DAYS,
                message=f"Next high-intensity session will be reduced by {round(hiit_reduction * 100)}%",
            )
        ]

        if analysis.severity == "high":
            actions.append(
                GuardrailAction(
                    type="extend_recovery",
                    duration=EXTEND_RECOVERY_DAYS,
                    message="Additional recovery day recommended this week",
                )
            )

        if analysis.consecutive_increases >= DELOAD_CONSECUTIVE_INCREASES:
            actions.append(
                GuardrailAction(
                    type="deload_week",
                    reduction=DELOAD_REDUCTION,
                    duration=DELOAD_DURATION_DAYS,
                    message="Deload week recommended after consecutive load increases",
                )
            )

        self.record_adjustment(
            user_id,
            {
                "trigger": "ramp_rate",
                "analysis": analysis.model_dump(),
                "actions": [action.model_dump() for action in actions],
                "timestamp": self.context.clock().isoformat(),
            },
        )

        await self.apply_session_modifications(user_id, actions)
        return actions

    # ---- Missed days and pain ----

    async def handle_missed_days(self, user_id: str, missed_days: int) -> dict[str, Any]:
        """Downshift after a training gap: 15% per missed day, at most 40%, for up to 7 days."""
        if missed_days < MISSED_DAYS_MIN:
            return {"status": "no_action", "message": "Short break, no adjustment needed"}

        async with self._user_lock(user_id):
            try:
                return await self._handle_missed_days(user_id, missed_days)
            except Exception as e:
                logger.bind(user_id=user_id, missed_days=missed_days, error=str(e)).exception(
                    "Missed days adjustment failed"
                )
                return {"status": "error", "message": "Unable to adjust training after missed days"}

    async def _handle_missed_days(self, user_id: str, missed_days: int) -> dict[str, Any]:
        total_reduction = min(missed_days * MISSED_DAYS_RAMP_DOWN, MISSED_DAYS_MAX_REDUCTION)
        percentage = round(total_reduction * 100)
        actions = [
            GuardrailAction(
                type="gradual_return",
                reduction=total_reduction,
                duration=min(missed_days, MISSED_DAYS_MAX_DURATION),
                message=f"Missed training detected. Load reduced by {percentage}% for safe return.",
            )
        ]

        await self.apply_session_modifications(user_id, actions)

        action_payloads = [action.model_dump() for action in actions]
        await self.context.audit_log.record(
            MISSED_DAYS_ADJUSTMENT,
            user_id,
            missed_days=missed_days,
            total_reduction=total_reduction,
            actions=action_payloads,
        )

        return {
            "status": "downshift_applied",
            "actions": action_payloads,
            "message": f"Training load reduced by {percentage}% for safe return",
        }

    async def handle_pain_flag(self, user_id: str, pain_level: float, location: str | None) -> dict[str, Any]:
        """Immediate 14-day downshift scaled by pain level (1-10, 5 is baseline)."""
        async with self._user_lock(user_id):
            try:
                return await self._handle_pain_flag(user_id, pain_level, location)
            except Exception as e:
                logger.bind(user_id=user_id, pain_level=pain_level, error=str(e)).exception(
                    "Pain flag response failed"
                )
                return {"status": "error", "message": "Unable to adjust training for reported pain"}

    async def _handle_pain_flag(self, user_id: str, pain_level: float, location: str | None) -> dict[str, Any]:
        try:
            level = float(pain_level)
        except (TypeError, ValueError) as e:
            raise GuardrailError(f"Pain level must be a number, got {pain_level!r}") from e

        scaled_reduction = PAIN_BASE_REDUCTION + (level - PAIN_BASELINE_LEVEL) * PAIN_REDUCTION_PER_LEVEL
        reduction = max(0.0, min(scaled_reduction, MAX_GUARDRAIL_REDUCTION))
        actions = [
            GuardrailAction(
                type="immediate_downshift",
                reduction=reduction,
                duration=PAIN_DURATION_DAYS,
                pain_location=location,
                message=f"Pain/discomfort reported. Training intensity reduced for {PAIN_DURATION_DAYS} days.",
            )
        ]

        await self.apply_session_modifications(user_id, actions)

        action_payloads = [action.model_dump() for action in actions]
        await self.context.audit_log.record(
            PAIN_FLAG_RESPONSE,
            user_id,
            pain_level=level,
            location=location,
            reduction=reduction,
            actions=action_payloads,
        )

        return {
            "status": "pain_response_applied",
            "actions": action_payloads,
            "message": f"Training modified due to {location or 'reported'} discomfort",
        }

    # ---- Planned session validation ----

    async def validate_planned_session(self, user_id: str, session: Mapping[str, Any]) -> dict[str, Any]:
        """Check a planned session against the consecutive-day limit and active adjustments.

        Fails open: an internal error yields ``valid: True`` with a caution message.
        """
        try:
            thresholds = get_ramp_rate_thresholds(await self.get_user_experience_level(user_id))

            recent_sessions = await self.repository.get_recent_sessions(user_id, 7)
            consecutive_days = count_consecutive_training_days(recent_sessions, self.context.clock().date())
            if consecutive_days >= thresholds.consecutive_days_limit:
                return {
                    "valid": False,
                    "reason": "consecutive_days_exceeded",
                    "message": CONSECUTIVE_DAYS_MESSAGE,
                    "recommendation": "Schedule a rest day instead",
                }

            for adjustment in await self.repository.get_active_adjustments(user_id):
                if session_violates_adjustment(session, adjustment):
                    return {
                        "valid": False,
                        "reason": "violates_adjustment",
                        "adjustment": adjustment.model_dump(mode="json"),
                        "message": f"Session conflicts with active {adjustment.type} adjustment",
                    }

            return {"valid": True, "message": "Session passes guardrail validation"}
        except Exception as e:
            logger.bind(user_id=user_id, error=str(e)).exception("Session validation failed")
            return {"valid": True, "message": "Validation error - session allowed with caution"}

    # ---- Effectors ----

    async def apply_session_modifications(self, user_id: str, actions: list[GuardrailAction]) -> None:
        """Dispatch each action to its effector, in order."""
        effectors: dict[str, Callable[[GuardrailAction], Awaitable[Any]]] = {
            "reduce_hiit": lambda a: self.modify_upcoming_hiit(user_id, a.reduction),
            "gradual_return": lambda a: self.set_gradual_return_protocol(user_id, a.reduction, a.duration),
            "immediate_downshift": lambda a: self.apply_immediate_downshift(
                user_id, a.reduction, a.duration, a.pain_location
            ),
            "extend_recovery": lambda a: self.schedule_additional_recovery(user_id, a.duration),
            "deload_week": lambda a: self.schedule_deload_week(user_id, a.reduction, a.duration),
        }

        for action in actions:
            effector = effectors.get(action.type)
            if effector is None:
                logger.bind(user_id=user_id, action_type=action.type).warning("No effector for guardrail action")
                continue
            try:
                await effector(action)
            except Exception as e:
                raise GuardrailError(f"Failed to apply {action.type} for user {user_id}") from e

    async def modify_upcoming_hiit(self, user_id: str, reduction: float) -> int:
        """Reduce the next two high-intensity sessions and persist a reduce_hiit adjustment.

        Returns:
            Number of sessions modified
        """
        now = self.context.clock()
        upcoming = await self.repository.get_upcoming_sessions(user_id, self.context.settings.upcoming_window_days)
        hiit_sessions = [s for s in upcoming if is_high_intensity_session(s)][:HIIT_SESSIONS_TO_MODIFY]

        modified_count = 0
        for session in hiit_sessions:
            if not await self._save_modified_session(user_id, apply_hiit_reduction(session, reduction, now)):
                continue
            modified_count += 1

        await self._persist_adjustment(user_id, "reduce_hiit", reduction, RAMP_EXCEEDED_DURATION_DAYS, "ramp_rate")
        await self._emit_applied(user_id, "reduce_hiit", reduction, modified_count)
        return modified_count

    async def set_gradual_return_protocol(self, user_id: str, reduction: float, duration: int) -> GuardrailAdjustment:
        return await self._apply_intensity_adjustment(user_id, "gradual_return", reduction, duration, "missed_days")

    async def apply_immediate_downshift(
        self, user_id: str, reduction: float, duration: int, pain_location: str | None = None
    ) -> GuardrailAdjustment:
        return await self._apply_intensity_adjustment(
            user_id, "immediate_downshift", reduction, duration, "pain_flag", pain_location
        )

    async def schedule_deload_week(self, user_id: str, reduction: float, duration: int) -> GuardrailAdjustment:
        return await self._apply_intensity_adjustment(user_id, "deload_week", reduction, duration, "ramp_rate")

    async def schedule_additional_recovery(self, user_id: str, duration: int) -> GuardrailAdjustment:
        adjustment = await self._persist_adjustment(user_id, "extend_recovery", 0.0, duration, "ramp_rate")
        await self._emit_applied(user_id, "extend_recovery", 0.0, 0)
        return adjustment

    async def _apply_intensity_adjustment(
        self,
        user_id: str,
        adjustment_type: AdjustmentType,
        reduction: float,
        duration: int,
        source: str,
        pain_location: str | None = None,
    ) -> GuardrailAdjustment:
        """Downshift planned sessions inside the window, then persist the adjustment."""
        adjustment = self._new_adjustment(adjustment_type, reduction, duration, source, pain_location)
        now = self.context.clock()
        horizon_days = max(0, (adjustment.end_date.date() - now.date()).days)
        upcoming = await self.repository.get_upcoming_sessions(user_id, horizon_days)

        modified_count = 0
        for session in upcoming:
            if session_violates_adjustment(session, adjustment):
                if await self._save_modified_session(user_id, apply_adjustment(session, adjustment, now)):
                    modified_count += 1

        await self.repository.save_active_adjustment(user_id, adjustment)
        await self._emit_applied(user_id, adjustment_type, reduction, modified_count)
        return adjustment

    def _new_adjustment(
        self,
        adjustment_type: AdjustmentType,
        reduction: float,
        duration: int,
        source: str,
        pain_location: str | None = None,
    ) -> GuardrailAdjustment:
        start = self.context.clock()
        return GuardrailAdjustment(
            type=adjustment_type,
            reduction=reduction,
            duration=duration,
            start_date=start,
            end_date=start + timedelta(days=duration),
            pain_location=pain_location,
            source=source,
        )

    async def _persist_adjustment(
        self, user_id: str, adjustment_type: AdjustmentType, reduction: float, duration: int, source: str
    ) -> GuardrailAdjustment:
        adjustment = self._new_adjustment(adjustment_type, reduction, duration, source)
        await self.repository.save_active_adjustment(user_id, adjustment)
        return adjustment

    async def _save_modified_session(self, user_id: str, session: dict[str, Any]) -> bool:
        if session.get("id") is None and session.get("template_id") is None:
            logger.bind(user_id=user_id).warning("Skipping planned session without id or template_id")
            return False
        await self.repository.save_upcoming_session(user_id, session)
        return True

    async def _emit_applied(self, user_id: str, adjustment_type: str, reduction: float, sessions_affected: int):
        await self.context.event_bus.emit(
            GUARDRAIL_APPLIED,
            {
                "user_id": user_id,
                "type": adjustment_type,
                "reduction": reduction,
                "sessions_affected": sessions_affected,
            },
        )

    # ---- Status and history ----

    async def get_guardrail_status(self, user_id: str) -> dict[str, Any]:
        """Active adjustments, a fresh ramp analysis and the next review date."""
        recent_analysis = await self.check_weekly_ramp_rate(user_id)
        active_adjustments = await self.repository.get_active_adjustments(user_id)
        return {
            "active_adjustments": [a.model_dump(mode="json") for a in active_adjustments],
            "recent_analysis": recent_analysis,
            "is_under_guardrail": len(active_adjustments) > 0,
            "next_review": self.calculate_next_review_date(),
        }

    def calculate_next_review_date(self) -> str:
        return (self.context.clock() + timedelta(days=REVIEW_INTERVAL_DAYS)).isoformat()

    def record_adjustment(self, user_id: str, entry: dict[str, Any]) -> None:
        if user_id not in self._adjustment_history:
            self._adjustment_history[user_id] = deque(maxlen=self.context.settings.adjustment_history_limit)
        self._adjustment_history[user_id].append(entry)

    def get_adjustment_history(self, user_id: str) -> list[dict[str, Any]]:
        return list(self._adjustment_history.get(user_id, ()))

    # ---- Event wiring ----

    def register_event_handlers(self) -> None:
        """Subscribe to session and pain events. Safe to call more than once."""
        if self._handlers_registered:
            return
        bus = self.context.event_bus
        bus.subscribe(SESSION_COMPLETED, self._on_session_completed)
        bus.subscribe(PAIN_REPORTED, self._on_pain_reported)
        bus.subscribe(SESSION_PLANNED, self._on_session_planned)
        self._handlers_registered = True

    async def _on_session_completed(self, payload: dict[str, Any]) -> None:
        if payload.get("user_id"):
            await self.check_weekly_ramp_rate(payload["user_id"])

    async def _on_pain_reported(self, payload: dict[str, Any]) -> None:
        if payload.get("user_id"):
            await self.handle_pain_flag(payload["user_id"], payload.get("pain_level"), payload.get("location"))

    async def _on_session_planned(self, payload: dict[str, Any]) -> None:
        user_id = payload.get("user_id")
        session = payload.get("session")
        if not user_id or not session:
            return
        result = await self.validate_planned_session(user_id, session)
        if not result["valid"]:
            await self.context.event_bus.emit(
                SESSION_REJECTED,
                {
                    "user_id": user_id,
                    "session": session,
                    "reason": result["reason"],
                    "message": result["message"],
                },
            )
