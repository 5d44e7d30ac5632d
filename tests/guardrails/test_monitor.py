"""Tests for the LoadGuardrails monitor.

Tests cover:
- Weekly load history on Sunday-started weeks
- Ramp-rate boundary (limit itself is safe) and action selection
- Missed-day and pain downshifts
- Planned session validation, including fail-open behavior
- Persistence order side effects: adjustments, audit records, events
- Per-user serialization and event wiring
"""

import asyncio

import pytest

from loadguard.config.settings import Settings
from loadguard.context import build_context
from loadguard.events.bus import GUARDRAIL_APPLIED, PAIN_REPORTED, SESSION_COMPLETED, SESSION_PLANNED, SESSION_REJECTED
from loadguard.guardrails.monitor import LoadGuardrails
from loadguard.metrics.load_calculator import LoadCalculator
from loadguard.thresholds import get_ramp_rate_thresholds

USER = "athlete-1"


def _session(day: str, load: float, **overrides) -> dict:
    """Completed session whose load equals ``load``."""
    session = {"date": day, "exercises": [{"name": "deadlift", "sets": 1, "reps": 1, "weight": load}]}
    session.update(overrides)
    return session


def _planned(session_id: str, day: str, **fields) -> dict:
    return {"id": session_id, "date": day, **fields}


def _record(bus, topic: str) -> list[dict]:
    """Subscribe a handler that collects every payload emitted on topic."""
    received: list[dict] = []
    bus.subscribe(topic, received.append)
    return received


async def _seed_weeks(repository, *loads: float) -> None:
    """Store one session per calendar week, most recent week first."""
    days = ["2026-03-16", "2026-03-10", "2026-03-03"]
    await repository.save_user_sessions(USER, [_session(day, load) for day, load in zip(days, loads)])


# ============================================================================
# HISTORY AND ANALYSIS
# ============================================================================


@pytest.mark.asyncio
async def test_weekly_history_uses_sunday_weeks_most_recent_first(guardrails, repository):
    await repository.save_user_sessions(
        USER,
        [
            _session("2026-03-15", 120, tags=["HIIT"]),
            _session("2026-03-16", 80),
            _session("2026-03-14", 100),
            _session("2026-03-01", 50),
        ],
    )

    history = await guardrails.get_weekly_load_history(USER, 3)

    assert [w["start_date"] for w in history] == ["2026-03-15", "2026-03-08", "2026-03-01"]
    assert [w["end_date"] for w in history] == ["2026-03-21", "2026-03-14", "2026-03-07"]
    assert [w["total_load"] for w in history] == [200, 100, 50]
    assert [w["sessions"] for w in history] == [2, 1, 1]
    assert history[0]["hiit_sessions"] == 1


@pytest.mark.parametrize(("ramp", "severity"), [(0.11, "low"), (0.13, "moderate"), (0.16, "high")])
def test_analyze_ramp_rate_severity(guardrails, ramp, severity):
    thresholds = get_ramp_rate_thresholds("intermediate")
    analysis = guardrails.analyze_ramp_rate(ramp, thresholds, [])

    assert analysis.severity == severity
    assert analysis.exceeds_threshold is True


def test_consecutive_increases():
    history = [{"total_load": 300}, {"total_load": 200}, {"total_load": 100}]
    assert LoadGuardrails.check_consecutive_increases(history, 0.10) == 2

    history = [{"total_load": 300}, {"total_load": 200}, {"total_load": 250}]
    assert LoadGuardrails.check_consecutive_increases(history, 0.10) == 1

    history = [{"total_load": 200}, {"total_load": 200}, {"total_load": 100}]
    assert LoadGuardrails.check_consecutive_increases(history, 0.10) == 0


def test_recommended_reduction_is_capped():
    thresholds = get_ramp_rate_thresholds("intermediate")

    assert LoadGuardrails.calculate_recommended_reduction(0.30, thresholds) == pytest.approx(0.30)
    assert LoadGuardrails.calculate_recommended_reduction(2.0, thresholds) == 0.5


# ============================================================================
# RAMP RATE CHECK
# ============================================================================


@pytest.mark.asyncio
async def test_ramp_at_limit_is_within_limits(guardrails, repository):
    await _seed_weeks(repository, 220, 200)

    result = await guardrails.check_weekly_ramp_rate(USER)

    assert result["status"] == "within_limits"
    assert result["ramp_rate"] == pytest.approx(0.10)
    assert await repository.get_active_adjustments(USER) == []


@pytest.mark.asyncio
async def test_ramp_above_limit_applies_guardrail(guardrails, repository, context):
    await _seed_weeks(repository, 221, 200)
    applied = _record(context.event_bus, GUARDRAIL_APPLIED)

    result = await guardrails.check_weekly_ramp_rate(USER)

    assert result["status"] == "guardrail_applied"
    assert [a["type"] for a in result["actions"]] == ["reduce_hiit"]
    assert result["actions"][0]["reduction"] == pytest.approx(0.2025)

    adjustments = await repository.get_active_adjustments(USER)
    assert [a.type for a in adjustments] == ["reduce_hiit"]
    assert adjustments[0].duration == 7

    audit = await context.audit_log.entries(USER)
    assert audit[-1]["event"] == "GUARDRAIL_TRIGGERED"
    assert audit[-1]["trigger"] == "ramp_rate_exceeded"

    assert applied[-1]["type"] == "reduce_hiit"
    assert applied[-1]["sessions_affected"] == 0
    assert len(guardrails.get_adjustment_history(USER)) == 1


@pytest.mark.asyncio
async def test_steep_consecutive_ramp_adds_recovery_and_deload(guardrails, repository):
    await _seed_weeks(repository, 300, 200, 100)

    result = await guardrails.check_weekly_ramp_rate(USER)

    assert [a["type"] for a in result["actions"]] == ["reduce_hiit", "extend_recovery", "deload_week"]
    types = {a.type for a in await repository.get_active_adjustments(USER)}
    assert types == {"reduce_hiit", "extend_recovery", "deload_week"}


@pytest.mark.asyncio
async def test_zero_previous_week_is_insufficient_data(guardrails, repository):
    await _seed_weeks(repository, 300)

    result = await guardrails.check_weekly_ramp_rate(USER)

    assert result["status"] == "insufficient_data"


@pytest.mark.asyncio
async def test_profile_experience_level_selects_tier(guardrails, repository):
    await repository.save_user_profile(USER, {"personal_data": {"experience": "beginner"}})
    await _seed_weeks(repository, 218, 200)

    result = await guardrails.check_weekly_ramp_rate(USER)

    assert result["status"] == "guardrail_applied"
    assert result["threshold"] == 0.08


@pytest.mark.asyncio
async def test_ramp_check_error_status(guardrails, repository, monkeypatch):
    async def broken(user_id):
        raise ConnectionError("store unavailable")

    monkeypatch.setattr(repository, "get_user_sessions", broken)

    result = await guardrails.check_weekly_ramp_rate(USER)

    assert result == {"status": "error", "message": "Unable to check training load progression"}


# ============================================================================
# HIIT MODIFICATION
# ============================================================================


@pytest.mark.asyncio
async def test_modify_upcoming_hiit_touches_at_most_two_sessions(guardrails, repository):
    await repository.save_upcoming_sessions(
        USER,
        [
            _planned("p-1", "2026-03-19", tags=["HIIT"]),
            _planned("p-2", "2026-03-20", intensity="Z5"),
            _planned("p-3", "2026-03-21", rpe=9),
            _planned("p-4", "2026-03-19", intensity="Z2"),
        ],
    )

    modified = await guardrails.modify_upcoming_hiit(USER, 0.2)

    assert modified == 2
    stored = {s["id"]: s for s in await repository.get_upcoming_sessions(USER, 7)}
    assert stored["p-1"]["modifications"][0]["reason"] == "guardrail_ramp_rate"
    assert stored["p-2"]["modifications"][0]["reason"] == "guardrail_ramp_rate"
    assert "modifications" not in stored["p-3"]
    assert "modifications" not in stored["p-4"]


# ============================================================================
# MISSED DAYS AND PAIN
# ============================================================================


@pytest.mark.asyncio
async def test_short_break_needs_no_action(guardrails, repository):
    result = await guardrails.handle_missed_days(USER, 2)

    assert result["status"] == "no_action"
    assert await repository.get_active_adjustments(USER) == []


@pytest.mark.asyncio
async def test_missed_days_gradual_return(guardrails, repository, context, fixed_now):
    result = await guardrails.handle_missed_days(USER, 5)

    assert result["status"] == "downshift_applied"
    assert result["actions"][0]["reduction"] == pytest.approx(0.4)
    assert result["actions"][0]["duration"] == 5

    (adjustment,) = await repository.get_active_adjustments(USER)
    assert adjustment.type == "gradual_return"
    assert (adjustment.end_date - fixed_now).days == 5

    audit = await context.audit_log.entries(USER)
    assert audit[-1]["event"] == "MISSED_DAYS_ADJUSTMENT"


@pytest.mark.asyncio
async def test_long_break_duration_is_capped(guardrails):
    result = await guardrails.handle_missed_days(USER, 20)
    assert result["actions"][0]["duration"] == 7


@pytest.mark.asyncio
async def test_pain_reduction_scales_with_level(context, calculator):
    levels = {}
    for level in (5, 8, 10, 0):
        guardrails = LoadGuardrails(context, calculator)
        result = await guardrails.handle_pain_flag(f"user-{level}", level, "knee")
        levels[level] = result["actions"][0]["reduction"]

    assert levels[5] == pytest.approx(0.30)
    assert levels[8] == pytest.approx(0.45)
    assert levels[8] > levels[5]
    assert levels[10] == 0.5
    assert levels[0] == pytest.approx(0.05)


@pytest.mark.asyncio
async def test_missed_days_store_failure_returns_error(guardrails, repository, context, monkeypatch):
    async def broken(user_id, adjustment):
        raise ConnectionError("store unavailable")

    monkeypatch.setattr(repository, "save_active_adjustment", broken)

    result = await guardrails.handle_missed_days(USER, 5)

    assert result["status"] == "error"
    assert "missed days" in result["message"]
    assert await context.audit_log.entries(USER) == []


@pytest.mark.asyncio
async def test_pain_flag_store_failure_returns_error(guardrails, repository, monkeypatch):
    async def broken(user_id, adjustment):
        raise ConnectionError("store unavailable")

    monkeypatch.setattr(repository, "save_active_adjustment", broken)

    result = await guardrails.handle_pain_flag(USER, 7, "knee")

    assert result["status"] == "error"
    assert "pain" in result["message"]


@pytest.mark.asyncio
async def test_non_numeric_pain_level_returns_error(guardrails, repository):
    result = await guardrails.handle_pain_flag(USER, "severe", "knee")

    assert result["status"] == "error"
    assert await repository.get_active_adjustments(USER) == []


@pytest.mark.asyncio
async def test_pain_flag_downshifts_planned_sessions(guardrails, repository, context):
    await repository.save_upcoming_sessions(USER, [_planned("p-1", "2026-03-20", rpe=8)])

    result = await guardrails.handle_pain_flag(USER, 5, "hamstring")

    assert result["status"] == "pain_response_applied"
    assert result["message"] == "Training modified due to hamstring discomfort"

    (stored,) = await repository.get_upcoming_sessions(USER, 14)
    assert stored["rpe"] == pytest.approx(5.6)
    assert stored["modifications"][0]["reason"] == "guardrail_immediate_downshift"

    (adjustment,) = await repository.get_active_adjustments(USER)
    assert adjustment.pain_location == "hamstring"
    assert adjustment.duration == 14

    assert (await guardrails.validate_planned_session(USER, stored))["valid"] is True
    assert (await context.audit_log.entries(USER))[-1]["event"] == "PAIN_FLAG_RESPONSE"


# ============================================================================
# VALIDATION
# ============================================================================


@pytest.mark.asyncio
async def test_unmodified_hiit_rejected_under_reduce_hiit(guardrails, repository):
    await _seed_weeks(repository, 221, 200)
    await guardrails.check_weekly_ramp_rate(USER)

    result = await guardrails.validate_planned_session(USER, _planned("p-9", "2026-03-19", tags=["HIIT"]))

    assert result["valid"] is False
    assert result["reason"] == "violates_adjustment"
    assert result["adjustment"]["type"] == "reduce_hiit"


@pytest.mark.asyncio
async def test_easy_session_passes(guardrails):
    result = await guardrails.validate_planned_session(USER, _planned("p-1", "2026-03-19", intensity="Z2"))
    assert result == {"valid": True, "message": "Session passes guardrail validation"}


@pytest.mark.asyncio
async def test_consecutive_days_limit(guardrails, repository):
    await repository.save_user_sessions(
        USER, [_session(day, 50) for day in ("2026-03-15", "2026-03-16", "2026-03-17", "2026-03-18")]
    )

    result = await guardrails.validate_planned_session(USER, _planned("p-1", "2026-03-19", intensity="Z2"))

    assert result["valid"] is False
    assert result["reason"] == "consecutive_days_exceeded"


@pytest.mark.asyncio
async def test_rest_day_today_resets_consecutive_days(guardrails, repository):
    await repository.save_user_sessions(
        USER, [_session(day, 50) for day in ("2026-03-14", "2026-03-15", "2026-03-16", "2026-03-17")]
    )

    result = await guardrails.validate_planned_session(USER, _planned("p-1", "2026-03-19", intensity="Z2"))

    assert result["valid"] is True


@pytest.mark.asyncio
async def test_validation_fails_open(guardrails, repository, monkeypatch):
    async def broken(user_id, days):
        raise ConnectionError("store unavailable")

    monkeypatch.setattr(repository, "get_recent_sessions", broken)

    result = await guardrails.validate_planned_session(USER, _planned("p-1", "2026-03-19", tags=["HIIT"]))

    assert result["valid"] is True
    assert "caution" in result["message"]


# ============================================================================
# STATUS, HISTORY, CONCURRENCY, EVENTS
# ============================================================================


@pytest.mark.asyncio
async def test_guardrail_status(guardrails):
    status = await guardrails.get_guardrail_status(USER)

    assert status["is_under_guardrail"] is False
    assert status["recent_analysis"]["status"] == "insufficient_data"
    assert status["next_review"] == "2026-03-25T12:00:00+00:00"


def test_adjustment_history_is_bounded(store, clock, calculator):
    context = build_context(settings=Settings(adjustment_history_limit=3), store=store, clock=clock)
    guardrails = LoadGuardrails(context, calculator)
    for i in range(5):
        guardrails.record_adjustment(USER, {"trigger": "ramp_rate", "index": i})

    assert [entry["index"] for entry in guardrails.get_adjustment_history(USER)] == [2, 3, 4]
    assert guardrails.get_adjustment_history("someone-else") == []


@pytest.mark.asyncio
async def test_concurrent_triggers_keep_every_adjustment(guardrails, repository):
    await asyncio.gather(
        guardrails.handle_missed_days(USER, 4),
        guardrails.handle_pain_flag(USER, 7, "ankle"),
        guardrails.handle_missed_days(USER, 6),
    )

    adjustments = await repository.get_active_adjustments(USER)
    assert sorted(a.type for a in adjustments) == ["gradual_return", "gradual_return", "immediate_downshift"]


@pytest.mark.asyncio
async def test_event_handlers(guardrails, repository, context):
    guardrails.register_event_handlers()
    guardrails.register_event_handlers()
    bus = context.event_bus
    rejected = _record(bus, SESSION_REJECTED)

    await bus.emit(PAIN_REPORTED, {"user_id": USER, "pain_level": 6, "location": "back"})
    assert [a.type for a in await repository.get_active_adjustments(USER)] == ["immediate_downshift"]

    await bus.emit(SESSION_PLANNED, {"user_id": USER, "session": _planned("p-1", "2026-03-19", rpe=9)})
    assert len(rejected) == 1
    assert rejected[0]["reason"] == "violates_adjustment"

    await _seed_weeks(repository, 300, 200)
    await bus.emit(SESSION_COMPLETED, {"user_id": USER})
    assert any(a.type == "reduce_hiit" for a in await repository.get_active_adjustments(USER))


def test_guardrails_accept_any_weekly_calculator(context):
    class FixedCalculator:
        def calculate_weekly_load(self, sessions):
            return {"total_load": 100.0 * len(sessions)}

    guardrails = LoadGuardrails(context, FixedCalculator())
    assert isinstance(guardrails.load_calculator, FixedCalculator)
    assert not isinstance(guardrails.load_calculator, LoadCalculator)
