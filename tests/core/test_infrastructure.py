"""Tests for settings, logging, the event bus, the audit log and engine wiring."""

import pytest
from loguru import logger
from pydantic import ValidationError

from loadguard.audit.audit_log import GUARDRAIL_TRIGGERED
from loadguard.config.settings import Settings
from loadguard.context import build_context, build_engine
from loadguard.core.logger import setup_logger
from loadguard.events.bus import PAIN_REPORTED, SESSION_COMPLETED, SESSION_PLANNED, EventBus
from loadguard.guardrails.monitor import LoadGuardrails
from loadguard.metrics.load_calculator import LoadCalculator
from loadguard.persistence.store import InMemoryKeyValueStore

# ============================================================================
# SETTINGS
# ============================================================================


def test_settings_defaults(monkeypatch):
    for name in ("LOADGUARD_LOG_LEVEL", "LOADGUARD_STORE_BACKEND", "LOADGUARD_DEFAULT_EXPERIENCE_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings()

    assert settings.log_level == "INFO"
    assert settings.default_experience_level == "intermediate"
    assert settings.adjustment_history_limit == 30
    assert settings.upcoming_window_days == 7
    assert settings.store_backend == "memory"


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("LOADGUARD_LOG_LEVEL", "debug")
    monkeypatch.setenv("LOADGUARD_DEFAULT_EXPERIENCE_LEVEL", "Elite")
    monkeypatch.setenv("LOADGUARD_ADJUSTMENT_HISTORY_LIMIT", "10")

    settings = Settings()

    assert settings.log_level == "DEBUG"
    assert settings.default_experience_level == "elite"
    assert settings.adjustment_history_limit == 10


def test_invalid_settings_fall_back():
    settings = Settings(log_level="chatty", default_experience_level="pro", store_backend="postgres")

    assert settings.log_level == "INFO"
    assert settings.default_experience_level == "intermediate"
    assert settings.store_backend == "memory"


def test_settings_module_builds_no_instance_at_import():
    """Settings reach the engine through the context, never a module global."""
    import loadguard.config as config_package
    import loadguard.config.settings as settings_module

    assert not hasattr(settings_module, "settings")
    assert "settings" not in config_package.__all__


def test_date_helpers_expose_only_date_parsing():
    import loadguard.utils.dates as dates

    assert not hasattr(dates, "parse_datetime")
    assert dates.session_date({"start_at": "2026-03-18T07:00:00Z"}) == dates.parse_date("2026-03-18")


def test_history_limit_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(adjustment_history_limit=0)


# ============================================================================
# LOGGING
# ============================================================================


def test_setup_logger_writes_file(tmp_path):
    log_file = tmp_path / "logs" / "loadguard.log"
    try:
        setup_logger(level="DEBUG", log_file=str(log_file))
        logger.bind(audit=True, user_id="athlete-1").info("GUARDRAIL_TRIGGERED")
        logger.complete()

        assert log_file.exists()
        content = log_file.read_text()
        assert "GUARDRAIL_TRIGGERED" in content
        assert "athlete-1" in content
    finally:
        logger.remove()


# ============================================================================
# EVENTS
# ============================================================================


@pytest.mark.asyncio
async def test_event_bus_delivers_to_sync_and_async_handlers():
    bus = EventBus()
    received = []

    def sync_handler(payload):
        received.append(("sync", payload["n"]))

    async def async_handler(payload):
        received.append(("async", payload["n"]))

    bus.subscribe("TOPIC", sync_handler)
    bus.subscribe("TOPIC", async_handler)
    await bus.emit("TOPIC", {"n": 1})

    assert received == [("sync", 1), ("async", 1)]


@pytest.mark.asyncio
async def test_event_bus_keeps_no_emit_history():
    bus = EventBus()
    for n in range(1000):
        await bus.emit("TOPIC", {"n": n})

    assert not hasattr(bus, "published")
    assert bus._handlers.get("TOPIC", []) == []


@pytest.mark.asyncio
async def test_failing_handler_does_not_break_publisher():
    bus = EventBus()
    received = []

    def failing(payload):
        raise RuntimeError("boom")

    bus.subscribe("TOPIC", failing)
    bus.subscribe("TOPIC", received.append)
    await bus.emit("TOPIC", {"n": 2})

    assert received == [{"n": 2}]

    bus.unsubscribe("TOPIC", failing)
    bus.unsubscribe("TOPIC", failing)
    await bus.emit("TOPIC", {"n": 3})
    assert received == [{"n": 2}, {"n": 3}]


# ============================================================================
# AUDIT
# ============================================================================


@pytest.mark.asyncio
async def test_audit_log_persists_entries(context, fixed_now):
    entry = await context.audit_log.record(GUARDRAIL_TRIGGERED, "athlete-1", ramp_rate=0.25, threshold=0.1)

    assert entry["timestamp"] == fixed_now.isoformat()
    assert await context.audit_log.entries("athlete-1") == [entry]


@pytest.mark.asyncio
async def test_audit_persistence_failure_is_not_raised(context, monkeypatch):
    async def broken(user_id, record):
        raise ConnectionError("store unavailable")

    monkeypatch.setattr(context.repository, "append_audit_record", broken)

    entry = await context.audit_log.record(GUARDRAIL_TRIGGERED, "athlete-1")
    assert entry["event"] == GUARDRAIL_TRIGGERED


# ============================================================================
# WIRING
# ============================================================================


def test_build_engine_wires_handlers(settings, clock):
    context = build_context(settings=settings, store=InMemoryKeyValueStore(), clock=clock)
    calculator, guardrails = build_engine(context)

    assert isinstance(calculator, LoadCalculator)
    assert isinstance(guardrails, LoadGuardrails)
    assert guardrails.load_calculator is calculator
    for topic in (SESSION_COMPLETED, PAIN_REPORTED, SESSION_PLANNED):
        assert len(context.event_bus._handlers[topic]) == 1


def test_build_context_defaults_to_memory_store(settings):
    context = build_context(settings=settings)
    assert isinstance(context.repository.store, InMemoryKeyValueStore)
