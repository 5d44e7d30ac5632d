"""Root conftest for all tests.

Shared fixtures build an engine around an in-memory store and a fixed
clock (Wednesday 2026-03-18 12:00 UTC), so calendar-week and window
arithmetic is deterministic.
"""

from datetime import UTC, datetime

import pytest

from loadguard.config.settings import Settings
from loadguard.context import EngineContext, build_context
from loadguard.events.bus import EventBus
from loadguard.guardrails.monitor import LoadGuardrails
from loadguard.metrics.load_calculator import LoadCalculator
from loadguard.persistence.store import InMemoryKeyValueStore

FIXED_NOW = datetime(2026, 3, 18, 12, 0, tzinfo=UTC)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def settings() -> Settings:
    return Settings(log_level="INFO", store_backend="memory", default_experience_level="intermediate")


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def context(settings, store, event_bus, clock) -> EngineContext:
    return build_context(settings=settings, store=store, event_bus=event_bus, clock=clock)


@pytest.fixture
def repository(context):
    return context.repository


@pytest.fixture
def calculator(context) -> LoadCalculator:
    return LoadCalculator(context)


@pytest.fixture
def guardrails(context, calculator) -> LoadGuardrails:
    return LoadGuardrails(context, calculator)
