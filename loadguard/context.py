"""Engine context.

The immutable bundle of collaborators handed to every component's
constructor: settings, the training data repository, the event bus, the
audit log and the clock. Components never discover collaborators from
module-level state.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from loguru import logger

from loadguard.audit.audit_log import AuditLog
from loadguard.config.settings import Settings
from loadguard.events.bus import EventBus
from loadguard.persistence.repository import TrainingDataRepository
from loadguard.persistence.store import InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore

if TYPE_CHECKING:
    from loadguard.guardrails.monitor import LoadGuardrails
    from loadguard.metrics.load_calculator import LoadCalculator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class EngineContext:
    """Collaborators shared by LoadCalculator and LoadGuardrails.

    Attributes:
        settings: Engine settings
        repository: Per-user training data access
        event_bus: Notification channel
        audit_log: Compliance audit sink
        clock: Returns the current aware UTC datetime
    """

    settings: Settings
    repository: TrainingDataRepository
    event_bus: EventBus
    audit_log: AuditLog
    clock: Callable[[], datetime] = utc_now


def build_store(settings: Settings) -> KeyValueStore:
    if settings.store_backend == "redis":
        logger.info(f"Using Redis key-value store with prefix '{settings.key_prefix}'")
        return RedisKeyValueStore(settings.redis_url, key_prefix=settings.key_prefix)
    return InMemoryKeyValueStore()


def build_context(
    settings: Settings | None = None,
    store: KeyValueStore | None = None,
    event_bus: EventBus | None = None,
    clock: Callable[[], datetime] | None = None,
) -> EngineContext:
    """Assemble an EngineContext, filling unspecified collaborators from settings."""
    resolved_settings = settings or Settings()
    resolved_clock = clock or utc_now
    repository = TrainingDataRepository(store or build_store(resolved_settings), resolved_clock)
    return EngineContext(
        settings=resolved_settings,
        repository=repository,
        event_bus=event_bus or EventBus(),
        audit_log=AuditLog(repository, resolved_clock),
        clock=resolved_clock,
    )


def build_engine(context: EngineContext) -> tuple[LoadCalculator, LoadGuardrails]:
    """Construct the calculator and the guardrail monitor and wire event handlers."""
    from loadguard.guardrails.monitor import LoadGuardrails
    from loadguard.metrics.load_calculator import LoadCalculator

    calculator = LoadCalculator(context)
    guardrails = LoadGuardrails(context, calculator)
    guardrails.register_event_handlers()
    return calculator, guardrails
