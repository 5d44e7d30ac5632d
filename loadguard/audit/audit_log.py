"""Guardrail audit logging.

Persist every guardrail trigger and its computed values for compliance and
debugging. Append-only: once recorded, entries are never modified. Audit
records never drive control flow.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any

from loguru import logger

from loadguard.persistence.repository import TrainingDataRepository

GUARDRAIL_TRIGGERED = "GUARDRAIL_TRIGGERED"
MISSED_DAYS_ADJUSTMENT = "MISSED_DAYS_ADJUSTMENT"
PAIN_FLAG_RESPONSE = "PAIN_FLAG_RESPONSE"


class AuditLog:
    """Structured audit sink: a bound loguru record plus a persisted entry."""

    def __init__(self, repository: TrainingDataRepository, clock: Callable[[], datetime]):
        self._repository = repository
        self._clock = clock

    async def record(self, event: str, user_id: str, **values: Any) -> dict[str, Any]:
        """Record an audit event.

        Args:
            event: Audit event name (e.g. GUARDRAIL_TRIGGERED)
            user_id: User the event concerns
            **values: Computed values that led to the event (JSON-serializable)

        Returns:
            The persisted entry
        """
        entry = {
            "event": event,
            "user_id": user_id,
            "timestamp": self._clock().isoformat(),
            **values,
        }
        logger.bind(audit=True, audit_event=event, user_id=user_id).info(event)

        try:
            await self._repository.append_audit_record(user_id, entry)
        except Exception:
            logger.bind(audit_event=event, user_id=user_id).exception("Failed to persist audit record")
        return entry

    async def entries(self, user_id: str) -> list[dict[str, Any]]:
        return await self._repository.get_audit_records(user_id)
