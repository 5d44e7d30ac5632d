"""Training data repository.

Typed access to the per-user records the engine reads and writes. All
records live in a KeyValueStore keyed by user_id:

- sessions:{user_id}            completed sessions
- upcoming_sessions:{user_id}   planned sessions (mutated by guardrails)
- activities:{user_id}          imported external activities
- profile:{user_id}             user profile (experience level)
- adjustments:{user_id}         guardrail adjustments
- audit:{user_id}               append-only audit entries
"""

from collections.abc import Callable
from datetime import date, datetime, timedelta
from typing import Any

from loguru import logger

from loadguard.guardrails.types import GuardrailAdjustment
from loadguard.persistence.store import KeyValueStore
from loadguard.thresholds import resolve_experience_level
from loadguard.utils.dates import parse_date, session_date


class TrainingDataRepository:
    """Reads and writes per-user training records through a KeyValueStore."""

    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime]):
        self.store = store
        self._clock = clock

    def _today(self) -> date:
        return self._clock().date()

    async def get_user_sessions(self, user_id: str) -> list[dict[str, Any]]:
        return list(await self.store.get(f"sessions:{user_id}", []) or [])

    async def save_user_sessions(self, user_id: str, sessions: list[dict[str, Any]]) -> None:
        await self.store.set(f"sessions:{user_id}", sessions)

    async def get_recent_sessions(self, user_id: str, days: int) -> list[dict[str, Any]]:
        """Return sessions dated within the last ``days`` days (today included)."""
        cutoff = self._today() - timedelta(days=days)
        sessions = await self.get_user_sessions(user_id)
        recent = []
        for session in sessions:
            day = session_date(session)
            if day is not None and day >= cutoff:
                recent.append(session)
        return recent

    async def get_upcoming_sessions(self, user_id: str, days: int) -> list[dict[str, Any]]:
        """Return planned sessions dated from today through today + ``days``."""
        today = self._today()
        horizon = today + timedelta(days=days)
        sessions = list(await self.store.get(f"upcoming_sessions:{user_id}", []) or [])
        upcoming = []
        for session in sessions:
            day = session_date(session)
            if day is not None and today <= day <= horizon:
                upcoming.append(session)
        upcoming.sort(key=lambda s: session_date(s) or today)
        return upcoming

    async def save_upcoming_sessions(self, user_id: str, sessions: list[dict[str, Any]]) -> None:
        await self.store.set(f"upcoming_sessions:{user_id}", sessions)

    async def save_upcoming_session(self, user_id: str, session: dict[str, Any]) -> None:
        """Replace the stored planned session matching id/template_id, or append it."""
        sessions = list(await self.store.get(f"upcoming_sessions:{user_id}", []) or [])
        index = next(
            (
                i
                for i, stored in enumerate(sessions)
                if (session.get("id") is not None and stored.get("id") == session.get("id"))
                or (session.get("template_id") is not None and stored.get("template_id") == session.get("template_id"))
            ),
            None,
        )
        if index is None:
            sessions.append(session)
        else:
            sessions[index] = session
        await self.store.set(f"upcoming_sessions:{user_id}", sessions)

    async def get_recent_activities(self, user_id: str, days: int) -> list[dict[str, Any]]:
        cutoff = self._today() - timedelta(days=days)
        activities = list(await self.store.get(f"activities:{user_id}", []) or [])
        return [a for a in activities if (parse_date(a.get("start_time")) or date.min) >= cutoff]

    async def save_activities(self, user_id: str, activities: list[dict[str, Any]]) -> None:
        await self.store.set(f"activities:{user_id}", activities)

    async def get_user_experience_level(self, user_id: str, default: str) -> str:
        profile = await self.store.get(f"profile:{user_id}", {}) or {}
        personal = profile.get("personal_data") or {}
        return resolve_experience_level(personal.get("experience") or profile.get("experience") or default)

    async def save_user_profile(self, user_id: str, profile: dict[str, Any]) -> None:
        await self.store.set(f"profile:{user_id}", profile)

    async def get_active_adjustments(self, user_id: str) -> list[GuardrailAdjustment]:
        """Return the user's adjustments that have not expired yet."""
        now = self._clock()
        raw = list(await self.store.get(f"adjustments:{user_id}", []) or [])
        active = []
        for item in raw:
            try:
                adjustment = GuardrailAdjustment.model_validate(item)
            except ValueError as e:
                logger.bind(user_id=user_id, error=str(e)).warning("Skipping malformed stored adjustment")
                continue
            if adjustment.is_active(now):
                active.append(adjustment)
        return active

    async def save_active_adjustment(self, user_id: str, adjustment: GuardrailAdjustment) -> None:
        """Append an adjustment, pruning expired ones from the stored list."""
        active = await self.get_active_adjustments(user_id)
        active.append(adjustment)
        await self.store.set(
            f"adjustments:{user_id}",
            [item.model_dump(mode="json") for item in active],
        )
        logger.bind(user_id=user_id, adjustment_type=adjustment.type, reduction=adjustment.reduction).debug(
            "Saved guardrail adjustment"
        )

    async def append_audit_record(self, user_id: str, record: dict[str, Any]) -> None:
        records = list(await self.store.get(f"audit:{user_id}", []) or [])
        records.append(record)
        await self.store.set(f"audit:{user_id}", records)

    async def get_audit_records(self, user_id: str) -> list[dict[str, Any]]:
        return list(await self.store.get(f"audit:{user_id}", []) or [])
