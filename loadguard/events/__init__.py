"""Event bus and topic names."""

from loadguard.events.bus import (
    GUARDRAIL_APPLIED,
    PAIN_REPORTED,
    SESSION_COMPLETED,
    SESSION_PLANNED,
    SESSION_REJECTED,
    EventBus,
)

__all__ = [
    "GUARDRAIL_APPLIED",
    "PAIN_REPORTED",
    "SESSION_COMPLETED",
    "SESSION_PLANNED",
    "SESSION_REJECTED",
    "EventBus",
]
