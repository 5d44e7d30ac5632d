"""Guardrail schemas.

Adjustments are the persisted, time-bounded constraints that session
planning must respect. Lifecycle per adjustment:
none -> active (on creation) -> expired (end_date passed). Adjustments are
never retracted early; they are superseded or age out.
"""

from datetime import datetime
from typing import Literal, Protocol

from pydantic import BaseModel, Field

AdjustmentType = Literal[
    "reduce_hiit",
    "gradual_return",
    "immediate_downshift",
    "extend_recovery",
    "deload_week",
]

RampSeverity = Literal["low", "moderate", "high"]


class GuardrailAction(BaseModel):
    """Action decided by a guardrail check, before it is applied.

    Attributes:
        type: Adjustment type the action maps to
        reduction: Fractional reduction (0-1), 0 for scheduling-only actions
        duration: Days the action lasts
        message: Plain-language description for display
        pain_location: Body location for pain-driven actions
    """

    type: AdjustmentType
    reduction: float = Field(default=0.0, ge=0.0, le=1.0)
    duration: int = 0
    message: str = ""
    pain_location: str | None = None


class GuardrailAdjustment(BaseModel):
    """Persisted training adjustment.

    Attributes:
        type: Adjustment type
        reduction: Fractional reduction (0-1)
        duration: Duration in days
        start_date: When the adjustment took effect (UTC)
        end_date: When it expires (UTC); None means open-ended
        pain_location: Body location for pain-driven downshifts
        source: Trigger that created the adjustment
    """

    type: AdjustmentType
    reduction: float = Field(default=0.0, ge=0.0, le=1.0)
    duration: int = 0
    start_date: datetime
    end_date: datetime | None = None
    pain_location: str | None = None
    source: str | None = None

    def is_active(self, now: datetime) -> bool:
        return self.end_date is None or now < self.end_date


class RampAnalysis(BaseModel):
    """Week-over-week load comparison.

    Attributes:
        ramp_rate: Fractional change from previous to current week
        exceeds_threshold: Ramp strictly above the tier limit
        severity: low / moderate / high at >1.0x, >1.2x, >1.5x the limit
        consecutive_increases: Leading week pairs that also exceeded the limit
        recommended_reduction: HIIT reduction to apply (capped at 0.5)
        message: Plain-language summary
    """

    ramp_rate: float
    exceeds_threshold: bool
    severity: RampSeverity
    consecutive_increases: int
    recommended_reduction: float
    message: str


class WeeklyLoadCalculator(Protocol):
    """Subset of LoadCalculator the guardrail monitor depends on."""

    def calculate_weekly_load(self, sessions: list[dict]) -> dict: ...
