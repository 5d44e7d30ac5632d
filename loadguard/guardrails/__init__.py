"""Load guardrails - adjustment schemas and session rules.

The stateful monitor lives in ``loadguard.guardrails.monitor``.
"""

from loadguard.guardrails.errors import GuardrailError
from loadguard.guardrails.session_rules import (
    apply_adjustment,
    apply_hiit_reduction,
    count_consecutive_training_days,
    get_session_intensity,
    is_high_intensity_session,
    reduce_intensity_zone,
    session_violates_adjustment,
)
from loadguard.guardrails.types import GuardrailAction, GuardrailAdjustment, RampAnalysis, WeeklyLoadCalculator

__all__ = [
    "GuardrailAction",
    "GuardrailAdjustment",
    "GuardrailError",
    "RampAnalysis",
    "WeeklyLoadCalculator",
    "apply_adjustment",
    "apply_hiit_reduction",
    "count_consecutive_training_days",
    "get_session_intensity",
    "is_high_intensity_session",
    "reduce_intensity_zone",
    "session_violates_adjustment",
]
