"""loadguard - training load scoring and safety guardrails.

This package provides:
- A single-session load cascade (TRIMP, zone, RPE x duration, MET-minutes)
- Weekly, recovery and overtraining aggregates with bounded recommendations
- A guardrail monitor that persists time-bounded load adjustments

Build an engine with ``build_engine(build_context())``.
"""

from loadguard.config.settings import Settings
from loadguard.context import EngineContext, build_context, build_engine
from loadguard.guardrails.monitor import LoadGuardrails
from loadguard.metrics.load_calculator import LoadCalculator
from loadguard.metrics.load_engine import LoadResult, compute_load, validate_session

__all__ = [
    "EngineContext",
    "LoadCalculator",
    "LoadGuardrails",
    "LoadResult",
    "Settings",
    "build_context",
    "build_engine",
    "compute_load",
    "validate_session",
]
