"""Training load metrics.

Pure single-session scoring lives in ``load_engine``; multi-session
aggregates and store-backed views live in ``load_calculator``.
"""

from loadguard.metrics.errors import (
    AggregationError,
    InsufficientDataError,
    InvalidInputError,
    LoadComputationError,
)
from loadguard.metrics.load_calculator import LoadCalculator
from loadguard.metrics.load_engine import LoadResult, compute_load, normalize_zone, validate_session

__all__ = [
    "AggregationError",
    "InsufficientDataError",
    "InvalidInputError",
    "LoadCalculator",
    "LoadComputationError",
    "LoadResult",
    "compute_load",
    "normalize_zone",
    "validate_session",
]
