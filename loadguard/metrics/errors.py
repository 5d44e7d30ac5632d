"""Error types for load computation.

Pure computation failures surface to the caller immediately. Aggregate
failures are absorbed by the calculator and reported as ``{"error": ...}``.
"""


class LoadComputationError(ValueError):
    """Base class for failures of the single-session load cascade."""


class InvalidInputError(LoadComputationError):
    """Raised when a session is malformed or carries an invalid duration."""


class InsufficientDataError(LoadComputationError):
    """Raised when no method of the load cascade can be satisfied."""


class AggregationError(RuntimeError):
    """Raised inside LoadCalculator aggregates.

    Never escapes a public aggregate method: it is caught, logged and turned
    into an ``{"error": message}`` payload.
    """
