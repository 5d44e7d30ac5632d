"""Guardrail error types."""


class GuardrailError(RuntimeError):
    """Raised when a guardrail check or effector fails unexpectedly.

    Public checks catch it and return a safe default: ``status: error`` for
    ramp checks, ``valid: True`` (fail open) for session validation.
    """
