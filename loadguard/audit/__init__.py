"""Guardrail audit trail."""

from loadguard.audit.audit_log import GUARDRAIL_TRIGGERED, MISSED_DAYS_ADJUSTMENT, PAIN_FLAG_RESPONSE, AuditLog

__all__ = ["GUARDRAIL_TRIGGERED", "MISSED_DAYS_ADJUSTMENT", "PAIN_FLAG_RESPONSE", "AuditLog"]
