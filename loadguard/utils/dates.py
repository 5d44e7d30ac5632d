"""Date helpers for JSON session and activity records."""

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

SESSION_DATE_FIELDS = ("date", "start_at", "created_at", "planned_date")


def parse_date(value: Any) -> date | None:
    """Parse an ISO date/datetime string (or date object) into a date.

    Returns:
        Calendar date, or None when the value is missing or unparseable
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def session_date(session: Mapping[str, Any]) -> date | None:
    """Return the calendar date of a session from its first populated date field."""
    for field in SESSION_DATE_FIELDS:
        parsed = parse_date(session.get(field))
        if parsed is not None:
            return parsed
    return None
