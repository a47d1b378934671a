"""Timestamp helpers.

All persisted timestamps are timezone-aware ISO-8601 strings in UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Current time as an ISO-8601 string."""
    return utc_now().isoformat()


def parse_iso(value: str | datetime | None) -> datetime | None:
    """Parse an ISO-8601 string into an aware datetime.

    Naive values are assumed to be UTC. A trailing ``Z`` is accepted.
    Returns None for empty or unparseable input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
