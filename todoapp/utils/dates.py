"""Due-date parsing in the app's configured timezone."""

from __future__ import annotations

from datetime import UTC, datetime
from zoneinfo import ZoneInfo


def parse_due_date(value: str, tz_name: str) -> datetime:
    """Parse an ISO-8601 due date into an aware UTC datetime.

    Naive values (``2026-03-01T09:00``) are local times in ``tz_name``.
    Raises ValueError for anything ``datetime.fromisoformat`` rejects.
    """
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=ZoneInfo(tz_name))
    return parsed.astimezone(UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)
