from __future__ import annotations

from datetime import date, datetime

from ..core.exceptions import ValidationError


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def event_day(start: str) -> date:
    """Calendar day of an event start.

    Accepts plain dates as well as ISO datetimes ("2026-10-20T19:30:00Z").
    """
    if not start:
        raise ValidationError("start is required")
    try:
        return parse_iso_date(str(start)[:10])
    except ValueError:
        raise ValidationError(f"Invalid start date: {start!r}")


def can_change_attendance(start: str, today: date) -> bool:
    # Same-day events are already closed.
    return event_day(start) > today


def today_local() -> date:
    """Current local date.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now().date()
