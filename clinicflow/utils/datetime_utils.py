"""
Common date/time utility functions for consistent date/time handling across the application

Storage: timestamps are stored in UTC; schedule windows and appointment
times are clinic-local wall-clock times (``datetime.time``) paired with a
calendar date.

Day-of-week convention: 0 = Sunday ... 6 = Saturday, the numbering used by
the scheduling screens. Python's ``date.weekday()`` is Monday-based, so
always go through ``clinic_day_of_week``.
"""

from datetime import date, datetime, time, timedelta, timezone


def utc_now() -> datetime:
    """
    Get current UTC datetime.

    Returns:
        Current datetime in UTC timezone
    """
    return datetime.now(timezone.utc)


def clinic_day_of_week(value: date) -> int:
    """Sunday-based day of week (0 = Sunday, 6 = Saturday)."""
    return (value.weekday() + 1) % 7


def parse_clock_time(value: str | time) -> time:
    """
    Parse "HH:MM" or "HH:MM:SS" into a ``time`` with seconds dropped.

    Raises:
        ValueError: if the string is not a valid 24h clock time
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)

    raw = (value or "").strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(raw, fmt).time().replace(second=0)
        except ValueError:
            continue
    raise ValueError(f"Invalid time '{value}'. Expected HH:MM.")


def format_clock_time(value: time) -> str:
    return value.strftime("%H:%M")


def iter_clock_steps(start: time, end: time, step_minutes: int, limit: int) -> list[time]:
    """
    Clock times from ``start`` (inclusive) to ``end`` (exclusive) in
    ``step_minutes`` increments, at most ``limit`` entries.

    Args:
        start: first time emitted
        end: upper bound, never emitted
        step_minutes: increment between entries
        limit: maximum number of entries

    Returns:
        List of ``time`` objects in ascending order
    """
    anchor = date(2000, 1, 1)
    current = datetime.combine(anchor, start)
    stop = datetime.combine(anchor, end)
    step = timedelta(minutes=step_minutes)

    times: list[time] = []
    while current < stop and len(times) < limit:
        times.append(current.time())
        current += step
    return times


def days_until(target: date, today: date | None = None) -> int:
    """Whole days from today (UTC) until target; negative when already past."""
    today = today or utc_now().date()
    return (target - today).days
