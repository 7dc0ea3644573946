from __future__ import annotations

from typing import Optional

MINUTES_PER_DAY = 24 * 60
LAST_MINUTE = MINUTES_PER_DAY - 1


def to_minutes(label: str) -> int:
    """Convert an ``HH:MM`` wall-clock label into minutes since midnight.

    A trailing ``:SS`` component is accepted and ignored. Raises ``ValueError``
    for anything that is not a valid time of day.
    """
    if not isinstance(label, str):
        raise ValueError(f"time label must be a string, got {type(label).__name__}")
    parts = label.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"invalid time label {label!r}; expected HH:MM")
    hour_str, minute_str = parts[0], parts[1]
    if not (hour_str.isdigit() and minute_str.isdigit()) or len(minute_str) != 2:
        raise ValueError(f"invalid time label {label!r}; expected HH:MM")
    hours = int(hour_str)
    minutes = int(minute_str)
    if hours > 23 or minutes > 59:
        raise ValueError(f"time label {label!r} is outside 00:00-23:59")
    return hours * 60 + minutes


def parse_minutes(label: Optional[str]) -> Optional[int]:
    if label is None:
        return None
    try:
        return to_minutes(label)
    except ValueError:
        return None


def to_time_string(minutes: int) -> str:
    value = min(max(int(minutes), 0), LAST_MINUTE)
    hours = value // 60
    mins = value % 60
    return f"{hours:02d}:{mins:02d}"


def to_display_label(label: str) -> str:
    """Render ``HH:MM`` on a 12-hour clock, e.g. ``13:00`` -> ``1 PM``."""
    total = to_minutes(label)
    hours, minutes = divmod(total, 60)
    suffix = "AM" if hours < 12 else "PM"
    display_hour = hours % 12 or 12
    if minutes == 0:
        return f"{display_hour} {suffix}"
    return f"{display_hour}:{minutes:02d} {suffix}"


def format_span(start: int, end: int) -> str:
    return f"{to_time_string(start)}-{to_time_string(end)}"
