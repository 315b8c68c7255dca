"""Clock-time helpers shared by the conflict checker and availability filter."""
from __future__ import annotations

import re
from datetime import date

MINUTES_PER_DAY = 24 * 60
LAST_MINUTE_OF_DAY = MINUTES_PER_DAY - 1

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_CLOCK_24H = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")
_CLOCK_12H = re.compile(r"^(1[0-2]|0?[1-9]):([0-5]\d)\s*([ap]m)$", re.IGNORECASE)


def to_minutes(clock_time: str) -> int:
    """Convert ``H:MM`` or ``H:MM AM/PM`` into minutes since midnight.

    Parsing is deliberately loose: missing or non-numeric components count as
    zero, so ``"garbage"`` becomes ``0``. Use :func:`parse_clock_time` where
    malformed input must be rejected.
    """

    text = str(clock_time or "").strip().lower()
    is_pm = "pm" in text
    is_am = "am" in text
    text = text.replace("am", "").replace("pm", "").strip()

    pieces = text.split(":")
    hours = _loose_int(pieces[0])
    minutes = _loose_int(pieces[1]) if len(pieces) > 1 else 0

    if is_pm and hours < 12:
        hours += 12
    elif is_am and hours == 12:
        hours = 0
    return hours * 60 + minutes


def _loose_int(value: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return 0


def parse_clock_time(clock_time: str) -> int:
    """Strictly parse a clock time, raising ``ValueError`` on malformed input."""

    if not isinstance(clock_time, str):
        raise ValueError(f"Clock time must be a string, got {type(clock_time).__name__}")
    text = clock_time.strip()

    match = _CLOCK_24H.match(text)
    if match:
        return int(match.group(1)) * 60 + int(match.group(2))

    match = _CLOCK_12H.match(text)
    if match:
        hours = int(match.group(1)) % 12
        if match.group(3).lower() == "pm":
            hours += 12
        return hours * 60 + int(match.group(2))

    raise ValueError(f"Invalid clock time {clock_time!r}; expected HH:MM or H:MM AM/PM")


def minutes_to_clock(minutes: int) -> str:
    hours, mins = divmod(int(minutes), 60)
    return f"{hours:02d}:{mins:02d}"


def clamp_to_day(minutes: int) -> int:
    return max(0, min(LAST_MINUTE_OF_DAY, minutes))


def overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open interval overlap of ``[start_a, end_a)`` and ``[start_b, end_b)``."""

    return start_a < end_b and start_b < end_a


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()]


__all__ = [
    "LAST_MINUTE_OF_DAY",
    "MINUTES_PER_DAY",
    "WEEKDAY_NAMES",
    "clamp_to_day",
    "minutes_to_clock",
    "overlap",
    "parse_clock_time",
    "to_minutes",
    "weekday_name",
]
