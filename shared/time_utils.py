"""
Time arithmetic shared by slot generation and the booking guard.

All time-of-day math is done in minutes since midnight so that no calendar or
timezone conversion is involved. Dates only become timestamps at noon local
time, which keeps DST transitions from shifting the calendar day.
"""

import math
import unicodedata
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

MINUTES_PER_DAY = 24 * 60

# Monday-first, matching date.weekday()
DAY_NAMES_EN = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
DAY_NAMES_ES = ["Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado", "Domingo"]


def _fold(name: str) -> str:
    """Lowercase and strip accents ("Miércoles" -> "miercoles")."""
    decomposed = unicodedata.normalize("NFKD", name.strip().lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


_DAY_INDEX: dict[str, int] = {}
for _idx, (_en, _es) in enumerate(zip(DAY_NAMES_EN, DAY_NAMES_ES)):
    _DAY_INDEX[_fold(_en)] = _idx
    _DAY_INDEX[_fold(_es)] = _idx


def day_index(name: str) -> int | None:
    """
    Map a weekday name to its index (0=Monday ... 6=Sunday).

    Accepts English or Spanish names, any casing, with or without accents.
    Returns None for unknown names.

    Example:
        >>> day_index("Monday"), day_index("lunes"), day_index("Miercoles")
        (0, 0, 2)
    """
    if not isinstance(name, str):
        return None
    return _DAY_INDEX.get(_fold(name))


def parse_hhmm(value: str | time) -> int:
    """
    Parse an ``HH:MM`` (or ``HH:MM:SS``) string into minutes since midnight.

    Every field must be exactly two digits; seconds are range-checked and dropped.

    Raises:
        ValueError: If the value is not a valid 24-hour time of day
    """
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    if not isinstance(value, str):
        raise ValueError(f"Expected HH:MM string, got {type(value).__name__}")

    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(len(p) == 2 and p.isdigit() for p in parts):
        raise ValueError(f"Invalid time of day: {value!r}")

    hour, minute = int(parts[0]), int(parts[1])
    second = int(parts[2]) if len(parts) == 3 else 0
    if not (0 <= hour <= 23 and 0 <= minute <= 59 and 0 <= second <= 59):
        raise ValueError(f"Time of day out of range: {value!r}")

    return hour * 60 + minute


def format_minutes(minutes: int) -> str:
    """Render minutes since midnight as ``HH:MM``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def minutes_to_time(minutes: int) -> time:
    return time(hour=minutes // 60, minute=minutes % 60)


def normalize_hhmm(value: str | time) -> str:
    """Canonical ``HH:MM`` form ("09:00:00" becomes "09:00")."""
    return format_minutes(parse_hhmm(value))


def parse_date(value: str | date) -> date:
    """
    Parse a ``YYYY-MM-DD`` calendar date.

    Raises:
        ValueError: If the string is not an ISO calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip())


def local_noon(target_date: date, tz: ZoneInfo) -> datetime:
    """Full timestamp for a calendar day, anchored at 12:00 local time."""
    return datetime.combine(target_date, time(12, 0), tzinfo=tz)


def ceil_to_step(minutes: int, step: int) -> int:
    """Round minutes up to the next multiple of ``step``."""
    return math.ceil(minutes / step) * step


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open interval overlap; touching intervals do not overlap."""
    return start_a < end_b and end_a > start_b
