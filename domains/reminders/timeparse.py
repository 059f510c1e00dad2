"""Turn free-text "when" expressions into fire times.

Examples:
- "4 hours", "in 30 minutes", "1 day 2 hours", "an hour"
- "tomorrow", "tomorrow 9am", "today 5:30pm"
- "12/31/2030 8:30pm", "2030-01-15 09:00"
"""

import re
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from dateutil import parser as dateutil_parser

from .errors import TimeParseError

# Seconds per unit; keys are matched by prefix-free regex alternation below
_UNIT_SECONDS = {
    "s": 1, "sec": 1, "secs": 1, "second": 1, "seconds": 1,
    "m": 60, "min": 60, "mins": 60, "minute": 60, "minutes": 60,
    "h": 3600, "hr": 3600, "hrs": 3600, "hour": 3600, "hours": 3600,
    "d": 86400, "day": 86400, "days": 86400,
    "w": 604800, "wk": 604800, "wks": 604800, "week": 604800, "weeks": 604800,
}

# "a"/"an"/"one" must be whole words so "and" is not read as "an" + "d"
_NUMBER = r"(\d+(?:\.\d+)?|\ban?(?=\s)|\bone(?=\s))"
_UNIT = "|".join(sorted(_UNIT_SECONDS, key=len, reverse=True))
_DURATION_PART = re.compile(rf"{_NUMBER}\s*({_UNIT})(?![a-z])")
_DURATION_FULL = re.compile(
    rf"^(?:in\s+)?(?:{_NUMBER}\s*(?:{_UNIT})(?![a-z])(?:\s*,?\s*(?:and\s+)?)?)+(?:\s+from\s+now)?$"
)
_DAY_WORD = re.compile(r"^(today|tomorrow)\b\s*(?:at\s+)?(.*)$", re.IGNORECASE)


def _amount(token: str) -> float:
    token = token.strip()
    if token in ("a", "an", "one"):
        return 1.0
    return float(token)


def parse_duration(text: str) -> Optional[timedelta]:
    """Parse a relative duration such as "4 hours" or "1h 30m".

    Returns:
        The duration, or None if the text is not a pure duration
    """
    text = text.lower().strip()
    if not _DURATION_FULL.match(text):
        return None

    total = 0.0
    for number, unit in _DURATION_PART.findall(text):
        total += _amount(number) * _UNIT_SECONDS[unit]

    if total <= 0:
        return None
    return timedelta(seconds=total)


def _parse_absolute(text: str, now: datetime, tz: tzinfo) -> datetime:
    """Parse an absolute date/time, assuming ``tz`` when none is given."""
    local_now = now.astimezone(tz)
    default = local_now.replace(hour=0, minute=0, second=0, microsecond=0)

    day_match = _DAY_WORD.match(text)
    if day_match:
        day, rest = day_match.groups()
        day = day.lower()
        if day == "tomorrow":
            default += timedelta(days=1)
        if not rest.strip():
            # "tomorrow" alone keeps the current time of day
            return (local_now + timedelta(days=1 if day == "tomorrow" else 0))
        text = rest

    try:
        parsed = dateutil_parser.parse(text, default=default.replace(tzinfo=None))
    except (ValueError, OverflowError) as e:
        raise TimeParseError(f"Could not understand the time \"{text}\"") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def parse_when(text: str, now: Optional[datetime] = None, tz: str = "UTC") -> datetime:
    """Resolve a "when" expression to a concrete future time.

    Args:
        text: What the user typed, e.g. "4 hours" or "12/31/2030 8:30pm"
        now: Current time (defaults to now in UTC)
        tz: Zone assumed for absolute times without an offset

    Returns:
        Timezone-aware fire time in UTC

    Raises:
        TimeParseError: If the text is empty, unparseable, in the past or
            too far in the future
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    cleaned = (text or "").strip()
    if not cleaned:
        raise TimeParseError("No time was given")

    try:
        duration = parse_duration(cleaned)
        if duration is not None:
            return (now + duration).astimezone(timezone.utc)
    except (OverflowError, ValueError) as e:
        raise TimeParseError(f"\"{cleaned}\" is too far in the future") from e

    fire_at = _parse_absolute(cleaned, now, ZoneInfo(tz))
    if fire_at <= now:
        raise TimeParseError(f"\"{text.strip()}\" is in the past")
    return fire_at.astimezone(timezone.utc)
