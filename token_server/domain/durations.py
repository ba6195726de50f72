"""Parsing of human-friendly durations such as ``"5m"`` or ``"1.5 hours"``.

A bare number is taken as milliseconds. Recognised units, case-insensitive and
optionally separated from the number by spaces:

    ms, msec(s), millisecond(s)    s, sec(s), second(s)    m, min(s), minute(s)
    h, hr(s), hour(s)              d, day(s)               w, week(s)
    y, yr(s), year(s)  (a year is 365.25 days)
"""

import re

_SECOND = 1000
_MINUTE = _SECOND * 60
_HOUR = _MINUTE * 60
_DAY = _HOUR * 24
_WEEK = _DAY * 7
_YEAR = _DAY * 365.25

_UNIT_MILLIS = {
    "years": _YEAR,
    "year": _YEAR,
    "yrs": _YEAR,
    "yr": _YEAR,
    "y": _YEAR,
    "weeks": _WEEK,
    "week": _WEEK,
    "w": _WEEK,
    "days": _DAY,
    "day": _DAY,
    "d": _DAY,
    "hours": _HOUR,
    "hour": _HOUR,
    "hrs": _HOUR,
    "hr": _HOUR,
    "h": _HOUR,
    "minutes": _MINUTE,
    "minute": _MINUTE,
    "mins": _MINUTE,
    "min": _MINUTE,
    "m": _MINUTE,
    "seconds": _SECOND,
    "second": _SECOND,
    "secs": _SECOND,
    "sec": _SECOND,
    "s": _SECOND,
    "milliseconds": 1,
    "millisecond": 1,
    "msecs": 1,
    "msec": 1,
    "ms": 1,
}

_DURATION_PATTERN = re.compile(
    r"^(?P<amount>-?\d*\.?\d+) *(?P<unit>[a-z]+)?$", re.IGNORECASE
)


def parse_duration_millis(value: str) -> float:
    """Return the number of milliseconds described by ``value``.

    Raises ``ValueError`` when the text is not a number optionally followed by
    one of the known units.
    """
    match = _DURATION_PATTERN.match(value.strip())
    if match is None:
        raise ValueError(f"unable to parse duration: {value!r}")
    amount = float(match.group("amount"))
    unit = (match.group("unit") or "ms").lower()
    try:
        factor = _UNIT_MILLIS[unit]
    except KeyError:
        raise ValueError(f"unknown duration unit {unit!r} in {value!r}") from None
    return amount * factor


def parse_google_duration_millis(value: str) -> int:
    """Convert a protobuf JSON duration such as ``"3600s"`` or ``"1.5s"``."""
    if not value.endswith("s"):
        raise ValueError(f"duration must end with 's': {value!r}")
    try:
        seconds = float(value[:-1])
    except ValueError:
        raise ValueError(f"invalid duration: {value!r}") from None
    return round(seconds * 1000)


def format_google_duration(millis: int) -> str:
    """Render milliseconds as a protobuf JSON duration string."""
    seconds, remainder = divmod(millis, 1000)
    if remainder:
        return f"{seconds}.{remainder:03d}s"
    return f"{seconds}s"
