"""Wall-clock time string normalization."""

import re

_TIME = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def to_canonical(value: str | None) -> str:
    """Normalize "H:MM", "HH:MM" or "H:MM:SS" to "HH:MM:SS".

    Hours past 24 are kept as-is. Empty input gives "", and anything that
    does not look like a time is returned unchanged.
    """
    if not value or not value.strip():
        return ""
    match = _TIME.match(value.strip())
    if not match:
        return value
    hours, minutes, seconds = match.groups()
    return f"{hours.zfill(2)}:{minutes}:{(seconds or '00').zfill(2)}"


def is_blank_visit(arrival_time: str | None, departure_time: str | None) -> bool:
    """True when both times normalize to empty."""
    return not to_canonical(arrival_time) and not to_canonical(departure_time)
