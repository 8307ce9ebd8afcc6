"""Parse "15m" / "7d" style durations used for token TTLs and retention windows."""

from __future__ import annotations

import re
from datetime import timedelta

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")

_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
}


def parse_duration(value: str | int | float | timedelta) -> timedelta:
    """
    Convert a duration to timedelta.
    Accepts timedelta, a number of seconds, a digit string (seconds) or "<int><s|m|h|d>".
    Raises ValueError on anything else or on a non-positive duration.
    """
    if isinstance(value, timedelta):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    elif isinstance(value, (int, float)):
        result = timedelta(seconds=value)
    else:
        text = str(value).strip().lower()
        if text.isdigit():
            result = timedelta(seconds=int(text))
        else:
            match = _DURATION_RE.match(text)
            if not match:
                raise ValueError(f"Invalid time format: {value}")
            result = timedelta(seconds=int(match.group(1)) * _UNIT_SECONDS[match.group(2)])
    if result <= timedelta(0):
        raise ValueError(f"Duration must be positive: {value}")
    return result
