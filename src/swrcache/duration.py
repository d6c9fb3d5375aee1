"""Duration parsing utilities."""

import re
from datetime import timedelta

from swrcache.types import Duration

_DURATION_PATTERN = re.compile(r"^(\d+)(ms|s|m|h)$")
_UNITS: dict[str, int] = {
    "ms": 1,
    "s": 1000,
    "m": 60_000,
    "h": 3_600_000,
}


def parse_duration(duration: Duration) -> int:
    """Parse a duration to milliseconds.

    Accepts "300ms", "1s", "5m", "2h", a non-negative int of milliseconds,
    or a timedelta.
    """
    if isinstance(duration, timedelta):
        ms = int(duration.total_seconds() * 1000)
    elif isinstance(duration, bool):
        raise ValueError(f"Invalid duration: {duration!r}")
    elif isinstance(duration, int):
        ms = duration
    else:
        match = _DURATION_PATTERN.match(duration)
        if not match:
            raise ValueError(f"Invalid duration: {duration!r}")
        value, unit = match.groups()
        ms = int(value) * _UNITS[unit]

    if ms < 0:
        raise ValueError(f"Duration must not be negative: {duration!r}")
    return ms


def to_seconds(ms: int) -> float:
    """Convert milliseconds to the float seconds asyncio expects."""
    return ms / 1000
