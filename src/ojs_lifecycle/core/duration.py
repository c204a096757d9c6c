"""ISO-8601 duration codec.

Durations in job envelopes (``initial_interval``, ``max_interval``, rate
windows, throttle periods) are ISO-8601 strings such as ``PT1S`` or
``P1DT2H``.  The engine works in integer milliseconds.

Calendar units are approximated: one year is 365 days and one month is
30 days.

Example:
    >>> parse_duration("PT1M30S")
    90000
    >>> format_duration(90000)
    '1m 30s'
    >>> to_iso_duration(300000)
    'PT5M'
"""

from __future__ import annotations

import math
import re

from ojs_lifecycle.core.errors import DurationParseError

_DURATION_RE = re.compile(
    r"P(?:(\d+)Y)?(?:(\d+)M)?(?:(\d+)W)?(?:(\d+)D)?"
    r"(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?\Z",
    re.ASCII,
)

_SECONDS_PER_DAY = 86400


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def parse_duration(iso: str) -> int:
    """Parse an ISO-8601 duration into milliseconds.

    Args:
        iso: Duration such as ``PT1S``, ``PT0.5S``, ``PT5M`` or ``P1D``.

    Returns:
        Whole milliseconds, rounded half-up.

    Raises:
        DurationParseError: If ``iso`` is not a supported duration string.
    """
    if not isinstance(iso, str):
        raise DurationParseError(repr(iso))
    match = _DURATION_RE.match(iso)
    if match is None:
        raise DurationParseError(iso)

    years, months, weeks, days, hours, minutes = (int(g or 0) for g in match.groups()[:6])
    seconds = float(match.group(7) or 0)

    total_seconds = (
        years * 365 * _SECONDS_PER_DAY
        + months * 30 * _SECONDS_PER_DAY
        + weeks * 7 * _SECONDS_PER_DAY
        + days * _SECONDS_PER_DAY
        + hours * 3600
        + minutes * 60
        + seconds
    )
    return _round_half_up(total_seconds * 1000)


def format_duration(ms: float) -> str:
    """Render milliseconds for humans: ``"250ms"``, ``"5m 30s"``, ``"1h 2m 3s"``."""
    if ms < 1000:
        return f"{_format_number(ms)}ms"

    total_seconds = _round_half_up(ms / 1000)
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60

    parts: list[str] = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if seconds > 0 or not parts:
        parts.append(f"{seconds}s")
    return " ".join(parts)


def to_iso_duration(ms: float) -> str:
    """Convert milliseconds to an ISO-8601 time duration (``1000`` -> ``"PT1S"``)."""
    total_seconds = ms / 1000
    if total_seconds < 60:
        return f"PT{_format_number(total_seconds)}S"

    hours = int(total_seconds // 3600)
    minutes = int((total_seconds % 3600) // 60)
    seconds = total_seconds % 60

    result = "PT"
    if hours > 0:
        result += f"{hours}H"
    if minutes > 0:
        result += f"{minutes}M"
    if seconds > 0:
        result += f"{_format_number(seconds)}S"
    return result


__all__ = ["parse_duration", "format_duration", "to_iso_duration"]
