"""
Cron expression parsing and next-run calculation.

Standard five-field cron (``minute hour day-of-month month day-of-week``)
plus the usual ``@`` aliases.  Each field accepts ``*``, comma lists,
``start-end`` ranges and ``/step`` suffixes, in any combination
(``9-17/2``, ``*/15``, ``1,15,30``).  Months and weekdays also accept
three-letter English names; Sunday is ``0``.

Parsing never raises.  An invalid expression comes back as
``CronParseResult(valid=False, error=...)`` so a UI can show the message
inline while the user types.

Architecture:
    ::

        parse_cron("*/15 9-17 * * MON-FRI")
          │
          ├── alias?  "@daily" ─► "0 0 * * *"
          ├── split on whitespace, require 5 fields
          ├── expand each field ─► sorted, de-duplicated ints
          └── describe ─► "at minute */15, at hour 9-17, on day-of-week MON-FRI"

        get_next_runs(expr, count, from_)
          └── walk forward from from_ + 1 minute, skipping whole days and
              hours that cannot match, until count runs or one year

Examples:
    >>> parse_cron("*/15 * * * *").fields[0]
    (0, 15, 30, 45)
    >>> parse_cron("0 0 *").error
    'Expected 5 fields, got 3'

Tags:
    cron, scheduling, calendar, ojs-lifecycle

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from ojs_lifecycle.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CronField:
    label: str
    min: int
    max: int
    names: tuple[str, ...] = ()


CRON_FIELDS: tuple[CronField, ...] = (
    CronField("Minute", 0, 59),
    CronField("Hour", 0, 23),
    CronField("Day of Month", 1, 31),
    CronField(
        "Month", 1, 12,
        ("JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"),
    ),
    CronField("Day of Week", 0, 6, ("SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT")),
)

CRON_ALIASES: dict[str, str] = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

# One year of minutes; bounds the forward scan for expressions that rarely or never fire
MAX_SCAN_MINUTES = 366 * 24 * 60

_STEP_RE = re.compile(r"(.+)/(\d+)\Z", re.ASCII)
_INT_RE = re.compile(r"\d+\Z", re.ASCII)
_DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


class _FieldError(ValueError):
    pass


@dataclass(frozen=True)
class CronParseResult:
    """Outcome of :func:`parse_cron`.

    ``fields`` holds the expanded minute, hour, day-of-month, month and
    day-of-week sets, in that order, when ``valid`` is true.
    """

    valid: bool
    error: str | None = None
    fields: tuple[tuple[int, ...], ...] | None = None
    description: str | None = None
    expression: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"valid": self.valid}
        if self.error is not None:
            result["error"] = self.error
        if self.fields is not None:
            result["fields"] = [list(f) for f in self.fields]
        if self.description is not None:
            result["description"] = self.description
        return result


@dataclass(frozen=True)
class CronPreset:
    label: str
    expression: str
    description: str


CRON_PRESETS: tuple[CronPreset, ...] = (
    CronPreset("Every minute", "* * * * *", "Run every minute"),
    CronPreset("Every 5 minutes", "*/5 * * * *", "Run every 5 minutes"),
    CronPreset("Every 15 minutes", "*/15 * * * *", "Run every 15 minutes"),
    CronPreset("Every hour", "0 * * * *", "Run at the start of every hour"),
    CronPreset("Every 6 hours", "0 */6 * * *", "Run every 6 hours"),
    CronPreset("Daily at midnight", "0 0 * * *", "Run once a day at midnight"),
    CronPreset("Daily at 9am", "0 9 * * *", "Run once a day at 9:00 AM"),
    CronPreset("Weekdays at 9am", "0 9 * * 1-5", "Run Mon-Fri at 9:00 AM"),
    CronPreset("Weekly (Sunday)", "0 0 * * 0", "Run every Sunday at midnight"),
    CronPreset("Monthly", "0 0 1 * *", "Run on the 1st of every month at midnight"),
)


def _substitute_names(text: str, spec: CronField) -> str:
    text = text.upper()
    for offset, name in enumerate(spec.names):
        text = text.replace(name, str(spec.min + offset))
    return text


def _expand_part(part: str, spec: CronField) -> range:
    step = 1
    match = _STEP_RE.match(part)
    if match is not None:
        part = match.group(1)
        step = int(match.group(2))
        if step < 1:
            raise _FieldError(f"Invalid step value: {step}")
    elif "/" in part:
        raise _FieldError(f"Invalid step value: {part.split('/', 1)[1]}")

    if part == "*":
        return range(spec.min, spec.max + 1, step)

    if "-" in part:
        start_text, _, end_text = part.partition("-")
        if not (_INT_RE.match(start_text) and _INT_RE.match(end_text)):
            raise _FieldError(f"Invalid range: {part}")
        start, end = int(start_text), int(end_text)
        if start < spec.min or end > spec.max or start > end:
            raise _FieldError(f"Range out of bounds: {part}")
        return range(start, end + 1, step)

    if not _INT_RE.match(part) or not spec.min <= int(part) <= spec.max:
        raise _FieldError(f"Value out of bounds: {part} ({spec.min}-{spec.max})")
    value = int(part)
    # "5/15" means every 15 starting at 5
    if match is not None:
        return range(value, spec.max + 1, step)
    return range(value, value + 1)


def expand_field(text: str, spec: CronField) -> tuple[int, ...]:
    """Expand one cron field to its sorted set of values.

    Raises:
        ValueError: With a human-readable message when the field is invalid.
    """
    text = _substitute_names(text, spec)
    values: set[int] = set()
    for part in text.split(","):
        if not part:
            raise _FieldError(f"Empty list item in: {text}")
        values.update(_expand_part(part, spec))
    return tuple(sorted(values))


def describe_cron(parts: list[str]) -> str:
    """Short English description of five raw cron fields."""
    minute, hour, dom, month, dow = parts

    if (minute, hour, dom, month, dow) == ("0", "0", "1", "1", "*"):
        return "Once a year (January 1st at midnight)"
    if (minute, hour, dom, month, dow) == ("0", "0", "1", "*", "*"):
        return "Once a month (1st at midnight)"
    if (minute, hour, dom, month, dow) == ("0", "0", "*", "*", "0"):
        return "Once a week (Sunday at midnight)"
    if (minute, hour, dom, month, dow) == ("0", "0", "*", "*", "*"):
        return "Once a day at midnight"
    if (minute, hour, dom, month, dow) == ("0", "*", "*", "*", "*"):
        return "Once an hour at minute 0"

    segments: list[str] = []
    if minute != "*":
        segments.append(f"at minute {minute}")
    if hour != "*":
        segments.append(f"at hour {hour}")
    if dom != "*":
        segments.append(f"on day {dom} of month")
    if month != "*":
        segments.append(f"in month {month}")
    if dow != "*":
        if _INT_RE.match(dow) and int(dow) <= 6:
            segments.append(f"on {_DAY_NAMES[int(dow)]}")
        else:
            segments.append(f"on day-of-week {dow}")

    return ", ".join(segments) if segments else "Every minute"


def parse_cron(expression: str) -> CronParseResult:
    """Parse and validate a cron expression or alias.  Never raises."""
    trimmed = expression.strip()

    if trimmed.startswith("@"):
        resolved = CRON_ALIASES.get(trimmed.lower())
        if resolved is None:
            return CronParseResult(valid=False, error=f"Unknown alias: {trimmed}")
        return parse_cron(resolved)

    parts = trimmed.split()
    if len(parts) != 5:
        return CronParseResult(valid=False, error=f"Expected 5 fields, got {len(parts)}")

    fields: list[tuple[int, ...]] = []
    for text, spec in zip(parts, CRON_FIELDS):
        try:
            fields.append(expand_field(text, spec))
        except _FieldError as exc:
            logger.debug("cron_parse_failed", expression=expression, field=spec.label, reason=str(exc))
            return CronParseResult(valid=False, error=f"{spec.label}: {exc}")

    return CronParseResult(
        valid=True,
        fields=tuple(fields),
        description=describe_cron(parts),
        expression=" ".join(parts),
    )


def _cron_weekday(moment: datetime) -> int:
    return moment.isoweekday() % 7


def get_next_runs(expression: str, count: int, from_: datetime | None = None) -> list[datetime] | None:
    """Compute up to ``count`` fire times strictly after ``from_``.

    Matching uses the wall-clock fields of ``from_`` (current UTC time when
    omitted).  The scan stops after one year of minutes, so a valid
    expression that never fires (``0 0 31 2 *``) yields an empty list.

    Returns:
        Ordered fire times, or ``None`` if the expression is invalid.
    """
    parsed = parse_cron(expression)
    if not parsed.valid or parsed.fields is None:
        return None

    minutes, hours, doms, months, dows = (frozenset(f) for f in parsed.fields)
    start = from_ if from_ is not None else datetime.now(timezone.utc)
    current = start.replace(second=0, microsecond=0) + timedelta(minutes=1)
    deadline = current + timedelta(minutes=MAX_SCAN_MINUTES)

    runs: list[datetime] = []
    while len(runs) < count and current < deadline:
        if current.month not in months or current.day not in doms or _cron_weekday(current) not in dows:
            current = current.replace(hour=0, minute=0) + timedelta(days=1)
            continue
        if current.hour not in hours:
            current = current.replace(minute=0) + timedelta(hours=1)
            continue
        if current.minute in minutes:
            runs.append(current)
        current += timedelta(minutes=1)

    return runs


__all__ = [
    "CronField",
    "CRON_FIELDS",
    "CRON_ALIASES",
    "CRON_PRESETS",
    "CronPreset",
    "CronParseResult",
    "MAX_SCAN_MINUTES",
    "expand_field",
    "describe_cron",
    "parse_cron",
    "get_next_runs",
]
