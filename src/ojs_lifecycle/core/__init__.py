"""Leaf building blocks of the lifecycle engine.

Nothing in ``ojs_lifecycle.core`` knows about jobs or simulations: these
are the codecs, calendars, generators and plumbing the execution layer
is assembled from.

MODULE MAP
──────────
  duration.py  ─ ISO-8601 duration <-> milliseconds
  prng.py      ─ mulberry32 seeded generator
  cron.py      ─ cron parsing and next-run calculation
  payload.py   ─ envelope size limits
  hashing.py   ─ content hashes for idempotency
  errors.py    ─ exception hierarchy and OJSError values
  logging.py   ─ structlog configuration
  settings.py  ─ pydantic-settings for the CLI
"""

from ojs_lifecycle.core.cron import CronParseResult, get_next_runs, parse_cron
from ojs_lifecycle.core.duration import format_duration, parse_duration, to_iso_duration
from ojs_lifecycle.core.errors import (
    DurationParseError,
    InvalidTransitionError,
    JobLoadError,
    OJSError,
    OJSLifecycleError,
)
from ojs_lifecycle.core.payload import check_payload_size
from ojs_lifecycle.core.prng import Mulberry32

__all__ = [
    "CronParseResult",
    "get_next_runs",
    "parse_cron",
    "format_duration",
    "parse_duration",
    "to_iso_duration",
    "DurationParseError",
    "InvalidTransitionError",
    "JobLoadError",
    "OJSError",
    "OJSLifecycleError",
    "check_payload_size",
    "Mulberry32",
]
