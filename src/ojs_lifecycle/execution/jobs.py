"""Pydantic models for the job envelope and its policies.

The envelope is what the editor hands to the engine: an immutable
description of one unit of work.  Policies are *partial* on the
envelope (every field optional) and are merged with defaults before use,
see :func:`ojs_lifecycle.execution.retry.merge_retry_policy`.

Usage::

    from ojs_lifecycle.execution.jobs import JobEnvelope, load_job_file

    job = JobEnvelope.model_validate({"type": "email.send", "args": ["a@b.c"]})
    job = load_job_file("jobs/welcome.yaml")

Example YAML::

    type: email.send
    queue: default
    args: [user@example.com, welcome]
    retry:
      max_attempts: 5
      initial_interval: PT2S
      on_exhaustion: dead_letter

Durations are validated when the model is built, so a simulation never
meets a malformed interval.

Tags:
    ojs-lifecycle, job-envelope, pydantic, yaml, declarative

Doc-Types:
    api-reference
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ojs_lifecycle.core.cron import parse_cron
from ojs_lifecycle.core.duration import parse_duration
from ojs_lifecycle.core.errors import JobLoadError

SPEC_VERSION = "1.0.0-rc.1"

BackoffStrategy = Literal["none", "linear", "exponential", "polynomial"]
BACKOFF_STRATEGIES: tuple[str, ...] = ("none", "linear", "exponential", "polynomial")

OnExhaustion = Literal["discard", "dead_letter"]
OnLimit = Literal["wait", "reschedule", "drop"]

_TYPE_PATTERN = r"^[A-Za-z_][A-Za-z0-9_-]*(\.[A-Za-z_][A-Za-z0-9_-]*)*$"


def _check_duration(value: str | None) -> str | None:
    if value is not None:
        parse_duration(value)
    return value


class RetryPolicy(BaseModel):
    """Retry policy as written on an envelope; unset fields take defaults."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int | None = Field(default=None, ge=1, description="Total attempts including the first")
    initial_interval: str | None = Field(default=None, description="ISO-8601 base delay")
    backoff_coefficient: float | None = Field(default=None, gt=0, description="Growth factor")
    max_interval: str | None = Field(default=None, description="ISO-8601 delay cap")
    jitter: bool | None = Field(default=None, description="Randomise delays by x[0.5, 1.5)")
    non_retryable_errors: list[str] | None = Field(default=None, description="Error types never retried")
    on_exhaustion: OnExhaustion | None = Field(default=None, description="discard or dead_letter")

    @field_validator("initial_interval", "max_interval")
    @classmethod
    def check_durations(cls, value: str | None) -> str | None:
        return _check_duration(value)


class RateWindow(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    limit: int = Field(..., ge=1)
    period: str

    @field_validator("period")
    @classmethod
    def check_period(cls, value: str) -> str:
        return _check_duration(value)


class RateLimitPolicy(BaseModel):
    """Admission limits shared by every job with the same ``key``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    key: str = Field(..., min_length=1)
    concurrency: int | None = Field(default=None, ge=1)
    rate: RateWindow | None = None
    throttle: RateWindow | None = None
    on_limit: OnLimit | None = None


class TimeoutPolicy(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    execution: int | None = Field(default=None, ge=0)
    heartbeat: int | None = Field(default=None, ge=0)
    heartbeat_grace: int | None = Field(default=None, ge=0)
    enqueue_ttl: int | None = Field(default=None, ge=0)


class CronPolicy(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    expression: str
    timezone: str | None = None
    limit: int | None = Field(default=None, ge=1)
    paused: bool | None = None

    @field_validator("expression")
    @classmethod
    def check_expression(cls, value: str) -> str:
        parsed = parse_cron(value)
        if not parsed.valid:
            raise ValueError(parsed.error)
        return value


class JobEnvelope(BaseModel):
    """Immutable job description consumed by the simulator.

    Unknown top-level fields are kept (the envelope schema is owned by an
    external validator) but never interpreted.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    specversion: str = SPEC_VERSION
    id: str | None = None
    type: str = Field(..., min_length=1, pattern=_TYPE_PATTERN, description="Dot-separated job type")
    queue: str = Field(default="default", min_length=1)
    args: list[Any] = Field(default_factory=list)
    meta: dict[str, Any] | None = None
    priority: int = 0
    timeout: int | TimeoutPolicy | None = None
    scheduled_at: datetime | None = None
    expires_at: datetime | None = None
    created_at: datetime | None = None
    enqueued_at: datetime | None = None
    retry: RetryPolicy | None = None
    rate_limit: RateLimitPolicy | None = None
    cron: CronPolicy | None = None
    unique: dict[str, Any] | None = None

    @property
    def has_future_schedule(self) -> bool:
        """True when ``scheduled_at`` is set and lies after the enqueue instant, if one is known."""
        if self.scheduled_at is None:
            return False
        reference = self.enqueued_at or self.created_at
        if reference is None:
            return True
        try:
            return self.scheduled_at > reference
        except TypeError:
            # naive vs aware: cannot order them, trust scheduled_at
            return True

    @property
    def workflow_steps(self) -> list[str] | None:
        """Step names from ``meta.steps`` when it is a list of strings."""
        steps = (self.meta or {}).get("steps")
        if isinstance(steps, list) and steps and all(isinstance(s, str) for s in steps):
            return list(steps)
        return None


DEFAULT_JOB_DATA: dict[str, Any] = {
    "specversion": SPEC_VERSION,
    "id": "019461a8-1a2b-7c3d-8e4f-5a6b7c8d9e0f",
    "type": "email.send",
    "queue": "default",
    "args": ["user@example.com", "welcome"],
    "meta": {
        "trace_id": "4bf92f3577b34da6a3ce929d0e0e4736",
        "user_id": "usr_12345",
    },
    "priority": 0,
    "timeout": 30,
    "retry": {
        "max_attempts": 3,
        "initial_interval": "PT1S",
        "backoff_coefficient": 2.0,
        "max_interval": "PT5M",
        "jitter": True,
    },
}

DEFAULT_JOB = JobEnvelope.model_validate(DEFAULT_JOB_DATA)


def coerce_job(job: JobEnvelope | dict[str, Any]) -> JobEnvelope:
    """Accept a model or a plain mapping.

    Raises:
        JobLoadError: If the mapping does not describe a valid envelope.
    """
    if isinstance(job, JobEnvelope):
        return job
    try:
        return JobEnvelope.model_validate(job)
    except ValidationError as exc:
        raise JobLoadError(f"Invalid job envelope: {exc.error_count()} validation error(s)", cause=exc) from exc


def parse_document(text: str) -> Any:
    """Decode JSON, falling back to YAML (a superset for our purposes)."""
    try:
        return json.loads(text)
    except ValueError:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise JobLoadError("Document is neither valid JSON nor valid YAML", cause=exc) from exc


def load_job(text: str) -> JobEnvelope:
    """Parse an envelope from JSON or YAML text.

    Raises:
        JobLoadError: On syntax errors or schema violations.
    """
    data = parse_document(text)
    if not isinstance(data, dict):
        raise JobLoadError(f"Job must be a mapping, got {type(data).__name__}")
    return coerce_job(data)


def read_text(path: str | Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise JobLoadError(f"Cannot read {path}", cause=exc) from exc


def load_job_file(path: str | Path) -> JobEnvelope:
    """Read and parse an envelope from a ``.json``/``.yaml`` file."""
    return load_job(read_text(path))


__all__ = [
    "SPEC_VERSION",
    "BackoffStrategy",
    "BACKOFF_STRATEGIES",
    "RetryPolicy",
    "RateWindow",
    "RateLimitPolicy",
    "TimeoutPolicy",
    "CronPolicy",
    "JobEnvelope",
    "DEFAULT_JOB_DATA",
    "DEFAULT_JOB",
    "coerce_job",
    "parse_document",
    "load_job",
    "load_job_file",
    "read_text",
]
