"""Named simulation scenarios and the order in which outcomes are decided.

Each :class:`Scenario` maps to one :class:`ScenarioProfile` that says which
flow drives it, which attempts are scripted to fail, and which special
checks apply.  Inside the standard flow, every claimed attempt resolves
to exactly one :class:`Outcome`, tested in :data:`OUTCOME_PRIORITY` order;
the first match wins.

::

    PROGRESS ─► CANCEL ─► NON_RETRYABLE ─► TIMEOUT ─► FAILURE ─► COMPLETE
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum


class Scenario(str, Enum):
    SUCCESS_FIRST_ATTEMPT = "success_first_attempt"
    SUCCESS_AFTER_RETRIES = "success_after_retries"
    EXHAUSTED = "exhausted"
    DEAD_LETTER = "dead_letter"
    CANCELLED = "cancelled"
    NON_RETRYABLE_ERROR = "non_retryable_error"
    SCHEDULED_THEN_SUCCESS = "scheduled_then_success"
    TIMEOUT_EXECUTION = "timeout_execution"
    TIMEOUT_HEARTBEAT = "timeout_heartbeat"
    PROGRESS_TRACKING = "progress_tracking"
    WORKFLOW_CHAIN = "workflow_chain"
    WORKFLOW_GROUP = "workflow_group"
    BACKPRESSURE_REJECT = "backpressure_reject"
    CUSTOM = "custom"


class Flow(str, Enum):
    """Which driver produces the event log."""

    STANDARD = "standard"
    WORKFLOW_CHAIN = "workflow_chain"
    WORKFLOW_GROUP = "workflow_group"


class Outcome(str, Enum):
    """What happens to one claimed attempt in the standard flow."""

    PROGRESS = "progress"
    CANCEL = "cancel"
    NON_RETRYABLE = "non_retryable"
    TIMEOUT = "timeout"
    FAILURE = "failure"
    COMPLETE = "complete"


OUTCOME_PRIORITY: tuple[Outcome, ...] = (
    Outcome.PROGRESS,
    Outcome.CANCEL,
    Outcome.NON_RETRYABLE,
    Outcome.TIMEOUT,
    Outcome.FAILURE,
    Outcome.COMPLETE,
)

FailingAttempts = Callable[[int, Sequence[int] | None, int | None], tuple[int, ...]]


def _no_failures(max_attempts: int, fail_on: Sequence[int] | None, timeout_on: int | None) -> tuple[int, ...]:
    return ()


def _fail_until_third(max_attempts: int, fail_on: Sequence[int] | None, timeout_on: int | None) -> tuple[int, ...]:
    # succeeds on attempt 3, or on the last attempt when fewer are allowed
    return tuple(range(1, min(max_attempts, 3)))


def _fail_every_attempt(max_attempts: int, fail_on: Sequence[int] | None, timeout_on: int | None) -> tuple[int, ...]:
    return tuple(range(1, max_attempts + 1))


def _fail_first(max_attempts: int, fail_on: Sequence[int] | None, timeout_on: int | None) -> tuple[int, ...]:
    return (1,)


def _fail_on_timeout(max_attempts: int, fail_on: Sequence[int] | None, timeout_on: int | None) -> tuple[int, ...]:
    return (timeout_on if timeout_on is not None else 1,)


def _fail_as_scripted(max_attempts: int, fail_on: Sequence[int] | None, timeout_on: int | None) -> tuple[int, ...]:
    return tuple(fail_on) if fail_on is not None else (1,)


@dataclass(frozen=True)
class ScenarioProfile:
    scenario: Scenario
    description: str
    failing_attempts: FailingAttempts = _no_failures
    flow: Flow = Flow.STANDARD
    starts_scheduled: bool = False
    checks_backpressure: bool = False
    always_cancels: bool = False
    tracks_progress: bool = False
    timeout_kind: str | None = None
    dead_letters: bool = False


SCENARIO_PROFILES: dict[Scenario, ScenarioProfile] = {
    profile.scenario: profile
    for profile in (
        ScenarioProfile(Scenario.SUCCESS_FIRST_ATTEMPT, "Job succeeds on the first attempt"),
        ScenarioProfile(
            Scenario.SUCCESS_AFTER_RETRIES,
            "Job fails, retries with backoff, then succeeds",
            failing_attempts=_fail_until_third,
        ),
        ScenarioProfile(
            Scenario.EXHAUSTED,
            "Every attempt fails and the job is discarded",
            failing_attempts=_fail_every_attempt,
        ),
        ScenarioProfile(
            Scenario.DEAD_LETTER,
            "Every attempt fails and the job moves to the dead letter queue",
            failing_attempts=_fail_every_attempt,
            dead_letters=True,
        ),
        ScenarioProfile(Scenario.CANCELLED, "Job is cancelled while running", always_cancels=True),
        ScenarioProfile(
            Scenario.NON_RETRYABLE_ERROR,
            "Handler raises an error that is never retried",
            failing_attempts=_fail_first,
        ),
        ScenarioProfile(
            Scenario.SCHEDULED_THEN_SUCCESS,
            "Job waits for its scheduled time, then succeeds",
            starts_scheduled=True,
        ),
        ScenarioProfile(
            Scenario.TIMEOUT_EXECUTION,
            "An attempt exceeds its execution timeout",
            failing_attempts=_fail_on_timeout,
            timeout_kind="execution",
        ),
        ScenarioProfile(
            Scenario.TIMEOUT_HEARTBEAT,
            "A worker stops heartbeating during an attempt",
            failing_attempts=_fail_on_timeout,
            timeout_kind="heartbeat",
        ),
        ScenarioProfile(
            Scenario.PROGRESS_TRACKING,
            "Handler reports progress, then completes",
            tracks_progress=True,
        ),
        ScenarioProfile(
            Scenario.WORKFLOW_CHAIN,
            "Steps run one after another",
            flow=Flow.WORKFLOW_CHAIN,
        ),
        ScenarioProfile(
            Scenario.WORKFLOW_GROUP,
            "Steps fan out and run in parallel",
            flow=Flow.WORKFLOW_GROUP,
        ),
        ScenarioProfile(
            Scenario.BACKPRESSURE_REJECT,
            "A full queue rejects the job at enqueue time",
            checks_backpressure=True,
        ),
        ScenarioProfile(
            Scenario.CUSTOM,
            "Attempts listed in fail_on_attempts fail",
            failing_attempts=_fail_as_scripted,
        ),
    )
}


def get_profile(scenario: Scenario | str) -> ScenarioProfile:
    """Profile for a scenario value or name.

    Raises:
        ValueError: For an unknown scenario name.
    """
    return SCENARIO_PROFILES[Scenario(scenario)]


def failing_attempts_for(
    scenario: Scenario | str,
    max_attempts: int,
    fail_on_attempts: Sequence[int] | None = None,
    timeout_on_attempt: int | None = None,
) -> tuple[int, ...]:
    """Attempt numbers (1-indexed) that are scripted to fail under ``scenario``."""
    return get_profile(scenario).failing_attempts(max_attempts, fail_on_attempts, timeout_on_attempt)


__all__ = [
    "Scenario",
    "Flow",
    "Outcome",
    "OUTCOME_PRIORITY",
    "ScenarioProfile",
    "SCENARIO_PROFILES",
    "get_profile",
    "failing_attempts_for",
]
