"""Deterministic job lifecycle simulation.

Manifesto:
The simulator answers one question: given this job, this scenario and
this seed, exactly which states does the job pass through, and when?
It is a pure function.  Time is a counter, failures are scripted, and
jitter comes from a seeded generator, so the same inputs always produce
the same event log down to the millisecond.

ARCHITECTURE
────────────
::

    SimulationConfig ──► run_simulation ──► SimulationResult
                            │
                            ├── backpressure pre-check (backpressure_reject only)
                            ├── initial → scheduled → available | initial → available
                            └── flow handler (by ScenarioProfile.flow)
                                  STANDARD        claim, then first matching Outcome
                                  WORKFLOW_CHAIN  one active cycle per step
                                  WORKFLOW_GROUP  fan-out, per-step updates, complete

    SimulationStepper ─ replays a finished result one event at a time

Timing model (simulated milliseconds):
    fetch 100 · processing 500 · schedule wait 2000 · progress tick 200
    retry wait = next entry of the retry schedule, else ``initial_interval``

Guardrails:
    - ``run_simulation`` never raises; every config yields a result.
    - Timestamps never decrease and are whole milliseconds.
    - ``attempt`` goes up by one exactly when the job enters ``active``.

Related modules:
    scenarios.py ─ scenario profiles and outcome priority
    retry.py     ─ backoff schedule
    models.py    ─ states, transitions, event records

Example::

    result = run_simulation(SimulationConfig(scenario="exhausted"))
    result.final_state        # JobState.DISCARDED
    result.total_attempts     # 3

Tags:
    ojs-lifecycle, execution, simulation, state-machine, deterministic

Doc-Types:
    api-reference
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ojs_lifecycle.core.errors import (
    OJSError,
    backpressure_error,
    non_retryable_error,
    timeout_error,
    transient_error,
)
from ojs_lifecycle.core.logging import get_logger
from ojs_lifecycle.core.prng import DEFAULT_SEED
from ojs_lifecycle.execution.jobs import DEFAULT_JOB, JobEnvelope, coerce_job
from ojs_lifecycle.execution.models import (
    INITIAL,
    TERMINAL_STATES,
    JobState,
    SimulationEvent,
    SimulationResult,
    StateOrInitial,
)
from ojs_lifecycle.execution.retry import (
    ResolvedRetryPolicy,
    RetryAttempt,
    compute_retry_schedule,
    get_backoff,
    merge_retry_policy,
)
from ojs_lifecycle.execution.scenarios import (
    OUTCOME_PRIORITY,
    Flow,
    Outcome,
    Scenario,
    ScenarioProfile,
    failing_attempts_for,
    get_profile,
)

logger = get_logger(__name__)

FETCH_DELAY = 100
PROCESSING_TIME = 500
SCHEDULE_DELAY = 2000
PROGRESS_INTERVAL = 200

DEFAULT_PROGRESS_STEPS = 5
DEFAULT_QUEUE_DEPTH = 100
DEFAULT_QUEUE_MAX_SIZE = 50
DEFAULT_BACKPRESSURE_STRATEGY = "reject"
DEFAULT_WORKFLOW_STEPS: tuple[str, ...] = ("step.1", "step.2", "step.3")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class SimulationConfig:
    """Everything one simulation run depends on.

    ``job`` may be a :class:`JobEnvelope` or a plain mapping; ``scenario``
    an enum member or its name.  Unknown scenario or strategy names raise
    ``ValueError`` here, before a run starts.
    """

    job: JobEnvelope = field(default_factory=lambda: DEFAULT_JOB)
    scenario: Scenario = Scenario.SUCCESS_FIRST_ATTEMPT
    strategy: str = "exponential"
    seed: int = DEFAULT_SEED
    fail_on_attempts: tuple[int, ...] | None = None
    cancel_on_attempt: int | None = None
    non_retryable_error_on_attempt: int | None = None
    timeout_on_attempt: int | None = None
    progress_steps: int = DEFAULT_PROGRESS_STEPS
    backpressure_strategy: str = DEFAULT_BACKPRESSURE_STRATEGY
    queue_depth: int = DEFAULT_QUEUE_DEPTH
    queue_max_size: int = DEFAULT_QUEUE_MAX_SIZE
    workflow_steps: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "job", coerce_job(self.job))
        object.__setattr__(self, "scenario", Scenario(self.scenario))
        get_backoff(self.strategy)
        if self.fail_on_attempts is not None:
            object.__setattr__(self, "fail_on_attempts", tuple(self.fail_on_attempts))
        if self.workflow_steps is not None:
            object.__setattr__(self, "workflow_steps", tuple(self.workflow_steps))

    @property
    def profile(self) -> ScenarioProfile:
        return get_profile(self.scenario)

    @property
    def retry_policy(self) -> ResolvedRetryPolicy:
        return merge_retry_policy(self.job.retry)

    def resolved_workflow_steps(self) -> tuple[str, ...]:
        """Explicit steps, else ``meta.steps`` on the job, else three placeholders."""
        return self.workflow_steps or tuple(self.job.workflow_steps or ()) or DEFAULT_WORKFLOW_STEPS

    def failing_attempts(self) -> tuple[int, ...]:
        return failing_attempts_for(
            self.scenario,
            self.retry_policy.max_attempts,
            self.fail_on_attempts,
            self.timeout_on_attempt,
        )


def _wants_progress(config: SimulationConfig, attempt: int, failing: frozenset[int]) -> bool:
    return config.profile.tracks_progress


def _wants_cancel(config: SimulationConfig, attempt: int, failing: frozenset[int]) -> bool:
    return config.profile.always_cancels or config.cancel_on_attempt == attempt


def _wants_non_retryable(config: SimulationConfig, attempt: int, failing: frozenset[int]) -> bool:
    configured = config.non_retryable_error_on_attempt
    if config.scenario is Scenario.NON_RETRYABLE_ERROR:
        return attempt == (configured if configured is not None else 1)
    return configured == attempt


def _wants_timeout(config: SimulationConfig, attempt: int, failing: frozenset[int]) -> bool:
    if config.profile.timeout_kind is None:
        return False
    configured = config.timeout_on_attempt
    return attempt == (configured if configured is not None else 1)


def _wants_failure(config: SimulationConfig, attempt: int, failing: frozenset[int]) -> bool:
    return attempt in failing


def _always(config: SimulationConfig, attempt: int, failing: frozenset[int]) -> bool:
    return True


_OUTCOME_TESTS: dict[Outcome, Callable[[SimulationConfig, int, frozenset[int]], bool]] = {
    Outcome.PROGRESS: _wants_progress,
    Outcome.CANCEL: _wants_cancel,
    Outcome.NON_RETRYABLE: _wants_non_retryable,
    Outcome.TIMEOUT: _wants_timeout,
    Outcome.FAILURE: _wants_failure,
    Outcome.COMPLETE: _always,
}


def resolve_outcome(config: SimulationConfig, attempt: int, failing: Sequence[int] | None = None) -> Outcome:
    """First outcome in :data:`OUTCOME_PRIORITY` that applies to ``attempt``."""
    failing_set = frozenset(config.failing_attempts() if failing is None else failing)
    for outcome in OUTCOME_PRIORITY:
        if _OUTCOME_TESTS[outcome](config, attempt, failing_set):
            return outcome
    return Outcome.COMPLETE


class _Run:
    """Mutable bookkeeping for a single ``run_simulation`` call."""

    def __init__(self, config: SimulationConfig) -> None:
        self.config = config
        self.policy = config.retry_policy
        self.failing = config.failing_attempts()
        self.failing_set = frozenset(self.failing)
        self.schedule: tuple[RetryAttempt, ...] = compute_retry_schedule(
            self.policy, config.strategy, self.failing, config.seed
        )
        self.events: list[SimulationEvent] = []
        self.time = 0
        self.attempt = 0
        self.state: StateOrInitial = INITIAL
        self.retry_index = 0

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def emit(self, to_state: JobState, label: str, **extra: Any) -> None:
        self.events.append(
            SimulationEvent(
                from_state=self.state,
                to_state=to_state,
                timestamp=self.time,
                attempt=self.attempt,
                label=label,
                **extra,
            )
        )
        self.state = to_state

    def update(self, label: str, **extra: Any) -> None:
        """Record an in-place change while the job stays active."""
        self.emit(JobState.ACTIVE, label, **extra)

    def claim(self, label: str, **extra: Any) -> None:
        self.time += FETCH_DELAY
        self.attempt += 1
        self.emit(JobState.ACTIVE, label, **extra)

    def result(self, with_schedule: bool = True) -> SimulationResult:
        schedule = self.schedule if with_schedule else ()
        return SimulationResult(
            events=tuple(self.events),
            final_state=self.state if isinstance(self.state, JobState) else JobState.AVAILABLE,
            total_duration=self.time,
            total_attempts=self.attempt,
            retry_delays=tuple(entry.final_delay for entry in schedule),
            retry_schedule=schedule,
        )

    # -- shared transitions -------------------------------------------------

    def enqueue(self) -> None:
        if self.config.profile.starts_scheduled or self.config.job.has_future_schedule:
            self.emit(JobState.SCHEDULED, "Job created with scheduled_at")
            self.time += SCHEDULE_DELAY
            self.emit(JobState.AVAILABLE, "Scheduled time arrives")
        else:
            self.emit(JobState.AVAILABLE, "Job enqueued")

    def rejected_by_backpressure(self) -> bool:
        config = self.config
        if not config.profile.checks_backpressure or config.queue_depth < config.queue_max_size:
            return False
        self.emit(
            JobState.DISCARDED,
            f"Queue full ({config.queue_depth}/{config.queue_max_size}): job rejected",
            error=backpressure_error(config.queue_depth, config.queue_max_size),
            backpressure=config.backpressure_strategy,
        )
        return True

    def retry_or_exhaust(
        self,
        label: str,
        error: OJSError,
        *,
        retry_label: str | None = None,
        dead_letter_label: str | None = None,
    ) -> None:
        """Send the failed attempt back through backoff, or discard it when none remain."""
        if error.type in self.policy.non_retryable_errors:
            self.emit(JobState.DISCARDED, f"{label} ({error.type} is non-retryable)", error=error)
            return

        if self.attempt < self.policy.max_attempts:
            self.emit(JobState.RETRYABLE, retry_label or label, error=error)
            if self.retry_index < len(self.schedule):
                delay = self.schedule[self.retry_index].final_delay
                self.retry_index += 1
            else:
                delay = self.policy.initial_interval_ms
            self.time += delay
            self.emit(JobState.AVAILABLE, "Backoff delay expires", delay=delay)
            return

        if self.config.profile.dead_letters or self.policy.on_exhaustion == "dead_letter":
            self.emit(
                JobState.DISCARDED,
                dead_letter_label or f"{label}, moved to dead letter queue",
                error=error,
                dead_lettered=True,
            )
        else:
            self.emit(JobState.DISCARDED, f"{label} (retries exhausted)", error=error)

    # -- outcomes -----------------------------------------------------------

    def track_progress(self) -> None:
        total = max(0, self.config.progress_steps)
        for step in range(1, total + 1):
            self.time += PROGRESS_INTERVAL
            progress = step / total
            self.update(
                f"Progress: {_round_half_up(progress * 100)}%",
                progress=progress,
                progress_message="Processing complete" if step == total else f"Processing step {step}/{total}",
            )
        self.emit(JobState.COMPLETED, f"Job completed with progress tracking ({total} steps)")

    def cancel(self) -> None:
        self.emit(JobState.CANCELLED, f"Job cancelled during attempt {self.attempt}")

    def fail_permanently(self) -> None:
        self.emit(
            JobState.DISCARDED,
            f"Non-retryable error on attempt {self.attempt}",
            error=non_retryable_error(self.attempt),
        )

    def time_out(self) -> None:
        kind = "Heartbeat" if self.config.profile.timeout_kind == "heartbeat" else "Execution"
        self.retry_or_exhaust(f"{kind} timeout on attempt {self.attempt}", timeout_error(self.attempt))

    def fail(self) -> None:
        self.retry_or_exhaust(
            f"Attempt {self.attempt} failed",
            transient_error(self.attempt),
            retry_label=f"Attempt {self.attempt} failed (retries remain)",
            dead_letter_label=f"Attempt {self.attempt} failed, moved to dead letter queue",
        )

    def complete(self) -> None:
        self.emit(JobState.COMPLETED, f"Attempt {self.attempt} succeeded")


_OUTCOME_HANDLERS: dict[Outcome, Callable[[_Run], None]] = {
    Outcome.PROGRESS: _Run.track_progress,
    Outcome.CANCEL: _Run.cancel,
    Outcome.NON_RETRYABLE: _Run.fail_permanently,
    Outcome.TIMEOUT: _Run.time_out,
    Outcome.FAILURE: _Run.fail,
    Outcome.COMPLETE: _Run.complete,
}


def _run_standard(run: _Run) -> SimulationResult:
    while not run.finished:
        run.claim("Worker claims job")
        outcome = resolve_outcome(run.config, run.attempt, run.failing)
        if outcome is not Outcome.PROGRESS:
            run.time += PROCESSING_TIME
        _OUTCOME_HANDLERS[outcome](run)
    return run.result()


def _run_workflow_chain(run: _Run) -> SimulationResult:
    steps = run.config.resolved_workflow_steps()
    for position, step in enumerate(steps):
        run.claim(f"Chain step: {step}", workflow_step=step)
        run.time += PROCESSING_TIME
        if position < len(steps) - 1:
            run.emit(JobState.AVAILABLE, f"Step {step} completed, next step queued", workflow_step=step)
    run.emit(JobState.COMPLETED, f"Chain workflow completed ({len(steps)} steps)")
    return run.result(with_schedule=False)


def _run_workflow_group(run: _Run) -> SimulationResult:
    steps = run.config.resolved_workflow_steps()
    count = len(steps)
    run.claim(f"Group: fan-out {count} parallel steps")
    fan_out_at = run.time
    for position, step in enumerate(steps, start=1):
        run.time = fan_out_at + _round_half_up(PROCESSING_TIME * position / count)
        run.update(f"Group step: {step} completed", workflow_step=step, progress=position / count)
    run.emit(JobState.COMPLETED, f"Group workflow completed ({count} parallel steps)")
    return run.result(with_schedule=False)


_FLOW_HANDLERS: dict[Flow, Callable[[_Run], SimulationResult]] = {
    Flow.STANDARD: _run_standard,
    Flow.WORKFLOW_CHAIN: _run_workflow_chain,
    Flow.WORKFLOW_GROUP: _run_workflow_group,
}


def run_simulation(config: SimulationConfig | Mapping[str, Any] | None = None) -> SimulationResult:
    """Simulate one job from enqueue to a terminal state.

    Args:
        config: A :class:`SimulationConfig`, or keyword fields for one.
            ``None`` runs the default job through ``success_first_attempt``.

    Returns:
        The complete, immutable event log and its summary.
    """
    if config is None:
        config = SimulationConfig()
    elif not isinstance(config, SimulationConfig):
        config = SimulationConfig(**config)

    run = _Run(config)
    if run.rejected_by_backpressure():
        result = run.result(with_schedule=False)
    else:
        run.enqueue()
        result = _FLOW_HANDLERS[config.profile.flow](run)

    logger.debug(
        "simulation_finished",
        scenario=config.scenario.value,
        strategy=config.strategy,
        seed=config.seed,
        final_state=result.final_state.value,
        attempts=result.total_attempts,
        duration_ms=result.total_duration,
        events=len(result.events),
    )
    return result


class SimulationStepper:
    """Replays a finished simulation one event at a time.

    The result is computed once up front; stepping, peeking and resetting
    only move an index.
    """

    def __init__(self, result: SimulationResult) -> None:
        self._result = result
        self._index = 0

    def has_next(self) -> bool:
        return self._index < len(self._result.events)

    def next(self) -> SimulationEvent | None:
        """Advance and return the next event, or ``None`` once exhausted."""
        event = self.peek()
        if event is not None:
            self._index += 1
        return event

    def peek(self) -> SimulationEvent | None:
        """The event ``next()`` would return, without advancing."""
        if self._index >= len(self._result.events):
            return None
        return self._result.events[self._index]

    def reset(self) -> None:
        self._index = 0

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def total_steps(self) -> int:
        return len(self._result.events)

    @property
    def result(self) -> SimulationResult:
        return self._result


def create_simulation_stepper(config: SimulationConfig | Mapping[str, Any] | None = None) -> SimulationStepper:
    return SimulationStepper(run_simulation(config))


__all__ = [
    "FETCH_DELAY",
    "PROCESSING_TIME",
    "SCHEDULE_DELAY",
    "PROGRESS_INTERVAL",
    "DEFAULT_WORKFLOW_STEPS",
    "SimulationConfig",
    "resolve_outcome",
    "run_simulation",
    "SimulationStepper",
    "create_simulation_stepper",
]
