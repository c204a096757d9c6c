"""Job states, the transition table, and simulation records.

The state machine is static data.  ``VALID_TRANSITIONS`` is the single
source of truth; ``is_valid_transition`` and ``validate_transition`` read
it and nothing mutates it.

::

    initial ──PUSH──► scheduled ──SCHEDULE──┐
       │                                    ▼
       ├──PUSH──────────────────────────► available ◄──RETRY── retryable
       │                                    ▲   │                 ▲
       └──PUSH──► pending ──ACTIVATE────────┘   FETCH             │
                                                ▼                 │
                           completed ◄──ACK── active ──FAIL───────┘
                           cancelled ◄─CANCEL─┘  │
                           discarded ◄──FAIL─────┘
                               │
                               └──MANUAL_RETRY──► available
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from ojs_lifecycle.core.errors import InvalidTransitionError, OJSError

INITIAL = "initial"


class JobState(str, Enum):
    """Lifecycle state of a job."""

    SCHEDULED = "scheduled"
    AVAILABLE = "available"
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    RETRYABLE = "retryable"
    CANCELLED = "cancelled"
    DISCARDED = "discarded"


StateOrInitial = JobState | Literal["initial"]


@dataclass(frozen=True)
class StateTransition:
    from_state: StateOrInitial
    to_state: JobState
    trigger: str
    description: str


TRANSITIONS: tuple[StateTransition, ...] = (
    StateTransition(INITIAL, JobState.SCHEDULED, "PUSH", "Job created with future scheduled_at"),
    StateTransition(INITIAL, JobState.AVAILABLE, "PUSH", "Job created without scheduled_at"),
    StateTransition(INITIAL, JobState.PENDING, "PUSH", "Job created with pending flag"),
    StateTransition(JobState.SCHEDULED, JobState.AVAILABLE, "SCHEDULE", "Scheduled time arrives"),
    StateTransition(JobState.AVAILABLE, JobState.ACTIVE, "FETCH", "Worker claims job"),
    StateTransition(JobState.PENDING, JobState.AVAILABLE, "ACTIVATE", "External activation"),
    StateTransition(JobState.ACTIVE, JobState.COMPLETED, "ACK", "Handler succeeded"),
    StateTransition(JobState.ACTIVE, JobState.RETRYABLE, "FAIL", "Handler failed, retries remain"),
    StateTransition(JobState.ACTIVE, JobState.CANCELLED, "CANCEL", "Job cancelled during execution"),
    StateTransition(JobState.ACTIVE, JobState.DISCARDED, "FAIL", "Handler failed, no retries remain"),
    StateTransition(JobState.RETRYABLE, JobState.AVAILABLE, "RETRY", "Backoff delay expires"),
    StateTransition(JobState.DISCARDED, JobState.AVAILABLE, "MANUAL_RETRY", "Manual retry from dead letter"),
)

VALID_TRANSITIONS: dict[StateOrInitial, frozenset[JobState]] = {}
for _t in TRANSITIONS:
    VALID_TRANSITIONS[_t.from_state] = VALID_TRANSITIONS.get(_t.from_state, frozenset()) | {_t.to_state}
del _t

TERMINAL_STATES: frozenset[JobState] = frozenset({
    JobState.COMPLETED,
    JobState.CANCELLED,
    JobState.DISCARDED,
})

STATE_LABELS: dict[JobState, str] = {state: state.value.capitalize() for state in JobState}


def _coerce(state: str) -> StateOrInitial:
    return INITIAL if state == INITIAL else JobState(state)


def is_terminal(state: str) -> bool:
    return state != INITIAL and JobState(state) in TERMINAL_STATES


def is_valid_transition(from_state: str, to_state: str) -> bool:
    """Report whether ``from_state -> to_state`` is an edge of the state machine.

    Unknown state names are simply not valid; this never raises.
    """
    try:
        source, target = _coerce(from_state), JobState(to_state)
    except ValueError:
        return False
    return target in VALID_TRANSITIONS.get(source, frozenset())


def validate_transition(from_state: str, to_state: str) -> None:
    """Raise :class:`InvalidTransitionError` unless the edge is valid."""
    if not is_valid_transition(from_state, to_state):
        raise InvalidTransitionError(getattr(from_state, "value", from_state), getattr(to_state, "value", to_state))


def _state_value(state: StateOrInitial) -> str:
    return state.value if isinstance(state, JobState) else state


@dataclass(frozen=True)
class SimulationEvent:
    """One step of a simulated lifecycle.

    ``from_state == to_state`` marks an in-place update (progress or a
    workflow group member finishing) rather than a transition.
    """

    from_state: StateOrInitial
    to_state: JobState
    timestamp: int
    attempt: int
    label: str
    delay: int | None = None
    error: OJSError | None = None
    progress: float | None = None
    progress_message: str | None = None
    dead_lettered: bool | None = None
    backpressure: str | None = None
    workflow_step: str | None = None

    @property
    def is_transition(self) -> bool:
        return self.from_state != self.to_state

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "from": _state_value(self.from_state),
            "to": self.to_state.value,
            "timestamp": self.timestamp,
            "attempt": self.attempt,
            "label": self.label,
        }
        optional = {
            "delay": self.delay,
            "error": self.error.to_dict() if self.error else None,
            "progress": self.progress,
            "progressMessage": self.progress_message,
            "deadLettered": self.dead_lettered,
            "backpressure": self.backpressure,
            "workflowStep": self.workflow_step,
        }
        result.update({k: v for k, v in optional.items() if v is not None})
        return result


@dataclass(frozen=True)
class SimulationResult:
    """Complete outcome of one ``run_simulation`` call.  Never mutated."""

    events: tuple[SimulationEvent, ...]
    final_state: JobState
    total_duration: int
    total_attempts: int
    retry_delays: tuple[int, ...] = field(default=())
    retry_schedule: tuple[Any, ...] = field(default=())

    def to_dict(self) -> dict[str, Any]:
        return {
            "events": [e.to_dict() for e in self.events],
            "finalState": self.final_state.value,
            "totalDuration": self.total_duration,
            "totalAttempts": self.total_attempts,
            "retryDelays": list(self.retry_delays),
            "retrySchedule": [a.to_dict() for a in self.retry_schedule],
        }


__all__ = [
    "INITIAL",
    "JobState",
    "StateTransition",
    "TRANSITIONS",
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "STATE_LABELS",
    "is_terminal",
    "is_valid_transition",
    "validate_transition",
    "SimulationEvent",
    "SimulationResult",
]
