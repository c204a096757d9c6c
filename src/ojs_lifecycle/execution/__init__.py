"""OJS Lifecycle Execution: state machine, retry, limits, bulk, and simulation.

ARCHITECTURE
────────────
::

    JobEnvelope (what the job is)
      │
      ▼
    run_simulation(SimulationConfig) ──► SimulationResult
      ├── StateMachine      ─ JobState, VALID_TRANSITIONS, TERMINAL_STATES
      ├── RetryScheduler    ─ four backoff formulas, cap, seeded jitter
      └── Scenarios         ─ closed enum, profiles, outcome priority

    Independent panels
      ├── RateLimiter       ─ concurrency / window / throttle counters
      └── BulkEnqueueProcessor ─ atomic or partial batches, idempotency keys

MODULE MAP (recommended reading order)
──────────────────────────────────────
  1. models.py      ─ JobState, transitions, event and result records
  2. jobs.py        ─ pydantic envelope and policies, JSON/YAML loading
  3. retry.py       ─ delay formulas and retry schedule
  4. scenarios.py   ─ Scenario enum, profiles, OUTCOME_PRIORITY
  5. simulation.py  ─ run_simulation, SimulationStepper
  6. rate_limit.py  ─ check / consume / release, batch sim, presets
  7. bulk.py        ─ BulkEnqueueProcessor
"""

from ojs_lifecycle.execution.bulk import (
    BulkEnqueueProcessor,
    BulkEnqueueRequest,
    BulkEnqueueResponse,
    BulkOperationResult,
)
from ojs_lifecycle.execution.jobs import (
    DEFAULT_JOB,
    JobEnvelope,
    RateLimitPolicy,
    RetryPolicy,
    load_job,
    load_job_file,
)
from ojs_lifecycle.execution.models import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    JobState,
    SimulationEvent,
    SimulationResult,
    is_terminal,
    is_valid_transition,
    validate_transition,
)
from ojs_lifecycle.execution.rate_limit import (
    RATE_LIMIT_PRESETS,
    RateLimitCheckResult,
    RateLimitState,
    check_rate_limit,
    consume_rate_limit,
    create_rate_limit_state,
    release_rate_limit,
    simulate_rate_limit_batch,
)
from ojs_lifecycle.execution.retry import (
    DEFAULT_RETRY_POLICY,
    ResolvedRetryPolicy,
    RetryAttempt,
    compute_delay,
    compute_retry_schedule,
    merge_retry_policy,
)
from ojs_lifecycle.execution.scenarios import OUTCOME_PRIORITY, Outcome, Scenario
from ojs_lifecycle.execution.simulation import (
    SimulationConfig,
    SimulationStepper,
    create_simulation_stepper,
    run_simulation,
)

__all__ = [
    # bulk
    "BulkEnqueueProcessor",
    "BulkEnqueueRequest",
    "BulkEnqueueResponse",
    "BulkOperationResult",
    # jobs
    "DEFAULT_JOB",
    "JobEnvelope",
    "RateLimitPolicy",
    "RetryPolicy",
    "load_job",
    "load_job_file",
    # models
    "TERMINAL_STATES",
    "VALID_TRANSITIONS",
    "JobState",
    "SimulationEvent",
    "SimulationResult",
    "is_terminal",
    "is_valid_transition",
    "validate_transition",
    # rate limiting
    "RATE_LIMIT_PRESETS",
    "RateLimitCheckResult",
    "RateLimitState",
    "check_rate_limit",
    "consume_rate_limit",
    "create_rate_limit_state",
    "release_rate_limit",
    "simulate_rate_limit_batch",
    # retry
    "DEFAULT_RETRY_POLICY",
    "ResolvedRetryPolicy",
    "RetryAttempt",
    "compute_delay",
    "compute_retry_schedule",
    "merge_retry_policy",
    # scenarios
    "OUTCOME_PRIORITY",
    "Outcome",
    "Scenario",
    # simulation
    "SimulationConfig",
    "SimulationStepper",
    "create_simulation_stepper",
    "run_simulation",
]
