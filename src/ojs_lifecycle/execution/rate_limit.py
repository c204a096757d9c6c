"""Rate limiting: concurrency, fixed-window rate, and throttle spacing.

Manifesto:
A rate-limit policy on a job envelope names a shared ``key`` and up to
three admission dimensions.  The simulator here is a counter model of
what a backend would do at admission time: nothing sleeps, nothing is
shared between threads, and every decision is a pure function of the
state object and the ``now`` the caller passes in.

ARCHITECTURE
────────────
::

    create_rate_limit_state(policy, now)  ──►  RateLimitState (caller-owned)
                                                 ├── ConcurrencyState  active / limit
                                                 ├── RateWindowState   count / limit / window
                                                 └── ThrottleState     limit / period / next_allowed_at

    check_rate_limit(state, policy, now)
        1. window expired?  reset count, window_resets_at = now + window
        2. active   >= concurrency limit  → deny
        3. count    >= rate limit         → deny, wait until window reset
        4. now < throttle.next_allowed_at → deny, wait until then
        5. otherwise                      → allow

    consume_rate_limit(state, now)   ─ take a slot
    release_rate_limit(state)        ─ give one back (floored at 0)

Absent limits are unbounded (``math.inf``), so they never deny.  A denial
reports the policy's ``on_limit`` action (``wait`` unless configured).

Related modules:
    retry.py      ─ backoff after failures
    simulation.py ─ the job lifecycle these limits gate

Example::

    policy = RateLimitPolicy(key="stripe-api", concurrency=2)
    state = create_rate_limit_state(policy, now=0)
    consume_rate_limit(state, now=0)
    consume_rate_limit(state, now=0)
    check_rate_limit(state, policy, now=0).action   # "wait"

Tags:
    ojs-lifecycle, execution, rate-limit, throttle, concurrency

Doc-Types:
    api-reference
"""

from __future__ import annotations

import math
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from ojs_lifecycle.core.duration import parse_duration
from ojs_lifecycle.core.logging import get_logger
from ojs_lifecycle.execution.jobs import RateLimitPolicy

logger = get_logger(__name__)

DEFAULT_RATE_WINDOW_MS = 60_000
DEFAULT_THROTTLE_PERIOD_MS = 1_000
DEFAULT_BATCH_INTERVAL_MS = 100

RateLimitAction = Literal["allow", "wait", "reschedule", "drop"]


def _now_ms() -> float:
    return time.time() * 1000


def _fmt(value: float) -> str:
    """Render a count or duration the way a person would write it."""
    if math.isinf(value):
        return "Infinity"
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def _as_policy(policy: RateLimitPolicy | Mapping[str, Any]) -> RateLimitPolicy:
    if isinstance(policy, RateLimitPolicy):
        return policy
    return RateLimitPolicy.model_validate(dict(policy))


@dataclass
class ConcurrencyState:
    active: int = 0
    limit: float = math.inf


@dataclass
class RateWindowState:
    current_count: int = 0
    limit: float = math.inf
    window_ms: int = DEFAULT_RATE_WINDOW_MS
    window_resets_at: float = 0


@dataclass
class ThrottleState:
    limit: float = math.inf
    period_ms: int = DEFAULT_THROTTLE_PERIOD_MS
    next_allowed_at: float = 0


@dataclass
class RateLimitState:
    """Mutable per-key admission counters.

    The caller owns this object.  Nothing expires it implicitly; call
    :meth:`reset` or build a fresh one to start over.
    """

    key: str
    concurrency: ConcurrencyState = field(default_factory=ConcurrencyState)
    rate: RateWindowState = field(default_factory=RateWindowState)
    throttle: ThrottleState = field(default_factory=ThrottleState)
    waiting_count: int = 0

    def reset(self, now: float | None = None) -> None:
        """Zero every counter and start a fresh window at ``now``."""
        now = _now_ms() if now is None else now
        self.concurrency.active = 0
        self.rate.current_count = 0
        self.rate.window_resets_at = now + self.rate.window_ms
        self.throttle.next_allowed_at = now
        self.waiting_count = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "concurrency": {"active": self.concurrency.active, "limit": self.concurrency.limit},
            "rate": {
                "currentCount": self.rate.current_count,
                "limit": self.rate.limit,
                "windowMs": self.rate.window_ms,
                "windowResetsAt": self.rate.window_resets_at,
            },
            "throttle": {
                "limit": self.throttle.limit,
                "periodMs": self.throttle.period_ms,
                "nextAllowedAt": self.throttle.next_allowed_at,
            },
            "waitingCount": self.waiting_count,
        }


@dataclass(frozen=True)
class RateLimitCheckResult:
    allowed: bool
    action: RateLimitAction
    reason: str | None = None
    wait_ms: float | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"allowed": self.allowed, "action": self.action}
        if self.reason is not None:
            result["reason"] = self.reason
        if self.wait_ms is not None:
            result["waitMs"] = self.wait_ms
        return result


_ALLOW = RateLimitCheckResult(allowed=True, action="allow")


def create_rate_limit_state(
    policy: RateLimitPolicy | Mapping[str, Any],
    now: float | None = None,
) -> RateLimitState:
    """Build fresh counters for ``policy``, with the first window opening at ``now``."""
    policy = _as_policy(policy)
    now = _now_ms() if now is None else now

    window_ms = parse_duration(policy.rate.period) if policy.rate else DEFAULT_RATE_WINDOW_MS
    period_ms = parse_duration(policy.throttle.period) if policy.throttle else DEFAULT_THROTTLE_PERIOD_MS

    return RateLimitState(
        key=policy.key,
        concurrency=ConcurrencyState(
            limit=policy.concurrency if policy.concurrency is not None else math.inf,
        ),
        rate=RateWindowState(
            limit=policy.rate.limit if policy.rate else math.inf,
            window_ms=window_ms,
            window_resets_at=now + window_ms,
        ),
        throttle=ThrottleState(
            limit=policy.throttle.limit if policy.throttle else math.inf,
            period_ms=period_ms,
            next_allowed_at=now,
        ),
    )


def check_rate_limit(
    state: RateLimitState,
    policy: RateLimitPolicy | Mapping[str, Any],
    now: float | None = None,
) -> RateLimitCheckResult:
    """Classify one admission attempt.

    Only the window reset mutates ``state``; a denial leaves every counter
    as it was.  Never raises for a limit being hit.
    """
    policy = _as_policy(policy)
    now = _now_ms() if now is None else now
    on_limit: RateLimitAction = policy.on_limit or "wait"

    if now >= state.rate.window_resets_at:
        state.rate.current_count = 0
        state.rate.window_resets_at = now + state.rate.window_ms

    denial: RateLimitCheckResult | None = None
    if state.concurrency.active >= state.concurrency.limit:
        denial = RateLimitCheckResult(
            allowed=False,
            action=on_limit,
            reason=f"Concurrency limit reached ({state.concurrency.active}/{_fmt(state.concurrency.limit)})",
        )
    elif state.rate.current_count >= state.rate.limit:
        denial = RateLimitCheckResult(
            allowed=False,
            action=on_limit,
            reason=f"Rate limit reached ({state.rate.current_count}/{_fmt(state.rate.limit)} per window)",
            wait_ms=state.rate.window_resets_at - now,
        )
    elif now < state.throttle.next_allowed_at:
        wait_ms = state.throttle.next_allowed_at - now
        denial = RateLimitCheckResult(
            allowed=False,
            action=on_limit,
            reason=f"Throttled (next allowed in {_fmt(wait_ms)}ms)",
            wait_ms=wait_ms,
        )

    if denial is None:
        return _ALLOW

    logger.debug("rate_limit_denied", key=state.key, action=denial.action, reason=denial.reason)
    return denial


def consume_rate_limit(state: RateLimitState, now: float | None = None) -> None:
    """Record one admission: a concurrency slot, a window hit, and throttle spacing."""
    now = _now_ms() if now is None else now
    state.concurrency.active += 1
    state.rate.current_count += 1
    if not math.isinf(state.throttle.limit):
        state.throttle.next_allowed_at = now + state.throttle.period_ms / state.throttle.limit


def release_rate_limit(state: RateLimitState) -> None:
    """Free one concurrency slot; never drops below zero."""
    state.concurrency.active = max(0, state.concurrency.active - 1)


@dataclass(frozen=True)
class RateLimitSimEvent:
    job_index: int
    time: float
    action: RateLimitAction
    reason: str | None = None
    wait_ms: float | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"jobIndex": self.job_index, "time": self.time, "action": self.action}
        if self.reason is not None:
            result["reason"] = self.reason
        if self.wait_ms is not None:
            result["waitMs"] = self.wait_ms
        return result


def simulate_rate_limit_batch(
    policy: RateLimitPolicy | Mapping[str, Any],
    job_count: int,
    interval_ms: int = DEFAULT_BATCH_INTERVAL_MS,
) -> tuple[RateLimitSimEvent, ...]:
    """Drive ``job_count`` admissions spaced ``interval_ms`` apart from t=0.

    After the first three jobs each admitted job also frees a slot, so a
    concurrency limit shows a steady state instead of a wall of denials.
    """
    policy = _as_policy(policy)
    state = create_rate_limit_state(policy, now=0)
    events: list[RateLimitSimEvent] = []
    now = 0

    for index in range(job_count):
        result = check_rate_limit(state, policy, now)
        events.append(RateLimitSimEvent(index, now, result.action, result.reason, result.wait_ms))

        if result.allowed:
            consume_rate_limit(state, now)
            if index > 2 and state.concurrency.active > 0:
                release_rate_limit(state)

        now += interval_ms

    return tuple(events)


@dataclass(frozen=True)
class RateLimitPreset:
    name: str
    label: str
    policy: RateLimitPolicy


RATE_LIMIT_PRESETS: tuple[RateLimitPreset, ...] = (
    RateLimitPreset(
        "api-gateway",
        "API Gateway (10 req/s)",
        RateLimitPolicy(key="api-gateway", rate={"limit": 10, "period": "PT1S"}, on_limit="wait"),
    ),
    RateLimitPreset(
        "stripe-api",
        "Stripe API (25 concur.)",
        RateLimitPolicy(key="stripe-api", concurrency=25, on_limit="wait"),
    ),
    RateLimitPreset(
        "email-provider",
        "Email (100/min, drop)",
        RateLimitPolicy(key="email-provider", rate={"limit": 100, "period": "PT1M"}, on_limit="drop"),
    ),
    RateLimitPreset(
        "webhook-delivery",
        "Webhook (5 concur., 1/s throttle)",
        RateLimitPolicy(
            key="webhook-delivery",
            concurrency=5,
            throttle={"limit": 1, "period": "PT1S"},
            on_limit="reschedule",
        ),
    ),
    RateLimitPreset(
        "batch-import",
        "Batch import (3 concur.)",
        RateLimitPolicy(key="batch-import", concurrency=3, on_limit="wait"),
    ),
)


def get_rate_limit_preset(name: str) -> RateLimitPreset:
    """Look up a preset by its key.

    Raises:
        KeyError: If no preset has that name.
    """
    for preset in RATE_LIMIT_PRESETS:
        if preset.name == name:
            return preset
    raise KeyError(name)


__all__ = [
    "RateLimitAction",
    "ConcurrencyState",
    "RateWindowState",
    "ThrottleState",
    "RateLimitState",
    "RateLimitCheckResult",
    "RateLimitSimEvent",
    "RateLimitPreset",
    "RATE_LIMIT_PRESETS",
    "create_rate_limit_state",
    "check_rate_limit",
    "consume_rate_limit",
    "release_rate_limit",
    "simulate_rate_limit_batch",
    "get_rate_limit_preset",
]
