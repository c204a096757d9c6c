"""Retry backoff: delay formulas, policy defaults, and the retry schedule.

Four strategies shape how the wait before retry ``n`` (1-indexed) grows
from the policy's ``initial_interval`` (``base``) and
``backoff_coefficient`` (``c``)::

    none         base
    linear       base * n
    exponential  base * c ** (n - 1)
    polynomial   base * n ** c

Each raw delay is capped at ``max_interval``.  With jitter on, the capped
delay is scaled by a factor in ``[0.5, 1.5)`` drawn from a seeded
:class:`~ojs_lifecycle.core.prng.Mulberry32` and capped again.

Example:
    >>> policy = merge_retry_policy({"max_attempts": 4, "jitter": False})
    >>> [a.final_delay for a in compute_retry_schedule(policy, "exponential", [1, 2, 3])]
    [1000, 2000, 4000]
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ojs_lifecycle.core.duration import parse_duration
from ojs_lifecycle.core.prng import DEFAULT_SEED, Mulberry32
from ojs_lifecycle.execution.jobs import RetryPolicy


@dataclass(frozen=True)
class ResolvedRetryPolicy:
    """A retry policy with every field resolved.

    Produced only by :func:`merge_retry_policy`.
    """

    max_attempts: int = 3
    initial_interval: str = "PT1S"
    backoff_coefficient: float = 2.0
    max_interval: str = "PT5M"
    jitter: bool = True
    non_retryable_errors: tuple[str, ...] = field(default=())
    on_exhaustion: str = "discard"

    @property
    def initial_interval_ms(self) -> int:
        return parse_duration(self.initial_interval)

    @property
    def max_interval_ms(self) -> int:
        return parse_duration(self.max_interval)

    @property
    def max_retries(self) -> int:
        """Retries allowed after the first attempt."""
        return self.max_attempts - 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "initial_interval": self.initial_interval,
            "backoff_coefficient": self.backoff_coefficient,
            "max_interval": self.max_interval,
            "jitter": self.jitter,
            "non_retryable_errors": list(self.non_retryable_errors),
            "on_exhaustion": self.on_exhaustion,
        }


DEFAULT_RETRY_POLICY = ResolvedRetryPolicy()


def merge_retry_policy(
    partial: RetryPolicy | ResolvedRetryPolicy | Mapping[str, Any] | None = None,
) -> ResolvedRetryPolicy:
    """Overlay a partial policy on the defaults.  Every field always resolves."""
    if partial is None:
        return DEFAULT_RETRY_POLICY
    if isinstance(partial, ResolvedRetryPolicy):
        return partial
    if not isinstance(partial, RetryPolicy):
        partial = RetryPolicy.model_validate(dict(partial))

    overrides = {name: value for name, value in partial.model_dump().items() if value is not None}
    if "non_retryable_errors" in overrides:
        overrides["non_retryable_errors"] = tuple(overrides["non_retryable_errors"])
    return ResolvedRetryPolicy(**{**DEFAULT_RETRY_POLICY.__dict__, **overrides})


def _scale(base_ms: float, root: float, exponent: float) -> float:
    if base_ms == 0:
        return 0.0
    try:
        return base_ms * root ** exponent
    except OverflowError:
        return math.inf


class BackoffFormula(ABC):
    """Shape of delay growth across retries."""

    name: str

    @abstractmethod
    def raw_delay(self, retry_number: int, base_ms: float, coefficient: float) -> float:
        """Uncapped delay in milliseconds before retry ``retry_number`` (1-indexed)."""
        ...


class ConstantBackoff(BackoffFormula):
    name = "none"

    def raw_delay(self, retry_number: int, base_ms: float, coefficient: float) -> float:
        return base_ms


class LinearBackoff(BackoffFormula):
    name = "linear"

    def raw_delay(self, retry_number: int, base_ms: float, coefficient: float) -> float:
        return base_ms * retry_number


class ExponentialBackoff(BackoffFormula):
    name = "exponential"

    def raw_delay(self, retry_number: int, base_ms: float, coefficient: float) -> float:
        return _scale(base_ms, coefficient, retry_number - 1)


class PolynomialBackoff(BackoffFormula):
    name = "polynomial"

    def raw_delay(self, retry_number: int, base_ms: float, coefficient: float) -> float:
        return _scale(base_ms, retry_number, coefficient)


BACKOFF_FORMULAS: dict[str, BackoffFormula] = {
    formula.name: formula
    for formula in (ConstantBackoff(), LinearBackoff(), ExponentialBackoff(), PolynomialBackoff())
}


def get_backoff(strategy: str) -> BackoffFormula:
    """Look up a formula by strategy name.

    Raises:
        ValueError: For a name outside ``none/linear/exponential/polynomial``.
    """
    try:
        return BACKOFF_FORMULAS[strategy]
    except KeyError:
        raise ValueError(
            f"Unknown backoff strategy: {strategy!r} (expected one of {', '.join(BACKOFF_FORMULAS)})"
        ) from None


def compute_delay(
    retry_number: int,
    policy: RetryPolicy | ResolvedRetryPolicy | Mapping[str, Any] | None,
    strategy: str,
) -> float:
    """Raw (uncapped, unjittered) delay in ms before retry ``retry_number``."""
    policy = merge_retry_policy(policy)
    return get_backoff(strategy).raw_delay(retry_number, policy.initial_interval_ms, policy.backoff_coefficient)


def apply_jitter(delay: float, rng: Callable[[], float]) -> float:
    """Scale ``delay`` by ``0.5 + rng()``, i.e. a factor in ``[0.5, 1.5)``."""
    return delay * (0.5 + rng())


def _round_ms(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class RetryAttempt:
    """Timing of one retry that actually happens."""

    retry_number: int
    raw_delay: float
    capped_delay: float
    jittered_delay: float
    final_delay: int
    cumulative_time: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "retryNumber": self.retry_number,
            "rawDelay": self.raw_delay,
            "cappedDelay": self.capped_delay,
            "jitteredDelay": self.jittered_delay,
            "finalDelay": self.final_delay,
            "cumulativeTime": self.cumulative_time,
        }


def compute_retry_schedule(
    policy: RetryPolicy | ResolvedRetryPolicy | Mapping[str, Any] | None,
    strategy: str,
    fail_on_attempts: Iterable[int],
    seed: int = DEFAULT_SEED,
) -> tuple[RetryAttempt, ...]:
    """Compute the retries that follow a scripted run of failures.

    Retry ``n`` follows failed attempt ``n``, so the schedule stops at the
    first attempt number missing from ``fail_on_attempts`` and never holds
    more than ``max_attempts - 1`` entries.

    ``final_delay`` is the jittered, re-capped delay rounded half-up to a
    whole millisecond; ``cumulative_time`` sums those.
    """
    merged = merge_retry_policy(policy)
    formula = get_backoff(strategy)
    base_ms = merged.initial_interval_ms
    max_interval = merged.max_interval_ms
    rng = Mulberry32(seed)
    failing = set(fail_on_attempts)

    schedule: list[RetryAttempt] = []
    cumulative = 0
    for retry_number in range(1, merged.max_retries + 1):
        if retry_number not in failing:
            break

        raw = formula.raw_delay(retry_number, base_ms, merged.backoff_coefficient)
        capped = min(raw, max_interval)
        if merged.jitter:
            jittered = apply_jitter(capped, rng)
            final = _round_ms(min(jittered, max_interval))
        else:
            jittered = capped
            final = _round_ms(capped)

        cumulative += final
        schedule.append(RetryAttempt(retry_number, raw, capped, jittered, final, cumulative))

    return tuple(schedule)


__all__ = [
    "ResolvedRetryPolicy",
    "DEFAULT_RETRY_POLICY",
    "merge_retry_policy",
    "BackoffFormula",
    "ConstantBackoff",
    "LinearBackoff",
    "ExponentialBackoff",
    "PolynomialBackoff",
    "BACKOFF_FORMULAS",
    "get_backoff",
    "compute_delay",
    "apply_jitter",
    "RetryAttempt",
    "compute_retry_schedule",
]
