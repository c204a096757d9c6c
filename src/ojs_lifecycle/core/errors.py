"""
Structured error types for the lifecycle engine.

Two kinds of "error" live here and they must not be confused:

- **Exceptions** (``OJSLifecycleError`` and subclasses) are raised by the
  engine for caller mistakes: a malformed ISO-8601 duration, a job envelope
  that cannot be loaded, an illegal state transition when the caller asked
  for a hard check.
- **OJSError values** are plain data attached to simulation events.  A job
  that times out or fails validation inside a simulation is an *outcome*,
  not a fault of the engine, so it is recorded on the event instead of
  being raised.

Manifesto:
    - **Fail fast only at the edges:** parsing input may raise, simulating
      never does.
    - **Typed categories:** every exception knows which domain it belongs to.
    - **Errors as data:** simulated failures are values the renderer can show.

Architecture:
    ::

        OJSLifecycleError (category)
          ├── DurationParseError      (DURATION, also a ValueError)
          ├── JobLoadError            (VALIDATION)
          └── InvalidTransitionError  (STATE, also a ValueError)

        OJSError (frozen dataclass: type, message, backtrace)
          ├── RuntimeError       transient handler failure
          ├── ValidationError    non-retryable input failure
          ├── TimeoutError       execution / heartbeat timeout
          └── BackpressureError  queue full on enqueue

Tags:
    error-handling, exception-hierarchy, ojs-lifecycle

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Domain an engine exception belongs to."""

    DURATION = "DURATION"
    VALIDATION = "VALIDATION"
    STATE = "STATE"
    INTERNAL = "INTERNAL"


class OJSLifecycleError(Exception):
    """Base class for every exception raised by the engine."""

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging and JSON output."""
        result: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
        }
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class DurationParseError(OJSLifecycleError, ValueError):
    """Raised by ``parse_duration`` for strings that are not ISO-8601 durations."""

    default_category = ErrorCategory.DURATION

    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid ISO 8601 duration: {value}")
        self.value = value


class JobLoadError(OJSLifecycleError):
    """A job envelope could not be parsed or validated."""

    default_category = ErrorCategory.VALIDATION


class InvalidTransitionError(OJSLifecycleError, ValueError):
    """Raised when an illegal job-state transition is checked.

    Attributes:
        from_state: The state the job was in.
        to_state: The state the caller tried to move to.
    """

    default_category = ErrorCategory.STATE

    def __init__(self, from_state: str, to_state: str) -> None:
        super().__init__(f"Invalid job state transition: {from_state} -> {to_state}")
        self.from_state = from_state
        self.to_state = to_state


# Error types carried by simulated events
RUNTIME_ERROR = "RuntimeError"
VALIDATION_ERROR = "ValidationError"
TIMEOUT_ERROR = "TimeoutError"
BACKPRESSURE_ERROR = "BackpressureError"


@dataclass(frozen=True)
class OJSError:
    """An error value as it appears on a job envelope or simulation event."""

    type: str
    message: str
    backtrace: tuple[str, ...] = field(default=())

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type, "message": self.message}
        if self.backtrace:
            result["backtrace"] = list(self.backtrace)
        return result


def transient_error(attempt: int) -> OJSError:
    return OJSError(RUNTIME_ERROR, f"Transient failure on attempt {attempt}: connection timeout")


def non_retryable_error(attempt: int) -> OJSError:
    return OJSError(VALIDATION_ERROR, f"Non-retryable error on attempt {attempt}: invalid input")


def timeout_error(attempt: int) -> OJSError:
    return OJSError(TIMEOUT_ERROR, f"Execution timed out on attempt {attempt}")


def backpressure_error(depth: int, max_size: int) -> OJSError:
    return OJSError(BACKPRESSURE_ERROR, f"Queue depth {depth} exceeds max {max_size}")


__all__ = [
    "ErrorCategory",
    "OJSLifecycleError",
    "DurationParseError",
    "JobLoadError",
    "InvalidTransitionError",
    "OJSError",
    "RUNTIME_ERROR",
    "VALIDATION_ERROR",
    "TIMEOUT_ERROR",
    "BACKPRESSURE_ERROR",
    "transient_error",
    "non_retryable_error",
    "timeout_error",
    "backpressure_error",
]
