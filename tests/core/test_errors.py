"""Tests for the exception hierarchy and OJSError values."""

import pytest

from ojs_lifecycle.core.errors import (
    BACKPRESSURE_ERROR,
    RUNTIME_ERROR,
    TIMEOUT_ERROR,
    VALIDATION_ERROR,
    DurationParseError,
    ErrorCategory,
    InvalidTransitionError,
    JobLoadError,
    OJSError,
    OJSLifecycleError,
    backpressure_error,
    non_retryable_error,
    timeout_error,
    transient_error,
)


class TestExceptionHierarchy:
    """Tests for OJSLifecycleError and subclasses."""

    def test_duration_error(self):
        err = DurationParseError("PTX")
        assert isinstance(err, OJSLifecycleError)
        assert isinstance(err, ValueError)
        assert err.category is ErrorCategory.DURATION
        assert err.value == "PTX"
        assert str(err) == "Invalid ISO 8601 duration: PTX"

    def test_invalid_transition(self):
        err = InvalidTransitionError("completed", "active")
        assert err.category is ErrorCategory.STATE
        assert err.from_state == "completed"
        assert err.to_state == "active"
        assert "completed -> active" in str(err)

    def test_job_load_error_keeps_cause(self):
        cause = KeyError("type")
        err = JobLoadError("bad job", cause=cause)
        assert err.category is ErrorCategory.VALIDATION
        assert err.cause is cause
        assert err.__cause__ is cause

    def test_to_dict(self):
        payload = JobLoadError("bad job", cause=ValueError("boom")).to_dict()
        assert payload == {
            "error_type": "JobLoadError",
            "message": "bad job",
            "category": "VALIDATION",
            "cause": "boom",
        }

    def test_category_override(self):
        err = OJSLifecycleError("x", category=ErrorCategory.STATE)
        assert err.category is ErrorCategory.STATE

    def test_raise_and_catch_as_base(self):
        with pytest.raises(OJSLifecycleError):
            raise DurationParseError("nope")


class TestOJSError:
    """Tests for simulated error values."""

    def test_to_dict_omits_empty_backtrace(self):
        assert OJSError("RuntimeError", "boom").to_dict() == {"type": "RuntimeError", "message": "boom"}

    def test_to_dict_with_backtrace(self):
        err = OJSError("RuntimeError", "boom", ("frame 1", "frame 2"))
        assert err.to_dict()["backtrace"] == ["frame 1", "frame 2"]

    def test_helpers(self):
        assert transient_error(2) == OJSError(RUNTIME_ERROR, "Transient failure on attempt 2: connection timeout")
        assert non_retryable_error(1) == OJSError(VALIDATION_ERROR, "Non-retryable error on attempt 1: invalid input")
        assert timeout_error(3) == OJSError(TIMEOUT_ERROR, "Execution timed out on attempt 3")
        assert backpressure_error(100, 50) == OJSError(BACKPRESSURE_ERROR, "Queue depth 100 exceeds max 50")
