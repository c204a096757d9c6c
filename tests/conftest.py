"""
Shared pytest fixtures for ojs-lifecycle tests.

This module provides:
- The default example job and small job variants
- Fresh rate-limit state and bulk processors, so stateful tests stay isolated
- Settings cache reset between tests

Usage:
    Fixtures are auto-discovered by pytest; request them as arguments.
"""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

import pytest
import structlog

from ojs_lifecycle.core.logging import clear_context
from ojs_lifecycle.core.settings import get_settings
from ojs_lifecycle.execution.bulk import BulkEnqueueProcessor
from ojs_lifecycle.execution.jobs import DEFAULT_JOB, DEFAULT_JOB_DATA, JobEnvelope, RateLimitPolicy
from ojs_lifecycle.execution.rate_limit import RateLimitState, create_rate_limit_state


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Settings are cached per process; clear around every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Drop logging configuration bound to a test's captured streams."""
    yield
    clear_context()
    structlog.reset_defaults()


@pytest.fixture
def default_job() -> JobEnvelope:
    return DEFAULT_JOB


@pytest.fixture
def job_factory():
    """Build an envelope from the default job with top-level overrides."""

    def _make(**overrides: Any) -> JobEnvelope:
        return JobEnvelope.model_validate({**DEFAULT_JOB_DATA, **overrides})

    return _make


@pytest.fixture
def no_jitter_job(job_factory) -> JobEnvelope:
    return job_factory(
        retry={
            "max_attempts": 4,
            "initial_interval": "PT1S",
            "backoff_coefficient": 2.0,
            "max_interval": "PT5M",
            "jitter": False,
        }
    )


@pytest.fixture
def concurrency_policy() -> RateLimitPolicy:
    return RateLimitPolicy(key="test-key", concurrency=2, on_limit="reschedule")


@pytest.fixture
def rate_limit_state(concurrency_policy) -> RateLimitState:
    return create_rate_limit_state(concurrency_policy, now=0)


@pytest.fixture
def bulk_processor() -> BulkEnqueueProcessor:
    return BulkEnqueueProcessor(seed=42)
