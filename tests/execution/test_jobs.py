"""Tests for the job envelope models and loaders."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from ojs_lifecycle.core.errors import JobLoadError
from ojs_lifecycle.execution.jobs import (
    DEFAULT_JOB,
    CronPolicy,
    JobEnvelope,
    RateLimitPolicy,
    RetryPolicy,
    coerce_job,
    load_job,
    load_job_file,
)


class TestJobEnvelope:
    """Tests for JobEnvelope."""

    def test_default_job(self):
        assert DEFAULT_JOB.type == "email.send"
        assert DEFAULT_JOB.queue == "default"
        assert DEFAULT_JOB.args == ["user@example.com", "welcome"]
        assert DEFAULT_JOB.retry.max_attempts == 3

    def test_minimal_job(self):
        job = JobEnvelope(type="report.build")
        assert job.queue == "default"
        assert job.args == []
        assert job.priority == 0

    def test_is_frozen(self):
        with pytest.raises(ValidationError):
            DEFAULT_JOB.queue = "other"

    @pytest.mark.parametrize("bad_type", ["", "has space", ".leading", "trailing."])
    def test_type_must_be_dotted_identifier(self, bad_type):
        with pytest.raises(ValidationError):
            JobEnvelope(type=bad_type)

    def test_unknown_fields_kept(self):
        job = JobEnvelope.model_validate({"type": "a.b", "x_custom": 1})
        assert job.model_extra == {"x_custom": 1}

    def test_timeout_accepts_seconds_or_policy(self):
        assert JobEnvelope(type="a", timeout=30).timeout == 30
        job = JobEnvelope.model_validate({"type": "a", "timeout": {"execution": 60}})
        assert job.timeout.execution == 60

    def test_future_schedule(self):
        enqueued = datetime(2025, 1, 1, tzinfo=timezone.utc)
        later = datetime(2025, 1, 2, tzinfo=timezone.utc)
        assert JobEnvelope(type="a", scheduled_at=later, enqueued_at=enqueued).has_future_schedule
        assert not JobEnvelope(type="a", scheduled_at=enqueued, enqueued_at=later).has_future_schedule
        assert JobEnvelope(type="a", scheduled_at=later).has_future_schedule
        assert not JobEnvelope(type="a").has_future_schedule

    def test_workflow_steps_from_meta(self):
        assert JobEnvelope(type="a", meta={"steps": ["x", "y"]}).workflow_steps == ["x", "y"]
        assert JobEnvelope(type="a", meta={"steps": "x"}).workflow_steps is None
        assert JobEnvelope(type="a").workflow_steps is None


class TestPolicies:
    """Tests for partial policy models."""

    def test_retry_policy_all_optional(self):
        policy = RetryPolicy()
        assert policy.max_attempts is None
        assert policy.jitter is None

    def test_retry_policy_validates_durations(self):
        with pytest.raises(ValidationError, match="Invalid ISO 8601 duration"):
            RetryPolicy(initial_interval="1 second")

    def test_retry_policy_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            RetryPolicy(max_tries=3)

    def test_retry_policy_bounds(self):
        with pytest.raises(ValidationError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ValidationError):
            RetryPolicy(on_exhaustion="explode")

    def test_rate_limit_policy(self):
        policy = RateLimitPolicy.model_validate({"key": "k", "rate": {"limit": 5, "period": "PT1M"}})
        assert policy.rate.limit == 5
        with pytest.raises(ValidationError):
            RateLimitPolicy(key="k", rate={"limit": 5, "period": "soon"})

    def test_cron_policy_validates_expression(self):
        assert CronPolicy(expression="@daily").expression == "@daily"
        with pytest.raises(ValidationError, match="Expected 5 fields"):
            CronPolicy(expression="0 0")


class TestLoading:
    """Tests for coerce_job / load_job / load_job_file."""

    def test_coerce_passes_models_through(self):
        assert coerce_job(DEFAULT_JOB) is DEFAULT_JOB

    def test_coerce_wraps_validation_errors(self):
        with pytest.raises(JobLoadError, match="Invalid job envelope"):
            coerce_job({"queue": "no-type"})

    def test_load_json(self):
        job = load_job('{"type": "email.send", "args": [1]}')
        assert job.args == [1]

    def test_load_yaml(self):
        text = "type: email.send\nargs: [a, b]\nretry:\n  max_attempts: 5\n  initial_interval: PT2S\n"
        job = load_job(text)
        assert job.retry.max_attempts == 5
        assert job.retry.initial_interval == "PT2S"

    def test_load_rejects_non_mapping(self):
        with pytest.raises(JobLoadError, match="must be a mapping"):
            load_job("[1, 2, 3]")

    def test_load_rejects_bad_syntax(self):
        with pytest.raises(JobLoadError):
            load_job("type: [unclosed")

    def test_load_file(self, tmp_path):
        path = tmp_path / "job.yaml"
        path.write_text("type: report.build\nqueue: reports\n", encoding="utf-8")
        assert load_job_file(path).queue == "reports"

    def test_missing_file(self, tmp_path):
        with pytest.raises(JobLoadError, match="Cannot read"):
            load_job_file(tmp_path / "missing.json")
