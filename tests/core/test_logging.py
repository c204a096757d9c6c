"""Tests for structlog configuration."""

import json

import structlog

from ojs_lifecycle.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)


class TestConfigureLogging:
    """Tests for configure_logging and get_logger."""

    def test_json_output_to_stderr(self, capsys):
        configure_logging(level="DEBUG", json_format=True, service="test-svc")
        structlog.get_logger().debug("hello", answer=42)
        err = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(err)
        assert record["event"] == "hello"
        assert record["answer"] == 42
        assert record["service"] == "test-svc"
        assert record["level"] == "debug"
        assert "timestamp" in record

    def test_level_filters(self, capsys):
        configure_logging(level="WARNING", json_format=True)
        structlog.get_logger().debug("quiet")
        assert "quiet" not in capsys.readouterr().err

    def test_get_logger_carries_name(self, capsys):
        configure_logging(level="DEBUG", json_format=True)
        get_logger("ojs_lifecycle.test").debug("named")
        record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert record["logger_name"] == "ojs_lifecycle.test"

    def test_module_logger_follows_later_configuration(self, capsys):
        """A logger created before configure_logging still honours it."""
        log = get_logger("ojs_lifecycle.early")
        configure_logging(level="DEBUG", json_format=True)
        log.debug("late")
        record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert record["event"] == "late"
        assert record["logger_name"] == "ojs_lifecycle.early"


class TestContext:
    """Tests for contextvars helpers."""

    def teardown_method(self):
        clear_context()

    def test_bound_context_appears(self, capsys):
        configure_logging(level="DEBUG", json_format=True)
        bind_context(run_id="r-1")
        structlog.get_logger().debug("with_context")
        record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert record["run_id"] == "r-1"

    def test_log_context_is_scoped(self, capsys):
        configure_logging(level="DEBUG", json_format=True)
        with LogContext(scenario="exhausted"):
            structlog.get_logger().debug("inside")
        structlog.get_logger().debug("outside")
        lines = [json.loads(line) for line in capsys.readouterr().err.strip().splitlines()]
        inside = next(r for r in lines if r["event"] == "inside")
        outside = next(r for r in lines if r["event"] == "outside")
        assert inside["scenario"] == "exhausted"
        assert "scenario" not in outside
