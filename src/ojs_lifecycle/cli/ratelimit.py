"""
CLI: ``ojs-lifecycle ratelimit``: replay admissions against a rate-limit policy.
"""

from __future__ import annotations

from collections import Counter

import typer
from pydantic import ValidationError

from ojs_lifecycle.cli.utils import console, fail, output_json, print_table
from ojs_lifecycle.core.settings import get_settings
from ojs_lifecycle.execution.jobs import RateLimitPolicy
from ojs_lifecycle.execution.rate_limit import (
    RATE_LIMIT_PRESETS,
    get_rate_limit_preset,
    simulate_rate_limit_batch,
)

app = typer.Typer(no_args_is_help=True)


def _window(text: str | None, option: str) -> dict[str, object] | None:
    """``"10/PT1S"`` -> ``{"limit": 10, "period": "PT1S"}``."""
    if text is None:
        return None
    limit, sep, period = text.partition("/")
    if not sep or not limit.strip().isdigit() or not period.strip():
        fail(f"{option} expects LIMIT/PERIOD, e.g. 10/PT1S (got {text!r})")
    return {"limit": int(limit), "period": period.strip()}


def _build_policy(
    preset: str | None,
    key: str | None,
    concurrency: int | None,
    rate: str | None,
    throttle: str | None,
    on_limit: str | None,
) -> RateLimitPolicy:
    if preset:
        try:
            return get_rate_limit_preset(preset).policy
        except KeyError:
            names = ", ".join(p.name for p in RATE_LIMIT_PRESETS)
            fail(f"Unknown preset {preset!r}; expected one of {names}")
    try:
        return RateLimitPolicy(
            key=key or "cli",
            concurrency=concurrency,
            rate=_window(rate, "--rate"),
            throttle=_window(throttle, "--throttle"),
            on_limit=on_limit,
        )
    except ValidationError as exc:
        fail("Invalid rate-limit policy", detail=exc)


@app.command("simulate")
def simulate(
    preset: str | None = typer.Option(None, "--preset", "-p", help="Use a named preset policy"),
    key: str | None = typer.Option(None, "--key", help="Rate-limit key"),
    concurrency: int | None = typer.Option(None, "--concurrency", min=1, help="Max active jobs"),
    rate: str | None = typer.Option(None, "--rate", help="Window limit as LIMIT/PERIOD, e.g. 10/PT1S"),
    throttle: str | None = typer.Option(None, "--throttle", help="Spacing as LIMIT/PERIOD, e.g. 1/PT1S"),
    on_limit: str | None = typer.Option(None, "--on-limit", help="wait, reschedule or drop"),
    jobs: int = typer.Option(20, "--jobs", "-n", min=1, help="Number of synthetic jobs"),
    interval: int | None = typer.Option(None, "--interval", min=1, help="Milliseconds between jobs"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run synthetic admissions and show which are allowed."""
    policy = _build_policy(preset, key, concurrency, rate, throttle, on_limit)
    interval_ms = interval or get_settings().rate_limit_interval_ms
    events = simulate_rate_limit_batch(policy, jobs, interval_ms)

    if json_out:
        output_json({"policy": policy.model_dump(mode="json", exclude_none=True), "events": [e.to_dict() for e in events]})
        return

    print_table(
        ((e.job_index, e.time, e.action, e.reason, e.wait_ms) for e in events),
        ("job", "t (ms)", "action", "reason", "wait (ms)"),
        title=f"Rate limit: {policy.key}",
    )
    totals = Counter(e.action for e in events)
    console.print("  ".join(f"{action}: {n}" for action, n in sorted(totals.items())))


@app.command("presets")
def presets(json_out: bool = typer.Option(False, "--json")) -> None:
    """List built-in rate-limit policies."""
    if json_out:
        output_json([
            {"name": p.name, "label": p.label, "policy": p.policy.model_dump(mode="json", exclude_none=True)}
            for p in RATE_LIMIT_PRESETS
        ])
        return
    print_table(((p.name, p.label) for p in RATE_LIMIT_PRESETS), ("name", "label"))
