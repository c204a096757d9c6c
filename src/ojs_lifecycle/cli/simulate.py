"""
CLI: ``ojs-lifecycle simulate``: run a job through a lifecycle scenario.
"""

from __future__ import annotations

from pathlib import Path

import typer

from ojs_lifecycle.cli.utils import console, fail, load_job_or_default, output_json, print_table
from ojs_lifecycle.core.duration import format_duration
from ojs_lifecycle.core.settings import get_settings
from ojs_lifecycle.execution.jobs import BACKOFF_STRATEGIES
from ojs_lifecycle.execution.models import SimulationEvent
from ojs_lifecycle.execution.scenarios import Scenario
from ojs_lifecycle.execution.simulation import SimulationConfig, run_simulation


def _event_detail(event: SimulationEvent) -> str:
    details: list[str] = []
    if event.delay is not None:
        details.append(f"delay {format_duration(event.delay)}")
    if event.error is not None:
        details.append(f"{event.error.type}: {event.error.message}")
    if event.progress is not None:
        details.append(f"{round(event.progress * 100)}%")
    if event.workflow_step is not None:
        details.append(f"step {event.workflow_step}")
    if event.dead_lettered:
        details.append("dead-lettered")
    if event.backpressure is not None:
        details.append(f"backpressure {event.backpressure}")
    return ", ".join(details)


def simulate(
    job_file: Path | None = typer.Argument(None, help="Job envelope (JSON or YAML); defaults to the example job"),
    scenario: Scenario = typer.Option(Scenario.SUCCESS_FIRST_ATTEMPT, "--scenario", "-s", help="Lifecycle scenario"),
    strategy: str | None = typer.Option(None, "--strategy", help="Backoff: none, linear, exponential, polynomial"),
    seed: int | None = typer.Option(None, "--seed", help="PRNG seed for jitter"),
    fail_on: list[int] | None = typer.Option(None, "--fail-on", help="Attempt that fails (custom scenario, repeatable)"),
    cancel_on: int | None = typer.Option(None, "--cancel-on", help="Cancel during this attempt"),
    non_retryable_on: int | None = typer.Option(None, "--non-retryable-on", help="Non-retryable error on this attempt"),
    timeout_on: int | None = typer.Option(None, "--timeout-on", help="Time out on this attempt"),
    progress_steps: int = typer.Option(5, "--progress-steps", min=0, help="Progress updates to emit"),
    queue_depth: int = typer.Option(100, "--queue-depth", help="Current queue depth (backpressure)"),
    queue_max_size: int = typer.Option(50, "--queue-max-size", help="Queue capacity (backpressure)"),
    backpressure: str = typer.Option("reject", "--backpressure", help="Backpressure strategy label"),
    steps: list[str] | None = typer.Option(None, "--step", help="Workflow step name (repeatable)"),
    json_out: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Simulate a job's lifecycle and print every state change."""
    settings = get_settings()
    strategy = strategy or settings.default_strategy
    if strategy not in BACKOFF_STRATEGIES:
        fail(f"Unknown strategy {strategy!r}; expected one of {', '.join(BACKOFF_STRATEGIES)}")

    job = load_job_or_default(job_file)
    config = SimulationConfig(
        job=job,
        scenario=scenario,
        strategy=strategy,
        seed=settings.default_seed if seed is None else seed,
        fail_on_attempts=tuple(fail_on) if fail_on else None,
        cancel_on_attempt=cancel_on,
        non_retryable_error_on_attempt=non_retryable_on,
        timeout_on_attempt=timeout_on,
        progress_steps=progress_steps,
        backpressure_strategy=backpressure,
        queue_depth=queue_depth,
        queue_max_size=queue_max_size,
        workflow_steps=tuple(steps) if steps else None,
    )
    result = run_simulation(config)

    if json_out:
        output_json(result.to_dict())
        return

    print_table(
        (
            (i, event.timestamp, f"{getattr(event.from_state, 'value', event.from_state)} → {event.to_state.value}",
             event.attempt, event.label, _event_detail(event))
            for i, event in enumerate(result.events, start=1)
        ),
        ("#", "t (ms)", "transition", "attempt", "label", "detail"),
        title=f"{job.type} · {scenario.value}",
    )
    console.print(
        f"Final state: [bold]{result.final_state.value}[/bold]  "
        f"attempts: {result.total_attempts}  "
        f"duration: {format_duration(result.total_duration)}"
    )
    if result.retry_delays:
        console.print(f"Retry delays: {', '.join(format_duration(d) for d in result.retry_delays)}")
