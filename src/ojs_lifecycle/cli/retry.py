"""
CLI: ``ojs-lifecycle retry``: inspect backoff schedules.
"""

from __future__ import annotations

from pathlib import Path

import typer

from ojs_lifecycle.cli.utils import console, fail, load_job_or_default, output_json, print_table
from ojs_lifecycle.core.duration import format_duration
from ojs_lifecycle.core.settings import get_settings
from ojs_lifecycle.execution.jobs import BACKOFF_STRATEGIES
from ojs_lifecycle.execution.retry import compute_retry_schedule, merge_retry_policy

app = typer.Typer(no_args_is_help=True)


def _ms(value: float) -> str:
    return f"{value:,.1f}" if not float(value).is_integer() else f"{int(value):,}"


@app.command("schedule")
def schedule(
    job_file: Path | None = typer.Argument(None, help="Job envelope (JSON or YAML); defaults to the example job"),
    strategy: str | None = typer.Option(None, "--strategy", help="Backoff: none, linear, exponential, polynomial"),
    fail_on: list[int] | None = typer.Option(None, "--fail-on", help="Failing attempt (repeatable); default: all"),
    seed: int | None = typer.Option(None, "--seed", help="PRNG seed for jitter"),
    json_out: bool = typer.Option(False, "--json", help="Print the schedule as JSON"),
) -> None:
    """Show the retry delays a job's policy produces."""
    settings = get_settings()
    strategy = strategy or settings.default_strategy
    if strategy not in BACKOFF_STRATEGIES:
        fail(f"Unknown strategy {strategy!r}; expected one of {', '.join(BACKOFF_STRATEGIES)}")

    job = load_job_or_default(job_file)
    policy = merge_retry_policy(job.retry)
    failing = list(fail_on) if fail_on else list(range(1, policy.max_attempts + 1))
    attempts = compute_retry_schedule(
        policy, strategy, failing, settings.default_seed if seed is None else seed
    )

    if json_out:
        output_json({"policy": policy.to_dict(), "strategy": strategy, "schedule": [a.to_dict() for a in attempts]})
        return

    if not attempts:
        console.print("[dim]No retries: the first attempt is not scripted to fail.[/dim]")
        return

    print_table(
        (
            (a.retry_number, _ms(a.raw_delay), _ms(a.capped_delay), _ms(a.jittered_delay),
             format_duration(a.final_delay), format_duration(a.cumulative_time))
            for a in attempts
        ),
        ("retry", "raw (ms)", "capped (ms)", "jittered (ms)", "final", "cumulative"),
        title=f"{strategy} backoff · max_attempts={policy.max_attempts} · jitter={policy.jitter}",
    )
