"""
CLI: ``ojs-lifecycle cron``: parse expressions and preview fire times.
"""

from __future__ import annotations

from datetime import datetime, timezone

import typer

from ojs_lifecycle.cli.utils import console, fail, output_json, print_table
from ojs_lifecycle.core.cron import CRON_FIELDS, CRON_PRESETS, get_next_runs, parse_cron
from ojs_lifecycle.core.settings import get_settings

app = typer.Typer(no_args_is_help=True)


def _parse_instant(text: str) -> datetime:
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        fail(f"Invalid --from instant {text!r}; use ISO-8601, e.g. 2025-01-01T00:00:00+00:00")
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


@app.command("parse")
def parse(
    expression: str = typer.Argument(..., help="Cron expression or alias such as @daily"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Validate an expression and show its expanded fields."""
    result = parse_cron(expression)
    if json_out:
        output_json(result.to_dict())
        if not result.valid:
            raise typer.Exit(code=1)
        return

    if not result.valid or result.fields is None:
        fail(result.error or "Invalid cron expression")

    console.print(f"[bold]{result.description}[/bold]")
    print_table(
        ((spec.label, ", ".join(str(v) for v in values)) for spec, values in zip(CRON_FIELDS, result.fields)),
        ("field", "values"),
    )


@app.command("next")
def next_runs(
    expression: str = typer.Argument(..., help="Cron expression or alias"),
    count: int | None = typer.Option(None, "--count", "-n", min=1, help="How many fire times to list"),
    from_: str | None = typer.Option(None, "--from", help="Start instant (ISO-8601); default now, UTC"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List the next fire times of an expression."""
    start = _parse_instant(from_) if from_ else None
    runs = get_next_runs(expression, count or get_settings().cron_run_count, start)
    if runs is None:
        fail(parse_cron(expression).error or "Invalid cron expression")

    if json_out:
        output_json([run.isoformat() for run in runs])
        return

    if not runs:
        console.print("[dim]No fire times within the next year.[/dim]")
        return
    for run in runs:
        console.print(run.isoformat())


@app.command("presets")
def presets(json_out: bool = typer.Option(False, "--json")) -> None:
    """List common schedules."""
    if json_out:
        output_json([{"label": p.label, "expression": p.expression, "description": p.description} for p in CRON_PRESETS])
        return
    print_table(((p.label, p.expression, p.description) for p in CRON_PRESETS), ("preset", "expression", "description"))
