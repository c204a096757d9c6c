"""
CLI utility helpers: output formatting and input loading.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ojs_lifecycle.core.errors import OJSLifecycleError
from ojs_lifecycle.execution.jobs import DEFAULT_JOB, JobEnvelope, load_job_file

console = Console()
err_console = Console(stderr=True)


# ── Input helpers ────────────────────────────────────────────────────────


def load_job_or_default(path: Path | None) -> JobEnvelope:
    """Load the job file at ``path``, or the built-in example job when omitted."""
    if path is None:
        return DEFAULT_JOB
    try:
        return load_job_file(path)
    except OJSLifecycleError as exc:
        fail(str(exc), detail=exc.cause)


# ── Output helpers ───────────────────────────────────────────────────────


def fail(message: str, *, detail: Any = None) -> NoReturn:
    """Print a red error to stderr and exit with status 1."""
    err_console.print(f"[bold red]Error[/bold red]: {escape(message)}")
    if detail is not None:
        err_console.print(f"[dim]{escape(str(detail))}[/dim]")
    raise typer.Exit(code=1)


def output_json(payload: Any) -> None:
    """Write machine-readable JSON to stdout."""
    typer.echo(json.dumps(payload, indent=2, default=str))


def print_table(
    rows: Iterable[Sequence[Any]],
    columns: Sequence[str],
    *,
    title: str = "",
) -> None:
    """Render rows as a Rich table; ``None`` cells print as blanks."""
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in columns:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*("" if v is None else escape(str(v)) for v in row))
    console.print(table)
