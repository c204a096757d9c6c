"""
CLI: ``ojs-lifecycle payload``: check an envelope against size limits.
"""

from __future__ import annotations

from pathlib import Path

import typer

from ojs_lifecycle.cli.utils import console, fail, output_json, print_table
from ojs_lifecycle.core.errors import JobLoadError
from ojs_lifecycle.core.payload import DEFAULT_PAYLOAD_LIMITS, check_payload_size, format_bytes
from ojs_lifecycle.execution.jobs import read_text

app = typer.Typer(no_args_is_help=True)


@app.command("check")
def check(
    file: Path = typer.Argument(..., help="Job envelope as JSON"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Measure an envelope; exits 1 when a limit is exceeded."""
    try:
        content = read_text(file)
    except JobLoadError as exc:
        fail(str(exc), detail=exc.cause)

    result = check_payload_size(content)

    if json_out:
        output_json({**result.to_dict(), "ok": result.ok})
    else:
        limits = DEFAULT_PAYLOAD_LIMITS
        print_table(
            (
                ("envelope", format_bytes(result.total_bytes), format_bytes(limits.max_envelope_bytes)),
                ("meta", format_bytes(result.meta_bytes), format_bytes(limits.max_meta_bytes)),
                ("queue", format_bytes(result.queue_name_bytes), format_bytes(limits.max_queue_name_bytes)),
                ("type", format_bytes(result.job_type_bytes), format_bytes(limits.max_job_type_bytes)),
            ),
            ("field", "size", "limit"),
            title=str(file),
        )
        for v in result.violations:
            colour = "red" if v.severity == "error" else "yellow"
            console.print(
                f"[{colour}]{v.severity}[/{colour}]: {v.field} is {format_bytes(v.current_bytes)}"
                f" (limit {format_bytes(v.limit_bytes)})"
            )
        if not result.violations:
            console.print("[green]Within all limits.[/green]")

    if not result.ok:
        raise typer.Exit(code=1)
