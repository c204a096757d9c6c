"""
CLI: ``ojs-lifecycle bulk``: validate a batch of jobs as one bulk enqueue.
"""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError

from ojs_lifecycle.cli.utils import console, fail, output_json, print_table
from ojs_lifecycle.core.errors import JobLoadError
from ojs_lifecycle.core.settings import get_settings
from ojs_lifecycle.execution.bulk import BulkEnqueueProcessor, BulkEnqueueRequest
from ojs_lifecycle.execution.jobs import parse_document, read_text

app = typer.Typer(no_args_is_help=True)


def _load_request(path: Path, atomic: bool | None, idempotency_key: str | None) -> BulkEnqueueRequest:
    """Accept either a bare list of jobs or a full request mapping."""
    try:
        data = parse_document(read_text(path))
    except JobLoadError as exc:
        fail(str(exc), detail=exc.cause)

    if isinstance(data, list):
        data = {"jobs": data}
    if not isinstance(data, dict):
        fail(f"Bulk file must hold a list of jobs or a request mapping, got {type(data).__name__}")
    if atomic is not None:
        data["atomicity"] = "atomic" if atomic else "partial"
    if idempotency_key is not None:
        data["idempotencyKey"] = idempotency_key

    try:
        return BulkEnqueueRequest.model_validate(data)
    except ValidationError as exc:
        fail("Invalid bulk request", detail=exc)


@app.command("enqueue")
def enqueue(
    file: Path = typer.Argument(..., help="JSON/YAML list of jobs, or {atomicity, idempotencyKey, jobs}"),
    atomic: bool | None = typer.Option(None, "--atomic/--partial", help="Roll back the whole batch on any failure"),
    idempotency_key: str | None = typer.Option(None, "--idempotency-key", help="Deduplication key"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Admit a batch and report the outcome of every item."""
    request = _load_request(file, atomic, idempotency_key)
    response = BulkEnqueueProcessor(seed=get_settings().default_seed).simulate_bulk_enqueue(request)

    if json_out:
        output_json(response.to_dict())
        return

    print_table(
        ((item.index, item.status, item.job_id, item.error) for item in response.items),
        ("index", "status", "job id", "error"),
        title=f"Bulk enqueue ({request.atomicity})",
    )
    console.print(f"total: {response.total}  succeeded: {response.succeeded}  failed: {response.failed}")
