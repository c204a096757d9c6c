"""
Root Typer application for the ojs-lifecycle CLI.

Every sub-command is a thin shell over an engine function: it loads
input, fills unset options from ``SimulatorSettings``, calls the engine,
and renders the result as a Rich table or as JSON.
"""

from __future__ import annotations

import typer
from typer import Typer

from ojs_lifecycle.core.logging import configure_logging
from ojs_lifecycle.core.settings import get_settings

app = Typer(
    name="ojs-lifecycle",
    help="ojs-lifecycle: deterministic OJS job lifecycle simulator.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        from ojs_lifecycle import __version__

        try:
            v = pkg_version("ojs-lifecycle")
        except PackageNotFoundError:
            v = __version__
        typer.echo(f"ojs-lifecycle {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override OJS_LOG_LEVEL."),
) -> None:
    """ojs-lifecycle CLI: simulate lifecycles, retries, cron, rate limits and bulk enqueues."""
    settings = get_settings()
    configure_logging(level=log_level or settings.log_level, json_format=settings.json_logs)


# ── Sub-command registration ─────────────────────────────────────────────

from ojs_lifecycle.cli.bulk import app as bulk_app  # noqa: E402
from ojs_lifecycle.cli.cron import app as cron_app  # noqa: E402
from ojs_lifecycle.cli.payload import app as payload_app  # noqa: E402
from ojs_lifecycle.cli.ratelimit import app as ratelimit_app  # noqa: E402
from ojs_lifecycle.cli.retry import app as retry_app  # noqa: E402
from ojs_lifecycle.cli.simulate import simulate  # noqa: E402

app.command("simulate")(simulate)
app.add_typer(retry_app, name="retry", help="Retry backoff schedules.")
app.add_typer(cron_app, name="cron", help="Cron parsing and next runs.")
app.add_typer(ratelimit_app, name="ratelimit", help="Rate-limit simulation.")
app.add_typer(bulk_app, name="bulk", help="Bulk enqueue.")
app.add_typer(payload_app, name="payload", help="Payload size limits.")


if __name__ == "__main__":
    app()
