"""
Root Typer application for the studio-core CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from studio.core.logging import configure_logging

app = Typer(
    name="studio-core",
    help="studio-core: client telemetry pipeline and collector.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from studio import __version__

        typer.echo(f"studio-core {__version__}")
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
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level for diagnostics."),
) -> None:
    """studio-core CLI: client signature, health probe, telemetry sync, collector."""
    configure_logging(level=log_level, json_format=False, service="studio-cli")


# ── Commands ─────────────────────────────────────────────────────────────

from studio.cli.serve import serve  # noqa: E402
from studio.cli.telemetry import health, signature, sync  # noqa: E402

app.command("signature")(signature)
app.command("health")(health)
app.command("sync")(sync)
app.command("serve")(serve)
