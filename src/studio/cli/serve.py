"""
CLI: ``studio-core serve``: start the telemetry collector.
"""

from __future__ import annotations

import typer
import uvicorn

from studio.cli.utils import console


def serve(
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Bind address"),
    port: int = typer.Option(3000, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on changes"),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Start the collector REST API server."""
    console.print(f"[bold green]Starting studio-core collector[/bold green] on {host}:{port}")
    uvicorn.run(
        "studio.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )
