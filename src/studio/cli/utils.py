"""
CLI utility helpers: output formatting and state-file loading.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from studio.telemetry.gather import StoreStates
from studio.telemetry.models import DeviceSignals

console = Console()
err_console = Console(stderr=True)

STATE_SECTIONS = ("user", "log", "files", "settings", "projects", "canvas")


def fail(message: str, code: str = "ERROR") -> NoReturn:
    err_console.print(f"[bold red]Error[/bold red] ({code}): {message}")
    raise typer.Exit(code=1)


def load_state(path: Path) -> dict[str, Any]:
    """Read a JSON state file (the six containers plus an optional ``environment``)."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        fail(f"State file not found: {path}", "NOT_FOUND")
    except json.JSONDecodeError as e:
        fail(f"State file is not valid JSON: {e}", "INVALID_INPUT")


def store_states(state: dict[str, Any]) -> StoreStates:
    """Wrap the state-file sections; a reported ``device_info`` becomes ``DeviceSignals``."""
    sections = {name: state.get(name) or {} for name in STATE_SECTIONS}
    device_info = sections["user"].get("device_info")
    if isinstance(device_info, dict):
        sections["user"] = {**sections["user"], "device_info": DeviceSignals.from_dict(device_info)}
    return StoreStates(**sections)


def output_dict(data: dict[str, Any], *, as_json: bool = False, title: str = "") -> None:
    """Render a dict as JSON or as key-value pairs."""
    if as_json:
        console.print_json(json.dumps(data, default=str))
        return
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")


def print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table."""
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(str(v) if v is not None else "" for v in row.values()))
    console.print(table)
