"""
CLI: ``studio-core signature | health | sync``: telemetry commands.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from studio.cli.utils import console, fail, load_state, output_dict, print_table, store_states
from studio.core.errors import StudioError
from studio.core.settings import get_settings


def signature(
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Print the client signature of this process."""
    from studio.telemetry.environment import ProcessEnvironment, gather_feature_flags
    from studio.telemetry.signature import compute_client_signature
    from studio.telemetry.tiers import tiers_for

    settings = get_settings()
    env = ProcessEnvironment(settings)
    device_tier, connectivity_tier = tiers_for(env.device_signals())
    output_dict(
        {
            "signature": compute_client_signature(
                device_tier, connectivity_tier, environment=env, app_version=settings.app_version
            ),
            "appVersion": settings.app_version,
            "buildId": env.build_id(),
            "deviceTier": device_tier.value,
            "connectivityTier": connectivity_tier.value,
            "features": gather_feature_flags(env),
        },
        as_json=json_out,
        title="Client signature",
    )


def health(
    url: str | None = typer.Option(None, "--url", "-u", help="Backend base URL"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Probe the backend the way the collector's /api/health does."""
    from studio.telemetry.health import check_health

    settings = get_settings()
    result = asyncio.run(
        check_health(url or settings.backend_url, timeout=settings.health_timeout_s)
    )
    if json_out:
        output_dict(result.to_dict(), as_json=True)
        return
    console.print(f"[bold]Status[/bold]: {result.status.value}")
    print_table([s.to_dict() for s in result.services], title="Services")


def sync(
    state_file: Path = typer.Option(..., "--state", "-s", help="JSON state file"),
    collector_url: str | None = typer.Option(None, "--collector-url", help="Collector base URL"),
    skip_health: bool = typer.Option(False, "--skip-health", help="Do not probe the backend"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run one gather → digest → sync cycle from a state file."""
    from studio.telemetry.environment import ClientEnvironment, ProcessEnvironment
    from studio.telemetry.runner import TelemetryRunner
    from studio.telemetry.store import ErrorStore, TelemetryStore

    settings = get_settings()
    if collector_url:
        settings = settings.model_copy(update={"collector_url": collector_url.rstrip("/")})

    state = load_state(state_file)
    report = state.get("environment")
    env = ClientEnvironment.from_report(report) if report else ProcessEnvironment(settings)

    telemetry_store = TelemetryStore(persist_path=settings.data_dir / "telemetry.json")
    error_store = ErrorStore(persist_path=settings.data_dir / "errors.json", environment=env)

    async def no_health() -> None:
        return None

    runner = TelemetryRunner(
        stores=lambda: store_states(state),
        telemetry_store=telemetry_store,
        error_store=error_store,
        environment=env,
        health_check=no_health if skip_health else None,
        settings=settings,
    )
    try:
        snapshot = asyncio.run(runner.start())
    except (StudioError, KeyError, AttributeError, TypeError) as e:
        fail(f"Telemetry cycle failed: {e}", type(e).__name__)

    result = runner.last_sync_result
    output_dict(
        {
            "snapshotId": snapshot.id if snapshot else None,
            "clientSignature": snapshot.client_signature if snapshot else None,
            "telemetryEnabled": telemetry_store.telemetry_enabled,
            "snapshotOk": result.snapshot_ok if result else False,
            "eventsOk": result.events_ok if result else False,
        },
        as_json=json_out,
        title="Telemetry cycle",
    )
