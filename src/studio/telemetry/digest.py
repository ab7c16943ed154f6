"""Digest: turn gathered data and a health result into a signed snapshot."""

from __future__ import annotations

from studio.core.errors import SessionClockError
from studio.core.logging import get_logger
from studio.core.timestamps import new_id
from studio.core.timestamps import now_ms as _now_ms
from studio.telemetry.environment import RuntimeEnvironment
from studio.telemetry.models import (
    GatheredData,
    HealthResult,
    ProjectCounts,
    SanitizedDevice,
    SnapshotPaths,
    TelemetrySnapshot,
)
from studio.telemetry.signature import compute_client_signature, resolve_app_version
from studio.telemetry.tiers import tiers_for

logger = get_logger(__name__)


def digest_gathered_data(
    gathered: GatheredData,
    health: HealthResult | None,
    *,
    environment: RuntimeEnvironment | None = None,
    app_version: str | None = None,
    now_ms: int | None = None,
) -> TelemetrySnapshot:
    """
    Build a ``TelemetrySnapshot`` from one gather cycle.

    Pure apart from the fresh id and the current time. Tiers come from
    ``gathered.device`` (``unknown`` when absent) and the signature is
    recomputed on every call. The persisted device record omits the raw
    connection effective-type.

    Args:
        gathered: Output of the gather phase (storage attached)
        health: Health result, or None if the probe produced nothing
        environment: Passed through to the signature builder
        app_version: Version embedded in signature and snapshot
        now_ms: Digest time override (epoch ms)

    Raises:
        SessionClockError: If the session started after ``now_ms``
    """
    timestamp = now_ms if now_ms is not None else _now_ms()
    duration_ms = timestamp - gathered.session_started_at
    if duration_ms < 0:
        raise SessionClockError(gathered.session_started_at, timestamp)

    device_tier, connectivity_tier = tiers_for(gathered.device)
    version = resolve_app_version(app_version)
    signature = compute_client_signature(
        device_tier, connectivity_tier, environment=environment, app_version=version
    )

    snapshot = TelemetrySnapshot(
        id=new_id(),
        timestamp=timestamp,
        client_signature=signature,
        app_version=version,
        device=SanitizedDevice.from_signals(gathered.device),
        storage=gathered.storage,
        features=gathered.features,
        session_id=gathered.session_id,
        session_started_at=gathered.session_started_at,
        session_duration_ms=duration_ms,
        usage=gathered.usage,
        log_entries_by_type=gathered.log_entries_by_type,
        paths=SnapshotPaths(
            current_project_path=gathered.current_project_path,
            root_folder_count=gathered.root_folder_count,
            asset_count=gathered.asset_count,
        ),
        settings_digest=gathered.settings_digest,
        projects=ProjectCounts(
            count=gathered.project_count,
            recent_count=gathered.recent_project_count,
        ),
        device_tier=device_tier,
        connectivity_tier=connectivity_tier,
        health=health,
    )
    logger.debug(
        "snapshot_digested",
        snapshot_id=snapshot.id,
        client_signature=signature,
        device_tier=device_tier.value,
        connectivity_tier=connectivity_tier.value,
    )
    return snapshot
