"""Wire payloads for snapshot and events delivery.

Pydantic models with camelCase aliases. Every field has a default, so a
payload is complete the moment it is constructed and the collector can
accept partial bodies and decide for itself what is required. Tier and
status fields are plain strings: the collector records whatever a client
reports, including values this version does not know.

Serialize with ``model_dump(by_alias=True, mode="json")``.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from studio.core.settings import DEFAULT_APP_VERSION
from studio.telemetry.models import (
    ConnectivityTier,
    DeviceTier,
    ErrorEvent,
    HealthStatus,
    TelemetrySnapshot,
)

SNAPSHOT_ENDPOINT = "/api/telemetry/snapshot"
EVENTS_ENDPOINT = "/api/telemetry/events"
UNKNOWN_SESSION = "unknown"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class DevicePayload(WireModel):
    """Sanitized device with both tiers merged in."""

    platform: str = "unknown"
    screen_width: int = 0
    screen_height: int = 0
    device_pixel_ratio: float = 1
    orientation: str = "landscape"
    hardware_concurrency: int = 1
    device_memory: float | None = None
    language: str = "en"
    timezone: str = "UTC"
    device_tier: str = DeviceTier.UNKNOWN.value
    connectivity_tier: str = ConnectivityTier.UNKNOWN.value


class SessionPayload(WireModel):
    started_at: int = 0
    duration_ms: int = 0


class UsagePayload(WireModel):
    generations: int = 0
    imports: int = 0
    exports: int = 0
    projects_opened: int = 0
    canvas_items: int = 0
    log_entries_by_type: dict[str, int] = Field(default_factory=dict)


class PathsPayload(WireModel):
    current_project_path: str = "/"
    root_folder_count: int = 0
    asset_count: int = 0


class SettingsDigestPayload(WireModel):
    provider: str = "unknown"
    font_size: str = "medium"
    compact_mode: bool = False
    show_grid: bool = True


class ProjectsPayload(WireModel):
    count: int = 0
    recent_count: int = 0


class ServiceStatusPayload(WireModel):
    name: str
    status: str
    message: str | None = None


class HealthPayload(WireModel):
    status: str = HealthStatus.ERROR.value
    services: list[ServiceStatusPayload] = Field(default_factory=list)
    checked_at: int = 0


class StoragePayload(WireModel):
    quota: int = 0
    usage: int = 0
    usage_percent: int = 0


class SnapshotPayload(WireModel):
    """Body of ``POST /api/telemetry/snapshot``."""

    session_id: str | None = None
    client_signature: str | None = None
    device: DevicePayload = Field(default_factory=DevicePayload)
    session: SessionPayload = Field(default_factory=SessionPayload)
    usage: UsagePayload = Field(default_factory=UsagePayload)
    paths: PathsPayload = Field(default_factory=PathsPayload)
    settings_digest: SettingsDigestPayload = Field(default_factory=SettingsDigestPayload)
    projects: ProjectsPayload = Field(default_factory=ProjectsPayload)
    health: HealthPayload | None = None
    storage: StoragePayload | None = None
    features: dict[str, bool] = Field(default_factory=dict)
    app_version: str = DEFAULT_APP_VERSION


class EventItem(WireModel):
    code: str = ""
    message: str = ""
    client_signature: str | None = None
    context: dict[str, Any] | None = None
    timestamp: int | None = None


class EventsPayload(WireModel):
    """Body of ``POST /api/telemetry/events``."""

    session_id: str | None = None
    client_signature: str | None = None
    events: list[EventItem] = Field(default_factory=list)


def build_snapshot_payload(snapshot: TelemetrySnapshot) -> SnapshotPayload:
    """Delivery payload for ``snapshot``; ``appVersion`` is taken as recorded."""
    device = snapshot.device
    health = snapshot.health
    storage = snapshot.storage
    return SnapshotPayload(
        session_id=snapshot.session_id,
        client_signature=snapshot.client_signature,
        device=DevicePayload(
            platform=device.platform,
            screen_width=device.screen_width,
            screen_height=device.screen_height,
            device_pixel_ratio=device.device_pixel_ratio,
            orientation=device.orientation,
            hardware_concurrency=device.hardware_concurrency,
            device_memory=device.device_memory,
            language=device.language,
            timezone=device.timezone,
            device_tier=snapshot.device_tier.value,
            connectivity_tier=snapshot.connectivity_tier.value,
        ),
        session=SessionPayload(
            started_at=snapshot.session_started_at,
            duration_ms=snapshot.session_duration_ms,
        ),
        usage=UsagePayload(
            generations=snapshot.usage.generations,
            imports=snapshot.usage.imports,
            exports=snapshot.usage.exports,
            projects_opened=snapshot.usage.projects_opened,
            canvas_items=snapshot.usage.canvas_items,
            log_entries_by_type=dict(snapshot.log_entries_by_type),
        ),
        paths=PathsPayload(
            current_project_path=snapshot.paths.current_project_path,
            root_folder_count=snapshot.paths.root_folder_count,
            asset_count=snapshot.paths.asset_count,
        ),
        settings_digest=SettingsDigestPayload(
            provider=snapshot.settings_digest.provider,
            font_size=snapshot.settings_digest.font_size,
            compact_mode=snapshot.settings_digest.compact_mode,
            show_grid=snapshot.settings_digest.show_grid,
        ),
        projects=ProjectsPayload(
            count=snapshot.projects.count,
            recent_count=snapshot.projects.recent_count,
        ),
        health=HealthPayload(
            status=health.status.value,
            services=[
                ServiceStatusPayload(name=s.name, status=s.status.value, message=s.message)
                for s in health.services
            ],
            checked_at=health.checked_at,
        ) if health else None,
        storage=StoragePayload(
            quota=storage.quota,
            usage=storage.usage,
            usage_percent=storage.usage_percent,
        ) if storage else None,
        features=dict(snapshot.features),
        app_version=snapshot.app_version or DEFAULT_APP_VERSION,
    )


def build_events_payload(
    events: Sequence[ErrorEvent], session_id: str | None = None
) -> EventsPayload:
    """One batch carrying every event; the batch signature is the first event's."""
    return EventsPayload(
        session_id=session_id or UNKNOWN_SESSION,
        client_signature=events[0].client_signature if events else UNKNOWN_SESSION,
        events=[
            EventItem(
                code=e.code,
                message=e.message,
                client_signature=e.client_signature,
                context=dict(e.context) if e.context is not None else None,
                timestamp=e.timestamp,
            )
            for e in events
        ],
    )
