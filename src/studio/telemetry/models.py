"""Telemetry records: device signals, gathered data, snapshots, error events.

Every record is a frozen dataclass. Mapping-valued fields are deep-copied
and wrapped in read-only proxies at construction, so later changes to the
caller's dict do not reach the record. Only the top level is read-only;
nested containers are the record's private copies. Sync only ever swaps
an ``ErrorEvent`` for a copy with ``synced=True`` (``dataclasses.replace``).

``ErrorEvent.context`` is reduced to JSON types on the way in: values
without a JSON form (datetimes, arbitrary objects) are stored as their
``str()``.

``to_dict()`` / ``from_dict()`` use the camelCase JSON form shared with the
browser host and the local store files.

Tags:
    telemetry, data-model, dataclasses, studio-core
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any


def _frozen_mapping(value: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(copy.deepcopy(dict(value or {})))


def _json_safe(value: Any) -> Any:
    """Copy ``value`` into plain JSON types; anything else becomes ``str(value)``."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(v) for v in value]
    return str(value)


class DeviceTier(str, Enum):
    """Coarse compute capability of a client."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"

    @property
    def rank(self) -> int:
        """Ordinal for comparisons: low < medium < high (unknown below all)."""
        return _DEVICE_TIER_RANK[self]


_DEVICE_TIER_RANK = {
    DeviceTier.UNKNOWN: -1,
    DeviceTier.LOW: 0,
    DeviceTier.MEDIUM: 1,
    DeviceTier.HIGH: 2,
}


class ConnectivityTier(str, Enum):
    """Coarse network quality from an effective-type hint."""

    SLOW = "slow"
    G3 = "3g"
    G4 = "4g"
    UNKNOWN = "unknown"


class HealthStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"
    ERROR = "error"


# ── Device ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class DeviceSignals:
    """Raw device signals read from the environment at gather time."""

    platform: str
    screen_width: int
    screen_height: int
    device_pixel_ratio: float
    orientation: str
    hardware_concurrency: int
    device_memory: float | None
    language: str
    timezone: str
    connection_effective_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "screenWidth": self.screen_width,
            "screenHeight": self.screen_height,
            "devicePixelRatio": self.device_pixel_ratio,
            "orientation": self.orientation,
            "hardwareConcurrency": self.hardware_concurrency,
            "deviceMemory": self.device_memory,
            "language": self.language,
            "timezone": self.timezone,
            "connectionEffectiveType": self.connection_effective_type,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DeviceSignals:
        return cls(
            platform=str(data.get("platform", "unknown")),
            screen_width=int(data.get("screenWidth", 0)),
            screen_height=int(data.get("screenHeight", 0)),
            device_pixel_ratio=float(data.get("devicePixelRatio", 1)),
            orientation=str(data.get("orientation", "landscape")),
            hardware_concurrency=int(data.get("hardwareConcurrency") or 0),
            device_memory=data.get("deviceMemory"),
            language=str(data.get("language", "en")),
            timezone=str(data.get("timezone", "UTC")),
            connection_effective_type=data.get("connectionEffectiveType"),
        )


@dataclass(frozen=True)
class SanitizedDevice:
    """Device record as persisted and transmitted.

    Drops the connection effective-type string; connectivity only travels
    as its coarse tier.
    """

    platform: str = "unknown"
    screen_width: int = 0
    screen_height: int = 0
    device_pixel_ratio: float = 1
    orientation: str = "landscape"
    hardware_concurrency: int = 1
    device_memory: float | None = None
    language: str = "en"
    timezone: str = "UTC"

    @classmethod
    def from_signals(cls, signals: DeviceSignals | None) -> SanitizedDevice:
        if signals is None:
            return UNKNOWN_DEVICE
        return cls(
            platform=signals.platform,
            screen_width=signals.screen_width,
            screen_height=signals.screen_height,
            device_pixel_ratio=signals.device_pixel_ratio,
            orientation=signals.orientation,
            hardware_concurrency=signals.hardware_concurrency,
            device_memory=signals.device_memory,
            language=signals.language,
            timezone=signals.timezone,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "screenWidth": self.screen_width,
            "screenHeight": self.screen_height,
            "devicePixelRatio": self.device_pixel_ratio,
            "orientation": self.orientation,
            "hardwareConcurrency": self.hardware_concurrency,
            "deviceMemory": self.device_memory,
            "language": self.language,
            "timezone": self.timezone,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SanitizedDevice:
        return cls(
            platform=data.get("platform", "unknown"),
            screen_width=data.get("screenWidth", 0),
            screen_height=data.get("screenHeight", 0),
            device_pixel_ratio=data.get("devicePixelRatio", 1),
            orientation=data.get("orientation", "landscape"),
            hardware_concurrency=data.get("hardwareConcurrency", 1),
            device_memory=data.get("deviceMemory"),
            language=data.get("language", "en"),
            timezone=data.get("timezone", "UTC"),
        )


UNKNOWN_DEVICE = SanitizedDevice()


# ── Probes ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class StorageEstimate:
    quota: int
    usage: int
    usage_percent: int

    def to_dict(self) -> dict[str, Any]:
        return {"quota": self.quota, "usage": self.usage, "usagePercent": self.usage_percent}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StorageEstimate:
        return cls(
            quota=data.get("quota", 0),
            usage=data.get("usage", 0),
            usage_percent=data.get("usagePercent", 0),
        )


@dataclass(frozen=True)
class ServiceStatus:
    name: str
    status: HealthStatus
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "status": self.status.value}
        if self.message is not None:
            result["message"] = self.message
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ServiceStatus:
        return cls(
            name=str(data["name"]),
            status=HealthStatus(data["status"]),
            message=data.get("message"),
        )


@dataclass(frozen=True)
class HealthResult:
    """Outcome of one health check: aggregate status plus per-service detail."""

    status: HealthStatus
    services: tuple[ServiceStatus, ...]
    checked_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "services": [s.to_dict() for s in self.services],
            "checkedAt": self.checked_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> HealthResult:
        return cls(
            status=HealthStatus(data["status"]),
            services=tuple(ServiceStatus.from_dict(s) for s in data.get("services", [])),
            checked_at=int(data["checkedAt"]),
        )


# ── Gathered data ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class UsageCounters:
    generations: int = 0
    imports: int = 0
    exports: int = 0
    projects_opened: int = 0
    canvas_items: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "generations": self.generations,
            "imports": self.imports,
            "exports": self.exports,
            "projectsOpened": self.projects_opened,
            "canvasItems": self.canvas_items,
        }


@dataclass(frozen=True)
class SettingsDigest:
    provider: str = "unknown"
    font_size: str = "medium"
    compact_mode: bool = False
    show_grid: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "fontSize": self.font_size,
            "compactMode": self.compact_mode,
            "showGrid": self.show_grid,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SettingsDigest:
        return cls(
            provider=data.get("provider", "unknown"),
            font_size=data.get("fontSize", "medium"),
            compact_mode=data.get("compactMode", False),
            show_grid=data.get("showGrid", True),
        )


@dataclass(frozen=True)
class GatheredData:
    """Immutable aggregate built once per gather cycle."""

    device: DeviceSignals | None
    storage: StorageEstimate | None
    features: Mapping[str, bool]
    session_id: str
    session_started_at: int
    usage: UsageCounters
    log_entries_by_type: Mapping[str, int]
    current_project_path: str
    root_folder_count: int
    asset_count: int
    settings_digest: SettingsDigest
    project_count: int
    recent_project_count: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "features", _frozen_mapping(self.features))
        object.__setattr__(self, "log_entries_by_type", _frozen_mapping(self.log_entries_by_type))


# ── Snapshot ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SnapshotPaths:
    current_project_path: str = "/"
    root_folder_count: int = 0
    asset_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentProjectPath": self.current_project_path,
            "rootFolderCount": self.root_folder_count,
            "assetCount": self.asset_count,
        }


@dataclass(frozen=True)
class ProjectCounts:
    count: int = 0
    recent_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "recentCount": self.recent_count}


@dataclass(frozen=True)
class TelemetrySnapshot:
    """One digested, signed telemetry record. Append-only."""

    id: str
    timestamp: int
    client_signature: str
    app_version: str
    device: SanitizedDevice
    storage: StorageEstimate | None
    features: Mapping[str, bool]
    session_id: str
    session_started_at: int
    session_duration_ms: int
    usage: UsageCounters
    log_entries_by_type: Mapping[str, int]
    paths: SnapshotPaths
    settings_digest: SettingsDigest
    projects: ProjectCounts
    device_tier: DeviceTier
    connectivity_tier: ConnectivityTier
    health: HealthResult | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "features", _frozen_mapping(self.features))
        object.__setattr__(self, "log_entries_by_type", _frozen_mapping(self.log_entries_by_type))

    def to_dict(self) -> dict[str, Any]:
        usage = self.usage.to_dict()
        usage["logEntriesByType"] = dict(self.log_entries_by_type)
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "clientSignature": self.client_signature,
            "appVersion": self.app_version,
            "device": self.device.to_dict(),
            "storage": self.storage.to_dict() if self.storage else None,
            "features": dict(self.features),
            "sessionId": self.session_id,
            "sessionStartedAt": self.session_started_at,
            "sessionDurationMs": self.session_duration_ms,
            "usage": usage,
            "paths": self.paths.to_dict(),
            "settingsDigest": self.settings_digest.to_dict(),
            "projects": self.projects.to_dict(),
            "deviceTier": self.device_tier.value,
            "connectivityTier": self.connectivity_tier.value,
            "health": self.health.to_dict() if self.health else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TelemetrySnapshot:
        usage = dict(data.get("usage", {}))
        log_entries = usage.pop("logEntriesByType", {})
        paths = data.get("paths", {})
        projects = data.get("projects", {})
        storage = data.get("storage")
        health = data.get("health")
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            client_signature=data["clientSignature"],
            app_version=data.get("appVersion", ""),
            device=SanitizedDevice.from_dict(data.get("device", {})),
            storage=StorageEstimate.from_dict(storage) if storage else None,
            features=data.get("features", {}),
            session_id=data["sessionId"],
            session_started_at=data["sessionStartedAt"],
            session_duration_ms=data["sessionDurationMs"],
            usage=UsageCounters(
                generations=usage.get("generations", 0),
                imports=usage.get("imports", 0),
                exports=usage.get("exports", 0),
                projects_opened=usage.get("projectsOpened", 0),
                canvas_items=usage.get("canvasItems", 0),
            ),
            log_entries_by_type=log_entries,
            paths=SnapshotPaths(
                current_project_path=paths.get("currentProjectPath", "/"),
                root_folder_count=paths.get("rootFolderCount", 0),
                asset_count=paths.get("assetCount", 0),
            ),
            settings_digest=SettingsDigest.from_dict(data.get("settingsDigest", {})),
            projects=ProjectCounts(
                count=projects.get("count", 0),
                recent_count=projects.get("recentCount", 0),
            ),
            device_tier=DeviceTier(data.get("deviceTier", "unknown")),
            connectivity_tier=ConnectivityTier(data.get("connectivityTier", "unknown")),
            health=HealthResult.from_dict(health) if health else None,
        )


# ── Error events ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ErrorEvent:
    """A locally recorded application error awaiting delivery."""

    id: str
    timestamp: int
    code: str
    message: str
    client_signature: str
    context: Mapping[str, Any] | None = None
    synced: bool = field(default=False, compare=False)

    def __post_init__(self) -> None:
        if self.context is not None:
            object.__setattr__(self, "context", MappingProxyType(_json_safe(self.context)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "code": self.code,
            "message": self.message,
            "clientSignature": self.client_signature,
            "context": dict(self.context) if self.context is not None else None,
            "synced": self.synced,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ErrorEvent:
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            code=data["code"],
            message=data["message"],
            client_signature=data["clientSignature"],
            context=data.get("context"),
            synced=bool(data.get("synced", False)),
        )
