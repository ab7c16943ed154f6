"""Gather: read-only collection of raw state into one immutable aggregate.

Six state containers are owned elsewhere (user/session, action log, file
tree, settings, project list, canvas). Gather reads them through the
narrow protocols below, either as attributes or mapping keys, and never
writes back.

Tags:
    telemetry, gather, state, studio-core
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any, Protocol

from studio.core.logging import get_logger
from studio.telemetry.environment import RuntimeEnvironment, gather_feature_flags
from studio.telemetry.models import (
    DeviceSignals,
    GatheredData,
    SettingsDigest,
    StorageEstimate,
    UsageCounters,
)

logger = get_logger(__name__)

_MISSING = object()


class UserStoreState(Protocol):
    device_info: DeviceSignals | None
    session: Any  # session_id, started_at, generations_count, imports_count, exports_count
    recent_projects: Any


class LogStoreState(Protocol):
    entries: Iterable[Any]  # each with a ``type``


class FileStoreState(Protocol):
    current_project_path: str
    root_nodes: Iterable[Any]
    assets: Any


class SettingsStoreState(Protocol):
    settings: Mapping[str, Any]  # appearance{font_size, compact_mode}, ai_provider{provider}, show_grid


class ProjectsStoreState(Protocol):
    projects: Any
    recent_project_ids: Any


class CanvasStoreState(Protocol):
    items: Any


@dataclass(frozen=True)
class StoreStates:
    """The six read-only state containers handed to ``gather_from_stores``."""

    user: UserStoreState
    log: LogStoreState
    files: FileStoreState
    settings: SettingsStoreState
    projects: ProjectsStoreState
    canvas: CanvasStoreState


def _field(obj: Any, name: str, default: Any = _MISSING) -> Any:
    """Read ``name`` from a mapping or an object.

    Without a default a missing field raises, so malformed state surfaces.
    """
    if isinstance(obj, Mapping):
        if default is _MISSING:
            return obj[name]
        value = obj.get(name, default)
    else:
        if default is _MISSING:
            return getattr(obj, name)
        value = getattr(obj, name, default)
    return default if value is None else value


def _size(collection: Any) -> int:
    return len(collection) if collection is not None else 0


def count_folders(nodes: Iterable[Any] | None) -> int:
    """Count nodes typed ``folder``, descending into folder children at any depth."""
    count = 0
    for node in nodes or ():
        if node is None or _field(node, "type", None) != "folder":
            continue
        count += 1
        children = _field(node, "children", None)
        if isinstance(children, (list, tuple)):
            count += count_folders(children)
    return count


def _log_histogram(entries: Iterable[Any]) -> dict[str, int]:
    histogram: dict[str, int] = {}
    for entry in entries:
        kind = _field(entry, "type")
        key = kind.value if hasattr(kind, "value") else str(kind)
        histogram[key] = histogram.get(key, 0) + 1
    return histogram


def _settings_digest(settings_state: Any) -> SettingsDigest:
    settings = _field(settings_state, "settings", {})
    appearance = _field(settings, "appearance", {})
    ai_provider = _field(settings, "ai_provider", {})
    return SettingsDigest(
        provider=_field(ai_provider, "provider", "unknown"),
        font_size=_field(appearance, "font_size", "medium"),
        compact_mode=bool(_field(appearance, "compact_mode", False)),
        show_grid=bool(_field(settings, "show_grid", True)),
    )


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


async def gather_storage_estimate(environment: RuntimeEnvironment) -> StorageEstimate | None:
    """Best-effort storage quota estimate.

    Returns None when the environment has no storage API or the probe
    raises; a missing estimate never aborts the cycle.
    """
    try:
        estimate = await environment.storage_estimate()
    except Exception as e:
        logger.debug("storage_estimate_failed", error=str(e))
        return None
    if estimate is None:
        return None

    quota, usage = (int(v or 0) for v in estimate)
    usage_percent = _round_half_up(usage / quota * 100) if quota > 0 else 0
    return StorageEstimate(quota=quota, usage=usage, usage_percent=usage_percent)


def gather_from_stores(
    stores: StoreStates,
    *,
    environment: RuntimeEnvironment,
    device: DeviceSignals | None = None,
) -> GatheredData:
    """Reduce the six containers to a ``GatheredData`` with ``storage=None``.

    Args:
        stores: Read-only state containers
        environment: Source of feature flags
        device: Freshly probed device signals; falls back to the user
            container's ``device_info``
    """
    user = stores.user
    session = _field(user, "session")

    return GatheredData(
        device=device if device is not None else _field(user, "device_info", None),
        storage=None,
        features=gather_feature_flags(environment),
        session_id=_field(session, "session_id"),
        session_started_at=_field(session, "started_at"),
        usage=UsageCounters(
            generations=_field(session, "generations_count", 0),
            imports=_field(session, "imports_count", 0),
            exports=_field(session, "exports_count", 0),
            projects_opened=_size(_field(user, "recent_projects", None)),
            canvas_items=_size(_field(stores.canvas, "items", None)),
        ),
        log_entries_by_type=_log_histogram(_field(stores.log, "entries", ())),
        current_project_path=_field(stores.files, "current_project_path", "") or "/",
        root_folder_count=count_folders(_field(stores.files, "root_nodes", ())),
        asset_count=_size(_field(stores.files, "assets", None)),
        settings_digest=_settings_digest(stores.settings),
        project_count=_size(_field(stores.projects, "projects", None)),
        recent_project_count=_size(_field(stores.projects, "recent_project_ids", None)),
    )


def with_storage(gathered: GatheredData, storage: StorageEstimate | None) -> GatheredData:
    """Copy of ``gathered`` with the storage estimate attached."""
    return replace(gathered, storage=storage)
