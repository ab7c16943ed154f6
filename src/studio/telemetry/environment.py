"""Runtime environment probe: capability flags, device signals, storage.

Manifesto:
Signature derivation and gathering need to know where they run: a build
identifier, a set of capability flags, device signals, an online flag
and a storage estimate. None of that is read from ambient globals; the
pipeline is handed a ``RuntimeEnvironment`` and asks it.

ARCHITECTURE
────────────
::

    RuntimeEnvironment (Protocol)
      ├── .build_id()          → str
      ├── .feature_flags()     → dict[str, bool]
      ├── .device_signals()    → DeviceSignals | None
      ├── .is_online()         → bool
      └── .storage_estimate()  → (quota, usage) | None   (async, may raise)

    ServerEnvironment   : non-client context ("ssr", all flags off)
    ClientEnvironment   : values reported by a browser host
    ProcessEnvironment  : probes the running Python process (psutil)

A flag probe that raises reports ``False``. Storage estimation may raise;
``gather_storage_estimate`` folds that to ``None``.

Tags:
    telemetry, environment, feature-flags, psutil, protocol, studio-core
"""

from __future__ import annotations

import asyncio
import locale
import multiprocessing
import os
import platform
import sys
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import psutil

from studio.core.logging import get_logger
from studio.core.settings import StudioSettings, get_settings
from studio.telemetry.models import DeviceSignals

logger = get_logger(__name__)

SERVER_BUILD_ID = "ssr"
DEFAULT_BUILD_ID = "dev"
SERVER_FEATURE_FLAGS = ("indexedDB", "serviceWorker", "webgl", "workers")

# Browsers report deviceMemory rounded down to a power of two, capped at 8.
_MEMORY_BUCKETS = (8, 4, 2, 1, 0.5, 0.25)


@runtime_checkable
class RuntimeEnvironment(Protocol):
    """What the telemetry pipeline may ask about the place it runs in."""

    def build_id(self) -> str:
        """Identifier of the deployed build."""
        ...

    def feature_flags(self) -> dict[str, bool]:
        """Capability name → available."""
        ...

    def device_signals(self) -> DeviceSignals | None:
        """Raw device signals, or None where no device can be inspected."""
        ...

    def is_online(self) -> bool:
        ...

    async def storage_estimate(self) -> tuple[int, int] | None:
        """``(quota, usage)`` in bytes, None if the environment has no storage API."""
        ...


def _safe_flag(name: str, probe: Callable[[], Any]) -> bool:
    try:
        return bool(probe())
    except Exception as e:
        logger.debug("feature_probe_failed", flag=name, error=str(e))
        return False


def gather_feature_flags(environment: RuntimeEnvironment) -> dict[str, bool]:
    """Capability flags of ``environment``, ordered by key."""
    flags = environment.feature_flags()
    return {key: bool(flags[key]) for key in sorted(flags)}


# ── Server ───────────────────────────────────────────────────────────────


class ServerEnvironment:
    """Non-client context: no device, no storage API, every capability off."""

    def build_id(self) -> str:
        return SERVER_BUILD_ID

    def feature_flags(self) -> dict[str, bool]:
        return {name: False for name in SERVER_FEATURE_FLAGS}

    def device_signals(self) -> DeviceSignals | None:
        return None

    def is_online(self) -> bool:
        return True

    async def storage_estimate(self) -> tuple[int, int] | None:
        return None


# ── Client ───────────────────────────────────────────────────────────────


@dataclass
class ClientEnvironment:
    """Environment values reported by a client host.

    Example::

        env = ClientEnvironment.from_report({
            "buildId": "b7f3",
            "features": {"webgl": True, "workers": True},
            "device": {"platform": "MacIntel", "hardwareConcurrency": 8, ...},
            "online": True,
            "storage": {"quota": 1_000_000, "usage": 250_000},
        })
    """

    build: str = DEFAULT_BUILD_ID
    flags: dict[str, bool] = field(default_factory=dict)
    device: DeviceSignals | None = None
    online: bool = True
    storage: tuple[int, int] | None = None

    @classmethod
    def from_report(cls, report: Mapping[str, Any]) -> ClientEnvironment:
        device = report.get("device")
        storage = report.get("storage")
        return cls(
            build=report.get("buildId") or DEFAULT_BUILD_ID,
            flags={str(k): bool(v) for k, v in (report.get("features") or {}).items()},
            device=DeviceSignals.from_dict(device) if device else None,
            online=bool(report.get("online", True)),
            storage=(int(storage.get("quota", 0)), int(storage.get("usage", 0))) if storage else None,
        )

    def build_id(self) -> str:
        return self.build

    def feature_flags(self) -> dict[str, bool]:
        return dict(self.flags)

    def device_signals(self) -> DeviceSignals | None:
        return self.device

    def is_online(self) -> bool:
        return self.online

    async def storage_estimate(self) -> tuple[int, int] | None:
        return self.storage


# ── Process ──────────────────────────────────────────────────────────────


def _memory_bucket(total_bytes: int) -> float:
    gib = total_bytes / (1024**3)
    for bucket in _MEMORY_BUCKETS:
        if gib >= bucket:
            return bucket
    return _MEMORY_BUCKETS[-1]


def _existing_ancestor(path: Path) -> Path:
    path = path.expanduser()
    while not path.exists() and path != path.parent:
        path = path.parent
    return path


def _language_tag() -> str:
    lang = locale.getlocale()[0]
    if not lang or lang in ("C", "POSIX"):
        return "en"
    return lang.replace("_", "-")


def _timezone_name() -> str:
    return datetime.now().astimezone().tzname() or "UTC"


def _has_display() -> bool:
    if sys.platform in ("win32", "darwin"):
        return True
    return bool(os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY"))


def _workers_usable() -> bool:
    return multiprocessing.get_context() is not None and (os.cpu_count() or 0) > 0


class ProcessEnvironment:
    """The running Python process, probed with ``platform``, ``os`` and psutil.

    Screens do not exist here, so geometry is reported as 0x0 landscape.
    The effective-type hint and the online flag come from settings
    (``STUDIO_EFFECTIVE_TYPE``, ``STUDIO_OFFLINE``).
    """

    def __init__(self, settings: StudioSettings | None = None):
        self.settings = settings or get_settings()

    def build_id(self) -> str:
        return self.settings.build_id or DEFAULT_BUILD_ID

    def feature_flags(self) -> dict[str, bool]:
        data_dir = self.settings.data_dir
        return {
            "backgroundSync": _safe_flag(
                "backgroundSync",
                lambda: sys.platform not in ("emscripten", "wasi") and threading.active_count() > 0,
            ),
            "graphics": _safe_flag("graphics", _has_display),
            "persistentStorage": _safe_flag(
                "persistentStorage", lambda: os.access(_existing_ancestor(data_dir), os.W_OK)
            ),
            "workers": _safe_flag("workers", _workers_usable),
        }

    def device_signals(self) -> DeviceSignals | None:
        try:
            memory: float | None = _memory_bucket(psutil.virtual_memory().total)
        except Exception as e:
            logger.debug("memory_probe_failed", error=str(e))
            memory = None

        return DeviceSignals(
            platform=" ".join(p for p in (platform.system(), platform.machine()) if p) or "unknown",
            screen_width=0,
            screen_height=0,
            device_pixel_ratio=1,
            orientation="landscape",
            hardware_concurrency=os.cpu_count() or 1,
            device_memory=memory,
            language=_language_tag(),
            timezone=_timezone_name(),
            connection_effective_type=self.settings.effective_type,
        )

    def is_online(self) -> bool:
        return not self.settings.offline

    async def storage_estimate(self) -> tuple[int, int] | None:
        target = _existing_ancestor(self.settings.data_dir)
        usage = await asyncio.to_thread(psutil.disk_usage, str(target))
        return usage.total, usage.used
