"""
Shared pytest fixtures for studio-core tests.

This module provides:
- Settings isolation (no ``STUDIO_*`` leakage between tests)
- Fake runtime environments and store state
- Snapshot / event factories
- Recording sleep for retry tests
- httpx mock transports

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from studio.core.settings import StudioSettings, reset_settings
from studio.telemetry.environment import ClientEnvironment
from studio.telemetry.gather import StoreStates
from studio.telemetry.models import (
    ConnectivityTier,
    DeviceSignals,
    DeviceTier,
    ErrorEvent,
    HealthResult,
    HealthStatus,
    ProjectCounts,
    SanitizedDevice,
    ServiceStatus,
    SettingsDigest,
    SnapshotPaths,
    StorageEstimate,
    TelemetrySnapshot,
    UsageCounters,
)

SESSION_STARTED_AT = 1_700_000_000_000


# =============================================================================
# Settings isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Strip ``STUDIO_*`` variables and drop the cached settings."""
    for key in list(os.environ):
        if key.startswith("STUDIO_") or key == "BACKEND_URL":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("STUDIO_DATA_DIR", str(tmp_path / "studio-data"))
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings(tmp_path: Path) -> StudioSettings:
    return StudioSettings(
        collector_url="http://collector.test",
        backend_url="http://backend.test",
        data_dir=tmp_path / "data",
        sync_retry_delay_s=3.0,
    )


# =============================================================================
# Environments and device signals
# =============================================================================


def make_device(**overrides: Any) -> DeviceSignals:
    values: dict[str, Any] = {
        "platform": "MacIntel",
        "screen_width": 1920,
        "screen_height": 1080,
        "device_pixel_ratio": 2.0,
        "orientation": "landscape",
        "hardware_concurrency": 8,
        "device_memory": 8,
        "language": "en-US",
        "timezone": "Europe/Berlin",
        "connection_effective_type": "4g",
    }
    values.update(overrides)
    return DeviceSignals(**values)


@pytest.fixture
def device() -> DeviceSignals:
    return make_device()


@pytest.fixture
def client_env(device: DeviceSignals) -> ClientEnvironment:
    return ClientEnvironment(
        build="b7f3",
        flags={"webgl": True, "workers": True, "indexedDB": True, "serviceWorker": False},
        device=device,
        online=True,
        storage=(1_000_000, 250_000),
    )


# =============================================================================
# Store state
# =============================================================================


def make_store_states(**overrides: Any) -> StoreStates:
    sections: dict[str, Any] = {
        "user": {
            "device_info": None,
            "session": {
                "session_id": "sess-1",
                "started_at": SESSION_STARTED_AT,
                "generations_count": 4,
                "imports_count": 2,
                "exports_count": 1,
            },
            "recent_projects": ["p1", "p2"],
        },
        "log": {"entries": [{"type": "info"}, {"type": "error"}, {"type": "info"}]},
        "files": {
            "current_project_path": "/projects/demo",
            "root_nodes": [
                {"type": "folder", "children": [{"type": "folder", "children": []}, {"type": "file"}]},
                {"type": "file"},
                {"type": "folder"},
            ],
            "assets": ["a.png", "b.png", "c.png"],
        },
        "settings": {
            "settings": {
                "appearance": {"font_size": "large", "compact_mode": True},
                "ai_provider": {"provider": "gemini"},
                "show_grid": False,
            }
        },
        "projects": {"projects": ["p1", "p2", "p3"], "recent_project_ids": ["p1"]},
        "canvas": {"items": [1, 2, 3, 4, 5]},
    }
    sections.update(overrides)
    return StoreStates(**sections)


@pytest.fixture
def store_states() -> StoreStates:
    return make_store_states()


# =============================================================================
# Record factories
# =============================================================================


def make_health(status: HealthStatus = HealthStatus.OK) -> HealthResult:
    return HealthResult(
        status=status,
        services=(
            ServiceStatus("Backend API", status, "Connected"),
            ServiceStatus("PostgreSQL", HealthStatus.OK, "Via backend"),
        ),
        checked_at=SESSION_STARTED_AT + 500,
    )


def make_snapshot(**overrides: Any) -> TelemetrySnapshot:
    values: dict[str, Any] = {
        "id": "snap-1",
        "timestamp": SESSION_STARTED_AT + 60_000,
        "client_signature": "v1.0.0-abc123",
        "app_version": "1.0.0",
        "device": SanitizedDevice(platform="MacIntel", hardware_concurrency=8, device_memory=8),
        "storage": StorageEstimate(quota=1000, usage=250, usage_percent=25),
        "features": {"webgl": True, "workers": False},
        "session_id": "sess-1",
        "session_started_at": SESSION_STARTED_AT,
        "session_duration_ms": 60_000,
        "usage": UsageCounters(generations=3, imports=1, exports=0, projects_opened=2, canvas_items=7),
        "log_entries_by_type": {"info": 2, "error": 1},
        "paths": SnapshotPaths("/projects/demo", 2, 3),
        "settings_digest": SettingsDigest("gemini", "large", True, False),
        "projects": ProjectCounts(count=3, recent_count=1),
        "device_tier": DeviceTier.HIGH,
        "connectivity_tier": ConnectivityTier.G4,
        "health": make_health(),
    }
    values.update(overrides)
    return TelemetrySnapshot(**values)


def make_event(event_id: str = "evt-1", **overrides: Any) -> ErrorEvent:
    values: dict[str, Any] = {
        "id": event_id,
        "timestamp": SESSION_STARTED_AT + 1_000,
        "code": "GENERATION_FAILED",
        "message": "Provider answered 500",
        "client_signature": "v1.0.0-abc123",
        "context": {"status": 500},
    }
    values.update(overrides)
    return ErrorEvent(**values)


@pytest.fixture
def snapshot() -> TelemetrySnapshot:
    return make_snapshot()


# =============================================================================
# Async helpers
# =============================================================================


class SleepRecorder:
    """Stands in for ``asyncio.sleep``; records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient routed through an in-process handler."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
