"""Local telemetry state: snapshot history and the error-event outbox.

Both stores are process-wide, thread-safe, and optionally persisted as a
JSON document. Sync only touches delivery bookkeeping here
(``last_synced_at`` and ``ErrorEvent.synced``), never record content.

Persisted state:

    TelemetryStore  → snapshots, lastSyncedAt, telemetryEnabled  (health is not)
    ErrorStore      → events

A missing, unreadable or malformed file loads as an empty store, and a
failed write is logged. In both cases the in-memory state stays in use.

Tags:
    telemetry, store, persistence, studio-core
"""

from __future__ import annotations

import json
import os
import threading
from collections.abc import Iterable, Mapping
from dataclasses import replace
from pathlib import Path
from typing import Any

from studio.core.logging import get_logger
from studio.core.settings import get_settings
from studio.core.timestamps import new_id, now_ms
from studio.telemetry.environment import RuntimeEnvironment
from studio.telemetry.models import (
    ConnectivityTier,
    DeviceTier,
    ErrorEvent,
    HealthResult,
    TelemetrySnapshot,
)
from studio.telemetry.signature import compute_client_signature

logger = get_logger(__name__)

MAX_SNAPSHOTS = 10
MAX_EVENTS = 100


def _read_json(path: Path | None) -> dict[str, Any] | None:
    """Load a persisted store document; unreadable files count as absent."""
    if path is None or not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("store_file_unreadable", path=str(path), error=str(e))
        return None
    if not isinstance(data, dict):
        logger.warning("store_file_unreadable", path=str(path), error="not a JSON object")
        return None
    return data


def _write_json(path: Path, data: Mapping[str, Any]) -> None:
    """Atomically replace ``path``. Failures are logged; memory stays authoritative."""
    try:
        text = json.dumps(data, indent=2, default=str)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)
    except (OSError, TypeError, ValueError) as e:
        logger.warning("store_persist_failed", path=str(path), error=str(e))


class TelemetryStore:
    """Newest-first snapshot history plus sync and health state.

    Example:
        >>> store = TelemetryStore(telemetry_enabled=True)
        >>> store.upsert_snapshot(snapshot)
        >>> store.latest_snapshot() is snapshot
        True
    """

    def __init__(
        self,
        *,
        telemetry_enabled: bool | None = None,
        persist_path: Path | str | None = None,
        max_snapshots: int = MAX_SNAPSHOTS,
    ):
        self._lock = threading.RLock()
        self._persist_path = Path(persist_path) if persist_path else None
        self._max_snapshots = max_snapshots
        self._snapshots: list[TelemetrySnapshot] = []
        self._last_synced_at: int | None = None
        self._health: HealthResult | None = None
        self._telemetry_enabled = (
            telemetry_enabled if telemetry_enabled is not None
            else get_settings().telemetry_enabled
        )

        stored = _read_json(self._persist_path)
        if stored is not None:
            try:
                self._snapshots = [
                    TelemetrySnapshot.from_dict(s) for s in stored.get("snapshots", [])
                ][: self._max_snapshots]
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(
                    "store_snapshots_discarded", path=str(self._persist_path), error=str(e)
                )
            self._last_synced_at = stored.get("lastSyncedAt")
            if telemetry_enabled is None and "telemetryEnabled" in stored:
                self._telemetry_enabled = bool(stored["telemetryEnabled"])

    # ── Snapshots ────────────────────────────────────────────────

    @property
    def snapshots(self) -> tuple[TelemetrySnapshot, ...]:
        with self._lock:
            return tuple(self._snapshots)

    def upsert_snapshot(self, snapshot: TelemetrySnapshot) -> None:
        """Put ``snapshot`` first, replacing any entry with the same id."""
        with self._lock:
            rest = [s for s in self._snapshots if s.id != snapshot.id]
            self._snapshots = [snapshot, *rest][: self._max_snapshots]
            self._persist()

    def latest_snapshot(self) -> TelemetrySnapshot | None:
        with self._lock:
            return self._snapshots[0] if self._snapshots else None

    # ── Sync / health state ──────────────────────────────────────

    @property
    def last_synced_at(self) -> int | None:
        return self._last_synced_at

    def set_last_synced_at(self, timestamp: int) -> None:
        with self._lock:
            self._last_synced_at = timestamp
            self._persist()

    @property
    def health(self) -> HealthResult | None:
        return self._health

    def set_health(self, health: HealthResult | None) -> None:
        with self._lock:
            self._health = health

    @property
    def telemetry_enabled(self) -> bool:
        return self._telemetry_enabled

    def set_telemetry_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._telemetry_enabled = enabled
            self._persist()

    def clear(self) -> None:
        """Drop snapshots, sync time and health. The opt-in flag is kept."""
        with self._lock:
            self._snapshots = []
            self._last_synced_at = None
            self._health = None
            self._persist()

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "snapshots": [s.to_dict() for s in self._snapshots],
                "lastSyncedAt": self._last_synced_at,
                "telemetryEnabled": self._telemetry_enabled,
            }

    def _persist(self) -> None:
        if self._persist_path is not None:
            _write_json(self._persist_path, self.to_dict())


class ErrorStore:
    """Newest-first outbox of application errors awaiting delivery."""

    def __init__(
        self,
        *,
        persist_path: Path | str | None = None,
        max_events: int = MAX_EVENTS,
        environment: RuntimeEnvironment | None = None,
    ):
        self._lock = threading.RLock()
        self._persist_path = Path(persist_path) if persist_path else None
        self._max_events = max_events
        self._environment = environment
        self._events: list[ErrorEvent] = []

        stored = _read_json(self._persist_path)
        if stored is not None:
            try:
                self._events = [ErrorEvent.from_dict(e) for e in stored.get("events", [])][
                    : self._max_events
                ]
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(
                    "store_events_discarded", path=str(self._persist_path), error=str(e)
                )

    @property
    def events(self) -> tuple[ErrorEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def append(
        self,
        code: str,
        message: str,
        context: Mapping[str, Any] | None = None,
        *,
        device_tier: DeviceTier = DeviceTier.UNKNOWN,
        connectivity_tier: ConnectivityTier = ConnectivityTier.UNKNOWN,
        app_version: str | None = None,
    ) -> ErrorEvent:
        """Record an error stamped with the signature active right now."""
        event = ErrorEvent(
            id=new_id(),
            timestamp=now_ms(),
            code=code,
            message=message,
            client_signature=compute_client_signature(
                device_tier,
                connectivity_tier,
                environment=self._environment,
                app_version=app_version,
            ),
            context=context,
        )
        with self._lock:
            self._events = [event, *self._events][: self._max_events]
            self._persist()
        logger.debug("error_event_recorded", event_id=event.id, code=code)
        return event

    def mark_synced(self, ids: Iterable[str]) -> int:
        """Flag events as delivered. Idempotent; returns how many flipped."""
        wanted = set(ids)
        flipped = 0
        with self._lock:
            updated = []
            for event in self._events:
                if event.id in wanted and not event.synced:
                    event = replace(event, synced=True)
                    flipped += 1
                updated.append(event)
            self._events = updated
            if flipped:
                self._persist()
        return flipped

    def unsynced(self) -> list[ErrorEvent]:
        with self._lock:
            return [e for e in self._events if not e.synced]

    def clear(self) -> None:
        with self._lock:
            self._events = []
            self._persist()

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {"events": [e.to_dict() for e in self._events]}

    def _persist(self) -> None:
        if self._persist_path is not None:
            _write_json(self._persist_path, self.to_dict())
