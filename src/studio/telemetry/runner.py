"""Startup telemetry cycle: gather → digest → store → sync, at most once.

Manifesto:
    One cycle per process. Repeated starts (host remounts, duplicate
    startup hooks) must not gather again, so the runner is an explicit
    state machine flipped with a compare-and-set under a lock.

Architecture:
    ::

        NOT_STARTED ──start()──► RUNNING ──cycle ends──► DONE
             │                                           ▲
             └── any later start() returns None ─────────┘

        cycle:
          device signals (environment)
          ┌─ gather_storage_estimate ─┐
          │                           ├─ asyncio.gather (health bounded by wait_for)
          └─ health check ────────────┘
          telemetry_store.set_health
          gather_from_stores + with_storage
          digest_gathered_data
          telemetry_store.upsert_snapshot
          syncer.sync()                 (if enabled; never raises)

    ``resync()`` re-runs only the sync phase.

Tags:
    telemetry, runner, state-machine, asyncio, studio-core
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Awaitable, Callable
from enum import Enum
from functools import partial

from studio.core.logging import LogContext, get_logger
from studio.core.settings import StudioSettings, get_settings
from studio.core.timestamps import new_id
from studio.telemetry.digest import digest_gathered_data
from studio.telemetry.environment import RuntimeEnvironment
from studio.telemetry.gather import (
    StoreStates,
    gather_from_stores,
    gather_storage_estimate,
    with_storage,
)
from studio.telemetry.health import HEALTH_PATHS, check_health
from studio.telemetry.models import DeviceSignals, HealthResult, TelemetrySnapshot
from studio.telemetry.store import ErrorStore, TelemetryStore
from studio.telemetry.sync import SyncResult, TelemetrySyncer

logger = get_logger(__name__)

HealthCheck = Callable[[], Awaitable[HealthResult | None]]


class RunnerState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    DONE = "done"


class TelemetryRunner:
    """Runs the startup telemetry cycle once.

    Args:
        stores: Provider of the six state containers, called at gather time
        telemetry_store: Receives health and the new snapshot
        error_store: Outbox handed to the default syncer
        environment: Runtime environment probe
        health_check: Async callable producing a ``HealthResult``
            (default: ``check_health(settings.backend_url)``)
        syncer: Delivery component (default: built from settings)
        health_timeout: Upper bound on the health check within a cycle
        settings: Defaults for URLs, retry policy and app version
    """

    def __init__(
        self,
        *,
        stores: Callable[[], StoreStates],
        telemetry_store: TelemetryStore,
        error_store: ErrorStore,
        environment: RuntimeEnvironment,
        health_check: HealthCheck | None = None,
        syncer: TelemetrySyncer | None = None,
        health_timeout: float | None = None,
        settings: StudioSettings | None = None,
    ):
        self.settings = settings or get_settings()
        self.stores = stores
        self.telemetry_store = telemetry_store
        self.error_store = error_store
        self.environment = environment
        self.health_check = health_check or partial(
            check_health, self.settings.backend_url, timeout=self.settings.health_timeout_s
        )
        self.syncer = syncer or TelemetrySyncer(
            telemetry_store,
            error_store,
            environment=environment,
            base_url=self.settings.collector_url,
            max_retries=self.settings.sync_max_retries,
            retry_delay=self.settings.sync_retry_delay_s,
        )
        self.health_timeout = (
            health_timeout
            if health_timeout is not None
            else self.settings.health_timeout_s * len(HEALTH_PATHS)
        )
        self.last_sync_result: SyncResult | None = None
        self._state = RunnerState.NOT_STARTED
        self._state_lock = threading.Lock()

    @property
    def state(self) -> RunnerState:
        return self._state

    async def start(self) -> TelemetrySnapshot | None:
        """Run the cycle if it has never run; otherwise return None at once.

        Malformed store state and session clock errors propagate.
        """
        with self._state_lock:
            if self._state is not RunnerState.NOT_STARTED:
                logger.debug("telemetry_cycle_skipped", state=self._state.value)
                return None
            self._state = RunnerState.RUNNING

        try:
            return await self._run_cycle()
        finally:
            self._state = RunnerState.DONE

    async def resync(self) -> SyncResult:
        """Host-triggered re-delivery of the current local state."""
        self.last_sync_result = await self.syncer.sync()
        return self.last_sync_result

    async def _run_cycle(self) -> TelemetrySnapshot:
        async with LogContext(cycle_id=new_id()):
            logger.info("telemetry_cycle_started")
            device = self._device_signals()

            storage, health = await asyncio.gather(
                gather_storage_estimate(self.environment),
                self._bounded_health(),
            )
            self.telemetry_store.set_health(health)

            gathered = with_storage(
                gather_from_stores(self.stores(), environment=self.environment, device=device),
                storage,
            )
            snapshot = digest_gathered_data(
                gathered,
                health,
                environment=self.environment,
                app_version=self.settings.app_version,
            )
            self.telemetry_store.upsert_snapshot(snapshot)

            if self.telemetry_store.telemetry_enabled:
                self.last_sync_result = await self.syncer.sync()

            logger.info(
                "telemetry_cycle_completed",
                snapshot_id=snapshot.id,
                client_signature=snapshot.client_signature,
                synced=self.last_sync_result.to_dict() if self.last_sync_result else None,
            )
            return snapshot

    def _device_signals(self) -> DeviceSignals | None:
        try:
            return self.environment.device_signals()
        except Exception as e:
            logger.debug("device_probe_failed", error=str(e))
            return None

    async def _bounded_health(self) -> HealthResult | None:
        try:
            return await asyncio.wait_for(self.health_check(), timeout=self.health_timeout)
        except Exception as e:
            logger.warning("health_probe_unavailable", error=str(e) or type(e).__name__)
            return None
