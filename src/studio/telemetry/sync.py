"""Sync: best-effort delivery of the latest snapshot and unsynced error events.

Manifesto:
    Telemetry failure must never degrade the host application. Delivery
    is bounded (one attempt plus ``max_retries`` retries at a constant
    delay), short-circuits when disabled or offline, and folds every
    failure into a ``False`` result for its branch. Nothing propagates.

Architecture:
    ::

        sync()
          ├─ telemetry disabled ──────────────► SyncResult(False, False)
          ├─ environment offline ─────────────► SyncResult(False, False)
          │
          ├─ snapshot branch   POST /api/telemetry/snapshot
          │     RetryContext(ConstantBackoff)   2xx → last_synced_at = now
          │
          └─ events branch     POST /api/telemetry/events   (one batch)
                RetryContext(ConstantBackoff)   2xx → mark_synced(batch ids)

    The branches are independent: each runs under its own guard, so an
    exception in one leaves the other's result intact. Network errors and
    non-2xx answers are both retried; no delay follows the final attempt.
    Marking happens only after a confirmed 2xx, under an ``asyncio.Lock``.

Examples:
    >>> syncer = TelemetrySyncer(telemetry_store, error_store,
    ...                          environment=ProcessEnvironment(),
    ...                          base_url="http://localhost:3000")
    >>> await syncer.sync()
    SyncResult(snapshot_ok=True, events_ok=True)

Tags:
    telemetry, sync, retry, httpx, async, studio-core
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from studio.core.errors import (
    DeliveryError,
    NetworkError,
    RequestTimeoutError,
    TransientError,
)
from studio.core.logging import get_logger
from studio.core.retry import ConstantBackoff, RetryContext
from studio.core.settings import StudioSettings, get_settings
from studio.core.timestamps import now_ms
from studio.telemetry.environment import ProcessEnvironment, RuntimeEnvironment
from studio.telemetry.payloads import (
    EVENTS_ENDPOINT,
    SNAPSHOT_ENDPOINT,
    build_events_payload,
    build_snapshot_payload,
)
from studio.telemetry.store import ErrorStore, TelemetryStore

logger = get_logger(__name__)

MAX_RETRIES = 2
RETRY_DELAY_S = 3.0
REQUEST_TIMEOUT_S = 10.0


@dataclass(frozen=True)
class SyncResult:
    """Per-branch delivery outcome."""

    snapshot_ok: bool = False
    events_ok: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {"snapshotOk": self.snapshot_ok, "eventsOk": self.events_ok}


class TelemetrySyncer:
    """Delivers local telemetry state to a collector.

    Args:
        telemetry_store: Source of the latest snapshot and opt-in flag
        error_store: Outbox of error events
        environment: Answers whether the process is online
        base_url: Collector base URL
        client: Shared ``httpx.AsyncClient`` (one is created per sync if None)
        max_retries: Retries after the first attempt, per branch
        retry_delay: Seconds between attempts
        sleep: Awaitable used for the delay (tests inject a recorder)
    """

    def __init__(
        self,
        telemetry_store: TelemetryStore,
        error_store: ErrorStore,
        *,
        environment: RuntimeEnvironment,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_S,
        timeout: float = REQUEST_TIMEOUT_S,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.telemetry_store = telemetry_store
        self.error_store = error_store
        self.environment = environment
        self.base_url = base_url.rstrip("/")
        self.client = client
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._sleep = sleep
        self._mark_lock = asyncio.Lock()

    @property
    def snapshot_url(self) -> str:
        return f"{self.base_url}{SNAPSHOT_ENDPOINT}"

    @property
    def events_url(self) -> str:
        return f"{self.base_url}{EVENTS_ENDPOINT}"

    async def sync(self) -> SyncResult:
        """Run one delivery pass. Never raises."""
        try:
            return await self._sync()
        except Exception as e:
            logger.error("sync_failed", error=str(e), error_type=type(e).__name__)
            return SyncResult()

    async def _sync(self) -> SyncResult:
        if not self.telemetry_store.telemetry_enabled:
            logger.debug("sync_skipped", reason="disabled")
            return SyncResult()
        if not self._is_online():
            logger.debug("sync_skipped", reason="offline")
            return SyncResult()

        http = self.client or httpx.AsyncClient()
        try:
            snapshot_ok = await self._run_branch("sync.snapshot", self._sync_snapshot, http)
            events_ok = await self._run_branch("sync.events", self._sync_events, http)
        finally:
            if self.client is None:
                await http.aclose()

        result = SyncResult(snapshot_ok=snapshot_ok, events_ok=events_ok)
        logger.info("sync_completed", snapshot_ok=snapshot_ok, events_ok=events_ok)
        return result

    async def _run_branch(
        self,
        operation: str,
        branch: Callable[[httpx.AsyncClient], Awaitable[bool]],
        http: httpx.AsyncClient,
    ) -> bool:
        """Run one branch; a failure there leaves the other branch's result intact."""
        try:
            return await branch(http)
        except Exception as e:
            logger.error(
                "sync_branch_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    def _is_online(self) -> bool:
        try:
            return self.environment.is_online()
        except Exception as e:
            logger.debug("online_probe_failed", error=str(e))
            return True

    async def _sync_snapshot(self, http: httpx.AsyncClient) -> bool:
        snapshot = self.telemetry_store.latest_snapshot()
        if snapshot is None:
            return False

        payload = build_snapshot_payload(snapshot).to_wire()
        if not await self._deliver(http, self.snapshot_url, payload, "sync.snapshot"):
            return False

        async with self._mark_lock:
            self.telemetry_store.set_last_synced_at(now_ms())
        return True

    async def _sync_events(self, http: httpx.AsyncClient) -> bool:
        unsynced = self.error_store.unsynced()
        if not unsynced:
            return False

        snapshot = self.telemetry_store.latest_snapshot()
        payload = build_events_payload(
            unsynced, snapshot.session_id if snapshot else None
        ).to_wire()
        if not await self._deliver(http, self.events_url, payload, "sync.events"):
            return False

        async with self._mark_lock:
            flipped = self.error_store.mark_synced(e.id for e in unsynced)
        logger.debug("events_marked_synced", count=flipped, batch=len(unsynced))
        return True

    async def _deliver(
        self,
        http: httpx.AsyncClient,
        url: str,
        payload: dict[str, Any],
        operation: str,
    ) -> bool:
        def on_retry(attempt: int, error: Exception, delay: float) -> None:
            logger.info(
                "delivery_retry",
                operation=operation,
                attempt=attempt,
                delay_s=delay,
                error=str(error),
            )

        ctx = RetryContext(
            ConstantBackoff(
                max_retries=self.max_retries,
                delay=self.retry_delay,
                retryable_errors=(TransientError,),
            ),
            on_retry=on_retry,
            sleep=self._sleep,
        )
        try:
            await ctx.run_async(self._post, http, url, payload, operation)
        except Exception as e:
            logger.warning(
                "delivery_failed",
                operation=operation,
                attempts=ctx.attempts,
                error=str(e),
            )
            return False

        logger.debug("delivered", operation=operation, attempts=ctx.attempts)
        return True

    async def _post(
        self,
        http: httpx.AsyncClient,
        url: str,
        payload: dict[str, Any],
        operation: str,
    ) -> httpx.Response:
        try:
            response = await http.post(url, json=payload, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"{operation} timed out", cause=e).with_context(
                operation=operation, url=url
            ) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"{operation} failed: {e}", cause=e).with_context(
                operation=operation, url=url
            ) from e

        if not response.is_success:
            raise DeliveryError(
                f"{operation} answered HTTP {response.status_code}",
                http_status=response.status_code,
            ).with_context(operation=operation, url=url)
        return response


async def sync_telemetry(
    telemetry_store: TelemetryStore,
    error_store: ErrorStore,
    *,
    environment: RuntimeEnvironment | None = None,
    settings: StudioSettings | None = None,
    client: httpx.AsyncClient | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> SyncResult:
    """One-call sync configured from settings."""
    settings = settings or get_settings()
    syncer = TelemetrySyncer(
        telemetry_store,
        error_store,
        environment=environment or ProcessEnvironment(settings),
        base_url=settings.collector_url,
        client=client,
        max_retries=settings.sync_max_retries,
        retry_delay=settings.sync_retry_delay_s,
        sleep=sleep,
    )
    return await syncer.sync()
