"""Tests for ``studio.telemetry.sync``: bounded, best-effort delivery."""

from __future__ import annotations

import json
from datetime import datetime

import httpx
import pytest

from conftest import make_snapshot, mock_client
from studio.telemetry.environment import ClientEnvironment
from studio.telemetry.store import ErrorStore, TelemetryStore
from studio.telemetry.sync import SyncResult, TelemetrySyncer, sync_telemetry


class Collector:
    """In-process collector: per-path status scripts and a request log."""

    def __init__(self, snapshot=(200,), events=(200,), fail_connect: bool = False):
        self.scripts = {
            "/api/telemetry/snapshot": list(snapshot),
            "/api/telemetry/events": list(events),
        }
        self.fail_connect = fail_connect
        self.requests: list[tuple[str, dict]] = []

    def calls(self, path: str) -> int:
        return sum(1 for p, _ in self.requests if p == path)

    def body(self, path: str) -> dict:
        return next(b for p, b in self.requests if p == path)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((path, json.loads(request.content)))
        if self.fail_connect:
            raise httpx.ConnectError("refused", request=request)
        script = self.scripts[path]
        status = script.pop(0) if len(script) > 1 else script[0]
        return httpx.Response(status, json={"ok": status < 400})


@pytest.fixture
def stores():
    telemetry = TelemetryStore(telemetry_enabled=True)
    errors = ErrorStore()
    return telemetry, errors


def make_syncer(stores, collector, sleep, *, online=True):
    telemetry, errors = stores
    return TelemetrySyncer(
        telemetry,
        errors,
        environment=ClientEnvironment(online=online),
        base_url="http://collector.test/",
        client=mock_client(collector),
        sleep=sleep,
    )


class TestShortCircuits:
    @pytest.mark.asyncio
    async def test_disabled_makes_no_calls(self, stores, sleep_recorder):
        telemetry, errors = stores
        telemetry.set_telemetry_enabled(False)
        telemetry.upsert_snapshot(make_snapshot())
        errors.append("E", "x")
        collector = Collector()

        result = await make_syncer(stores, collector, sleep_recorder).sync()

        assert result == SyncResult(False, False)
        assert collector.requests == []
        assert errors.unsynced() != []

    @pytest.mark.asyncio
    async def test_offline_makes_no_calls(self, stores, sleep_recorder):
        telemetry, errors = stores
        telemetry.upsert_snapshot(make_snapshot())
        collector = Collector()

        result = await make_syncer(stores, collector, sleep_recorder, online=False).sync()

        assert result == SyncResult(False, False)
        assert collector.requests == []

    @pytest.mark.asyncio
    async def test_nothing_to_send(self, stores, sleep_recorder):
        collector = Collector()
        result = await make_syncer(stores, collector, sleep_recorder).sync()
        assert result == SyncResult(False, False)
        assert collector.requests == []


class TestDelivery:
    @pytest.mark.asyncio
    async def test_success_marks_state(self, stores, sleep_recorder):
        telemetry, errors = stores
        telemetry.upsert_snapshot(make_snapshot())
        e1 = errors.append("E1", "first")
        e2 = errors.append("E2", "second")
        collector = Collector()

        result = await make_syncer(stores, collector, sleep_recorder).sync()

        assert result == SyncResult(True, True)
        assert result.to_dict() == {"snapshotOk": True, "eventsOk": True}
        assert telemetry.last_synced_at is not None
        assert errors.unsynced() == []
        assert {e.id for e in errors.events} == {e1.id, e2.id}
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_snapshot_body(self, stores, sleep_recorder):
        telemetry, _ = stores
        telemetry.upsert_snapshot(make_snapshot())
        collector = Collector()

        await make_syncer(stores, collector, sleep_recorder).sync()

        body = collector.body("/api/telemetry/snapshot")
        assert body["sessionId"] == "sess-1"
        assert body["clientSignature"] == "v1.0.0-abc123"
        assert body["appVersion"] == "1.0.0"
        assert body["device"]["deviceTier"] == "high"
        assert body["device"]["connectivityTier"] == "4g"
        assert body["usage"]["logEntriesByType"] == {"info": 2, "error": 1}
        assert body["health"]["services"][0]["name"] == "Backend API"

    @pytest.mark.asyncio
    async def test_events_batch_body(self, stores, sleep_recorder):
        telemetry, errors = stores
        telemetry.upsert_snapshot(make_snapshot(session_id="sess-9"))
        older = errors.append("OLD", "older")
        newer = errors.append("NEW", "newer", {"k": "v"})
        collector = Collector()

        await make_syncer(stores, collector, sleep_recorder).sync()

        body = collector.body("/api/telemetry/events")
        assert body["sessionId"] == "sess-9"
        assert body["clientSignature"] == newer.client_signature
        assert [e["code"] for e in body["events"]] == ["NEW", "OLD"]
        assert body["events"][0]["context"] == {"k": "v"}
        assert body["events"][1]["clientSignature"] == older.client_signature

    @pytest.mark.asyncio
    async def test_events_without_snapshot_use_unknown_session(self, stores, sleep_recorder):
        _, errors = stores
        errors.append("E", "x")
        collector = Collector()

        result = await make_syncer(stores, collector, sleep_recorder).sync()

        assert result == SyncResult(False, True)
        assert collector.body("/api/telemetry/events")["sessionId"] == "unknown"
        assert collector.calls("/api/telemetry/snapshot") == 0

    @pytest.mark.asyncio
    async def test_already_synced_events_are_not_resent(self, stores, sleep_recorder):
        _, errors = stores
        sent = errors.append("E", "sent")
        errors.mark_synced([sent.id])
        pending = errors.append("E", "pending")
        collector = Collector()

        await make_syncer(stores, collector, sleep_recorder).sync()

        events = collector.body("/api/telemetry/events")["events"]
        assert [e["message"] for e in events] == ["pending"]
        assert errors.unsynced() == []
        assert pending.id in {e.id for e in errors.events}


class TestRetries:
    @pytest.mark.asyncio
    async def test_exhaustion_is_three_attempts_per_branch(self, stores, sleep_recorder):
        telemetry, errors = stores
        telemetry.upsert_snapshot(make_snapshot())
        errors.append("E", "x")
        collector = Collector(fail_connect=True)

        result = await make_syncer(stores, collector, sleep_recorder).sync()

        assert result == SyncResult(False, False)
        assert collector.calls("/api/telemetry/snapshot") == 3
        assert collector.calls("/api/telemetry/events") == 3
        # two delays per branch, none after the final attempt
        assert sleep_recorder.delays == [3.0, 3.0, 3.0, 3.0]
        assert telemetry.last_synced_at is None
        assert len(errors.unsynced()) == 1

    @pytest.mark.asyncio
    async def test_non_2xx_is_retried(self, stores, sleep_recorder):
        telemetry, _ = stores
        telemetry.upsert_snapshot(make_snapshot())
        collector = Collector(snapshot=(500, 503, 200))

        result = await make_syncer(stores, collector, sleep_recorder).sync()

        assert result.snapshot_ok is True
        assert collector.calls("/api/telemetry/snapshot") == 3
        assert sleep_recorder.delays == [3.0, 3.0]

    @pytest.mark.asyncio
    async def test_branches_are_independent(self, stores, sleep_recorder):
        telemetry, errors = stores
        telemetry.upsert_snapshot(make_snapshot())
        errors.append("E", "x")
        collector = Collector(snapshot=(500,), events=(200,))

        result = await make_syncer(stores, collector, sleep_recorder).sync()

        assert result == SyncResult(False, True)
        assert telemetry.last_synced_at is None
        assert errors.unsynced() == []

    @pytest.mark.asyncio
    async def test_failed_events_stay_unsynced(self, stores, sleep_recorder):
        telemetry, errors = stores
        telemetry.upsert_snapshot(make_snapshot())
        errors.append("E", "x")
        collector = Collector(snapshot=(200,), events=(400,))

        result = await make_syncer(stores, collector, sleep_recorder).sync()

        assert result == SyncResult(True, False)
        assert telemetry.last_synced_at is not None
        assert len(errors.unsynced()) == 1

    @pytest.mark.asyncio
    async def test_custom_retry_budget(self, stores, sleep_recorder):
        telemetry, errors = stores
        telemetry.upsert_snapshot(make_snapshot())
        collector = Collector(fail_connect=True)
        syncer = TelemetrySyncer(
            telemetry,
            errors,
            environment=ClientEnvironment(),
            base_url="http://collector.test",
            client=mock_client(collector),
            max_retries=0,
            sleep=sleep_recorder,
        )
        await syncer.sync()
        assert collector.calls("/api/telemetry/snapshot") == 1
        assert sleep_recorder.delays == []


class TestSyncNeverRaises:
    @pytest.mark.asyncio
    async def test_broken_online_probe_counts_as_online(self, stores, sleep_recorder):
        class Flaky(ClientEnvironment):
            def is_online(self) -> bool:
                raise RuntimeError("no navigator")

        telemetry, errors = stores
        telemetry.upsert_snapshot(make_snapshot())
        collector = Collector()
        syncer = TelemetrySyncer(
            telemetry, errors, environment=Flaky(), base_url="http://collector.test",
            client=mock_client(collector), sleep=sleep_recorder,
        )
        assert (await syncer.sync()).snapshot_ok is True

    @pytest.mark.asyncio
    async def test_unexpected_transport_bug(self, stores, sleep_recorder):
        telemetry, _ = stores
        telemetry.upsert_snapshot(make_snapshot())

        def handler(request: httpx.Request) -> httpx.Response:
            raise RuntimeError("bug")

        syncer = TelemetrySyncer(
            *stores, environment=ClientEnvironment(), base_url="http://collector.test",
            client=mock_client(handler), sleep=sleep_recorder,
        )
        assert await syncer.sync() == SyncResult(False, False)

    @pytest.mark.asyncio
    async def test_events_branch_bug_keeps_snapshot_result(
        self, stores, sleep_recorder, monkeypatch
    ):
        telemetry, errors = stores
        telemetry.upsert_snapshot(make_snapshot())
        errors.append("E", "x")
        collector = Collector()

        def broken_payload(*args, **kwargs):
            raise TypeError("unserializable context")

        monkeypatch.setattr("studio.telemetry.sync.build_events_payload", broken_payload)

        result = await make_syncer(stores, collector, sleep_recorder).sync()

        assert result == SyncResult(True, False)
        assert telemetry.last_synced_at is not None
        assert collector.calls("/api/telemetry/snapshot") == 1
        assert collector.calls("/api/telemetry/events") == 0
        assert len(errors.unsynced()) == 1

    @pytest.mark.asyncio
    async def test_opaque_context_values_are_delivered(self, stores, sleep_recorder):
        telemetry, errors = stores
        telemetry.upsert_snapshot(make_snapshot())
        errors.append("E", "boom", {"obj": object(), "at": datetime(2026, 1, 1)})
        collector = Collector()

        result = await make_syncer(stores, collector, sleep_recorder).sync()

        assert result == SyncResult(True, True)
        context = collector.body("/api/telemetry/events")["events"][0]["context"]
        assert context["at"] == "2026-01-01 00:00:00"
        assert context["obj"].startswith("<object object at")
        assert errors.unsynced() == []


class TestSyncTelemetry:
    @pytest.mark.asyncio
    async def test_uses_settings(self, stores, settings, sleep_recorder):
        telemetry, errors = stores
        telemetry.upsert_snapshot(make_snapshot())
        collector = Collector()

        result = await sync_telemetry(
            telemetry, errors,
            environment=ClientEnvironment(),
            settings=settings,
            client=mock_client(collector),
            sleep=sleep_recorder,
        )

        assert result.snapshot_ok is True
        assert collector.calls("/api/telemetry/snapshot") == 1

    def test_urls(self, stores):
        syncer = TelemetrySyncer(*stores, environment=ClientEnvironment(), base_url="http://c:3000/")
        assert syncer.snapshot_url == "http://c:3000/api/telemetry/snapshot"
        assert syncer.events_url == "http://c:3000/api/telemetry/events"
