"""Tests for ``studio.telemetry.health``: backend probe and aggregation."""

from __future__ import annotations

import httpx
import pytest

from conftest import mock_client
from studio.telemetry.health import (
    BACKEND_SERVICE,
    DATABASE_SERVICE,
    aggregate_status,
    check_backend_health,
    check_database_health,
    check_health,
    fetch_health,
)
from studio.telemetry.models import HealthStatus, ServiceStatus


class PathRecorder:
    """Answers per path; paths missing from ``responses`` fail to connect."""

    def __init__(self, responses: dict[str, int]):
        self.responses = responses
        self.paths: list[str] = []
        self.accept: list[str | None] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.paths.append(request.url.path)
        self.accept.append(request.headers.get("accept"))
        status = self.responses.get(request.url.path)
        if status is None:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(status, json={"status": "ok"})


class TestCheckBackendHealth:
    @pytest.mark.asyncio
    async def test_first_path_ok(self):
        handler = PathRecorder({"/health": 200})
        async with mock_client(handler) as client:
            status = await check_backend_health("http://backend.test", client=client)
        assert status == ServiceStatus(BACKEND_SERVICE, HealthStatus.OK, "Connected")
        assert handler.paths == ["/health"]
        assert handler.accept == ["application/json"]

    @pytest.mark.asyncio
    async def test_falls_through_failed_paths(self):
        handler = PathRecorder({"/api/health": 204})
        async with mock_client(handler) as client:
            status = await check_backend_health("http://backend.test/", client=client)
        assert status.status == HealthStatus.OK
        assert handler.paths == ["/health", "/api/health"]

    @pytest.mark.asyncio
    async def test_non_2xx_response_is_degraded_and_stops(self):
        handler = PathRecorder({"/health": 503, "/api/health": 200})
        async with mock_client(handler) as client:
            status = await check_backend_health("http://backend.test", client=client)
        assert status == ServiceStatus(BACKEND_SERVICE, HealthStatus.DEGRADED, "HTTP 503")
        assert handler.paths == ["/health"]

    @pytest.mark.asyncio
    async def test_unreachable(self):
        handler = PathRecorder({})
        async with mock_client(handler) as client:
            status = await check_backend_health("http://backend.test", client=client)
        assert status == ServiceStatus(
            BACKEND_SERVICE, HealthStatus.ERROR, "Cannot reach http://backend.test"
        )
        assert handler.paths == ["/health", "/api/health", "/"]

    @pytest.mark.asyncio
    async def test_timeouts_count_as_failed_attempts(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/":
                return httpx.Response(200)
            raise httpx.ReadTimeout("slow", request=request)

        async with mock_client(handler) as client:
            status = await check_backend_health("http://backend.test", client=client, timeout=0.1)
        assert status.status == HealthStatus.OK


class TestCheckDatabaseHealth:
    def test_follows_backend(self):
        ok = check_database_health(ServiceStatus(BACKEND_SERVICE, HealthStatus.OK))
        assert ok == ServiceStatus(DATABASE_SERVICE, HealthStatus.OK, "Via backend")

        degraded = check_database_health(ServiceStatus(BACKEND_SERVICE, HealthStatus.DEGRADED))
        assert degraded.status == HealthStatus.OK

        down = check_database_health(ServiceStatus(BACKEND_SERVICE, HealthStatus.ERROR))
        assert down == ServiceStatus(DATABASE_SERVICE, HealthStatus.DEGRADED, "Backend unreachable")


class TestAggregateStatus:
    @pytest.mark.parametrize(
        ("statuses", "expected"),
        [
            ([HealthStatus.OK, HealthStatus.OK], HealthStatus.OK),
            ([HealthStatus.OK, HealthStatus.DEGRADED], HealthStatus.DEGRADED),
            ([HealthStatus.DEGRADED, HealthStatus.ERROR], HealthStatus.ERROR),
            ([], HealthStatus.OK),
        ],
    )
    def test_worst_wins(self, statuses, expected):
        assert aggregate_status(ServiceStatus("s", s) for s in statuses) == expected


class TestCheckHealth:
    @pytest.mark.asyncio
    async def test_healthy(self):
        async with mock_client(PathRecorder({"/health": 200})) as client:
            result = await check_health("http://backend.test", client=client)
        assert result.status == HealthStatus.OK
        assert [s.name for s in result.services] == [BACKEND_SERVICE, DATABASE_SERVICE]
        assert result.checked_at > 0

    @pytest.mark.asyncio
    async def test_unreachable_backend(self):
        async with mock_client(PathRecorder({})) as client:
            result = await check_health("http://backend.test", client=client)
        assert result.status == HealthStatus.ERROR
        assert result.services[1].status == HealthStatus.DEGRADED

    @pytest.mark.asyncio
    async def test_unexpected_failure_never_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise RuntimeError("transport bug")

        async with mock_client(handler) as client:
            result = await check_health("http://backend.test", client=client)
        assert result.status == HealthStatus.ERROR
        assert all(s.message == "Health check failed" for s in result.services)
        assert all(s.status == HealthStatus.ERROR for s in result.services)


class TestFetchHealth:
    @pytest.mark.asyncio
    async def test_parses_body(self):
        body = {
            "status": "degraded",
            "services": [{"name": "Backend API", "status": "degraded", "message": "HTTP 500"}],
            "timestamp": 1234,
        }
        async with mock_client(lambda r: httpx.Response(200, json=body)) as client:
            result = await fetch_health("http://host/api/health", client)
        assert result.status == HealthStatus.DEGRADED
        assert result.services[0].message == "HTTP 500"
        assert result.checked_at == 1234

    @pytest.mark.asyncio
    async def test_garbage_is_none(self):
        async with mock_client(lambda r: httpx.Response(200, text="<html>")) as client:
            assert await fetch_health("http://host/api/health", client) is None
