"""Tests for the collector application factory and error handling."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from studio.api import create_app
from studio.api.errors import problem_response, status_for_error
from studio.core.errors import (
    DatabaseError,
    IntegrityError,
    NetworkError,
    SessionClockError,
    StudioError,
    ValidationError,
)
from studio.core.settings import StudioSettings


class TestCreateApp:
    def test_returns_fastapi_instance(self, settings):
        assert isinstance(create_app(settings), FastAPI)

    def test_custom_title(self, tmp_path):
        app = create_app(StudioSettings(api_title="Custom", data_dir=tmp_path))
        assert app.title == "Custom"

    def test_routes_registered(self, settings):
        paths = {r.path for r in create_app(settings).routes}
        assert {"/api/health", "/api/telemetry/snapshot", "/api/telemetry/events"} <= paths

    def test_cors_middleware_present(self, settings):
        names = [m.cls.__name__ for m in create_app(settings).user_middleware]
        assert "CORSMiddleware" in names
        assert "RequestIDMiddleware" in names

    def test_settings_on_state(self, settings):
        app = create_app(settings)
        assert app.state.settings is settings
        assert app.state.repository is None

    def test_lifespan_opens_database(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'collector.db'}"
        app = create_app(StudioSettings(database_url=url, data_dir=tmp_path))
        with TestClient(app):
            assert app.state.repository is not None
            assert app.state.repository.count_snapshots() == 0
        assert app.state.repository is None


class TestRequestId:
    def test_generated(self, settings):
        with TestClient(create_app(settings)) as client:
            response = client.post("/api/telemetry/events", json={"events": []})
        assert response.headers["X-Request-ID"]

    def test_echoed(self, settings):
        with TestClient(create_app(settings)) as client:
            response = client.post(
                "/api/telemetry/events", json={"events": []}, headers={"X-Request-ID": "req-42"}
            )
        assert response.headers["X-Request-ID"] == "req-42"


class TestErrorMapping:
    @pytest.mark.parametrize(
        ("error", "status"),
        [
            (ValidationError("bad"), 400),
            (DatabaseError("disk full"), 500),
            (IntegrityError("dup"), 409),
            (NetworkError("down"), 503),
            (SessionClockError(2, 1), 500),
            (StudioError("x"), 500),
        ],
    )
    def test_status_for_error(self, error, status):
        assert status_for_error(error) == status

    def test_problem_response(self):
        response = problem_response(status=404, title="Not Found", detail="missing")
        assert response.status_code == 404
        assert response.media_type == "application/problem+json"

    def test_studio_error_handler(self, settings):
        app = create_app(settings)

        @app.get("/boom")
        def boom():
            raise ValidationError("sessionId must be a string", field="sessionId")

        with TestClient(app) as client:
            response = client.get("/boom")
        assert response.status_code == 400
        assert response.headers["content-type"].startswith("application/problem+json")
        assert response.json()["detail"] == "sessionId must be a string"

    def test_unhandled_exception_hides_detail(self, settings):
        app = create_app(settings)

        @app.get("/crash")
        def crash():
            raise RuntimeError("secret internals")

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/crash")
        assert response.status_code == 500
        assert "secret internals" not in response.text
