"""
FastAPI application factory for the telemetry collector.

``create_app()`` wires middleware, routers, error handlers, and
lifespan events into a single ``FastAPI`` instance.

Manifesto:
    The app factory is the single composition root; all middleware,
    routers, and lifecycle hooks are wired here so the rest of the
    codebase never touches ``FastAPI`` directly.

Tags:
    studio-core, api, app-factory, collector, FastAPI
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studio import __version__
from studio.api.errors import studio_error_handler, unhandled_exception_handler
from studio.api.middleware import RequestIDMiddleware
from studio.api.routers import health, telemetry
from studio.core.errors import StudioError
from studio.core.logging import get_logger
from studio.core.settings import StudioSettings, get_settings
from studio.telemetry.repository import TelemetryRepository


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan. Opens the collector database if configured."""
    log = get_logger("studio.api")
    log.info("collector_starting", version=app.version)

    settings: StudioSettings = app.state.settings
    owned = None
    if app.state.repository is None and settings.database_url:
        try:
            owned = TelemetryRepository.from_url(settings.database_url)
            owned.init_schema()
            app.state.repository = owned
            log.info("database_initialized", url=owned.engine.url.render_as_string())
        except Exception as e:
            log.warning("database_init_failed", error=str(e))

    yield

    if owned is not None:
        owned.engine.dispose()
        app.state.repository = None
    log.info("collector_shutting_down")


def create_app(
    settings: StudioSettings | None = None,
    *,
    repository: TelemetryRepository | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Build and return a fully-configured collector application.

    Parameters
    ----------
    settings : StudioSettings | None
        Override settings (useful for testing). When ``None`` the cached
        singleton from :func:`get_settings` is used.
    repository : TelemetryRepository | None
        Pre-built repository; otherwise one is opened from
        ``settings.database_url`` at startup.
    http_client : httpx.AsyncClient | None
        Client used by the health probe.
    """
    settings = settings or get_settings()

    app = FastAPI(title=settings.api_title, version=__version__, lifespan=lifespan)

    app.state.settings = settings
    app.state.repository = repository
    app.state.http_client = http_client

    # Override DI so endpoints use the provided settings
    app.dependency_overrides[get_settings] = lambda: settings

    # ── Middleware (outermost → innermost) ────────────────────────────
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Exception handlers ───────────────────────────────────────────
    app.add_exception_handler(StudioError, studio_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routers ──────────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(telemetry.router)

    return app
