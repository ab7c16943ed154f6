"""
FastAPI dependency injection: settings, repository and outbound HTTP client.

Usage in routers::

    from studio.api.deps import Repository, Settings

    @router.post("/things")
    def create_thing(settings: Settings, repository: Repository):
        ...
"""

from __future__ import annotations

from typing import Annotated

import httpx
from fastapi import Depends, Request

from studio.core.settings import StudioSettings, get_settings
from studio.telemetry.repository import TelemetryRepository


def get_repository(request: Request) -> TelemetryRepository | None:
    """Collector repository, or None when no database is configured."""
    return getattr(request.app.state, "repository", None)


def get_http_client(request: Request) -> httpx.AsyncClient | None:
    """Shared outbound client for health probes (None: one per probe)."""
    return getattr(request.app.state, "http_client", None)


Settings = Annotated[StudioSettings, Depends(get_settings)]
Repository = Annotated[TelemetryRepository | None, Depends(get_repository)]
HttpClient = Annotated[httpx.AsyncClient | None, Depends(get_http_client)]
