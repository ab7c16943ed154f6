"""Health endpoint for the studio host.

``GET /api/health`` probes the home server (``BACKEND_URL``) and reports
per-service status. It always answers 200; the body carries the verdict.
"""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from studio.api.deps import HttpClient, Settings
from studio.core.logging import get_logger
from studio.telemetry.health import check_health
from studio.telemetry.models import HealthStatus
from studio.telemetry.payloads import ServiceStatusPayload

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


class HealthResponse(BaseModel):
    status: HealthStatus
    services: list[ServiceStatusPayload]
    timestamp: int


@router.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
async def get_health(settings: Settings, client: HttpClient) -> HealthResponse:
    """Aggregate health of the backend and the database behind it."""
    result = await check_health(
        settings.backend_url, client=client, timeout=settings.health_timeout_s
    )
    return HealthResponse(
        status=result.status,
        services=[
            ServiceStatusPayload(name=s.name, status=s.status.value, message=s.message)
            for s in result.services
        ],
        timestamp=result.checked_at,
    )
