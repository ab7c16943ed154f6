"""Backend health probe for the telemetry health field and ``/api/health``.

Manifesto:
    The home server is probed once per startup. A slow or dead backend
    must never stall the cycle: each candidate URL gets a hard timeout
    and every failure degrades to a status, never an exception.

Features:
    - **check_backend_health():** ``/health`` → ``/api/health`` → ``/``,
      first response wins
    - **check_database_health():** PostgreSQL status inferred from the backend
    - **aggregate_status():** error > degraded > ok
    - **check_health():** full ``HealthResult``, never raises
    - **fetch_health():** read a host's ``/api/health`` JSON (client side)

Examples:
    >>> result = await check_health("http://localhost:8000")
    >>> result.status
    <HealthStatus.OK: 'ok'>

Tags:
    health-checks, httpx, async, telemetry, studio-core
"""

from __future__ import annotations

from collections.abc import Iterable

import httpx

from studio.core.logging import get_logger
from studio.core.timestamps import now_ms
from studio.telemetry.models import HealthResult, HealthStatus, ServiceStatus

logger = get_logger(__name__)

BACKEND_SERVICE = "Backend API"
DATABASE_SERVICE = "PostgreSQL"
HEALTH_PATHS = ("/health", "/api/health", "/")
DEFAULT_HEALTH_TIMEOUT_S = 5.0


async def check_backend_health(
    base_url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_HEALTH_TIMEOUT_S,
) -> ServiceStatus:
    """Probe the backend at each candidate path until one answers.

    Any response ends the probe: 2xx is ``ok``, anything else ``degraded``.
    Only when every attempt raises (refused, DNS, timeout) is the backend
    ``error``.
    """
    base = base_url.rstrip("/")
    owns_client = client is None
    http = client or httpx.AsyncClient()
    try:
        for path in HEALTH_PATHS:
            url = f"{base}{path}"
            try:
                response = await http.get(
                    url, headers={"Accept": "application/json"}, timeout=timeout
                )
            except httpx.HTTPError as e:
                logger.debug("health_probe_failed", url=url, error=str(e))
                continue

            if response.is_success:
                return ServiceStatus(BACKEND_SERVICE, HealthStatus.OK, "Connected")
            return ServiceStatus(
                BACKEND_SERVICE, HealthStatus.DEGRADED, f"HTTP {response.status_code}"
            )
    finally:
        if owns_client:
            await http.aclose()

    return ServiceStatus(BACKEND_SERVICE, HealthStatus.ERROR, f"Cannot reach {base}")


def check_database_health(backend: ServiceStatus) -> ServiceStatus:
    """The database is reached through the backend, so its status follows it."""
    if backend.status == HealthStatus.ERROR:
        return ServiceStatus(DATABASE_SERVICE, HealthStatus.DEGRADED, "Backend unreachable")
    return ServiceStatus(DATABASE_SERVICE, HealthStatus.OK, "Via backend")


def aggregate_status(services: Iterable[ServiceStatus]) -> HealthStatus:
    statuses = {s.status for s in services}
    if HealthStatus.ERROR in statuses:
        return HealthStatus.ERROR
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.OK


async def check_health(
    base_url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_HEALTH_TIMEOUT_S,
) -> HealthResult:
    """Run every service check and aggregate. Never raises."""
    try:
        backend = await check_backend_health(base_url, client=client, timeout=timeout)
        services = (backend, check_database_health(backend))
        result = HealthResult(aggregate_status(services), services, now_ms())
    except Exception as e:
        logger.warning("health_check_failed", error=str(e))
        failed = "Health check failed"
        result = HealthResult(
            HealthStatus.ERROR,
            (
                ServiceStatus(BACKEND_SERVICE, HealthStatus.ERROR, failed),
                ServiceStatus(DATABASE_SERVICE, HealthStatus.ERROR, failed),
            ),
            now_ms(),
        )

    logger.info("health_checked", status=result.status.value, base_url=base_url)
    return result


async def fetch_health(
    url: str,
    client: httpx.AsyncClient,
    *,
    timeout: float = DEFAULT_HEALTH_TIMEOUT_S,
) -> HealthResult | None:
    """Read ``{status, services, timestamp}`` from a host health endpoint.

    Returns None on any failure (transport, non-JSON body, unknown status).
    """
    try:
        response = await client.get(url, timeout=timeout)
        body = response.json()
        return HealthResult(
            status=HealthStatus(body["status"]),
            services=tuple(ServiceStatus.from_dict(s) for s in body.get("services") or []),
            checked_at=int(body.get("timestamp") or now_ms()),
        )
    except Exception as e:
        logger.debug("health_fetch_failed", url=url, error=str(e))
        return None
