"""Telemetry receipt endpoints.

Endpoints
---------
``POST /api/telemetry/snapshot`` : one startup/session snapshot
``POST /api/telemetry/events``   : a batch of error events

Both accept the payload even when persistence is unavailable: telemetry
loss on the collector side must not turn into client retries. Retried
deliveries are stored as separate rows.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from studio.api.deps import Repository
from studio.core.errors import StudioError
from studio.core.logging import get_logger
from studio.telemetry.payloads import EventsPayload, SnapshotPayload

logger = get_logger(__name__)

router = APIRouter(prefix="/api/telemetry", tags=["telemetry"])

MISSING_IDENTITY = "Missing sessionId or clientSignature"


# ── Models ───────────────────────────────────────────────────────────


class SnapshotReceipt(BaseModel):
    ok: bool
    id: str | None = None
    error: str | None = None


class EventsReceipt(BaseModel):
    ok: bool
    received: int = 0


# ── Endpoints ────────────────────────────────────────────────────────


@router.post("/snapshot", response_model=SnapshotReceipt, response_model_exclude_none=True)
def receive_snapshot(payload: SnapshotPayload, repository: Repository):
    """Store a snapshot. ``sessionId`` and ``clientSignature`` are required."""
    if not payload.session_id or not payload.client_signature:
        return JSONResponse(
            status_code=400,
            content=SnapshotReceipt(ok=False, error=MISSING_IDENTITY).model_dump(exclude_none=True),
        )

    if repository is None:
        logger.debug("snapshot_accepted_unpersisted", session_id=payload.session_id)
        return SnapshotReceipt(ok=True)

    try:
        row_id = repository.save_snapshot(payload)
    except StudioError as e:
        logger.error("snapshot_persist_failed", session_id=payload.session_id, **e.to_dict())
        return SnapshotReceipt(ok=True)

    logger.info(
        "snapshot_received",
        row_id=row_id,
        session_id=payload.session_id,
        client_signature=payload.client_signature,
    )
    return SnapshotReceipt(ok=True, id=row_id)


@router.post("/events", response_model=EventsReceipt)
def receive_events(payload: EventsPayload, repository: Repository) -> EventsReceipt:
    """Store a batch of error events, one row each."""
    received = len(payload.events)
    if received == 0:
        return EventsReceipt(ok=True, received=0)

    if repository is not None:
        try:
            repository.save_events(payload)
        except StudioError as e:
            logger.error("events_persist_failed", session_id=payload.session_id, **e.to_dict())

    logger.info("events_received", count=received, session_id=payload.session_id)
    return EventsReceipt(ok=True, received=received)
