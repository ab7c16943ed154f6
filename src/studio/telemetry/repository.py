"""Collector-side persistence of received snapshots and error events.

Tags:
    studio-core, repository, telemetry, sqlalchemy
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import func, select
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Engine

from studio.core.errors import DatabaseError, IntegrityError
from studio.core.logging import get_logger
from studio.core.orm import (
    StudioBase,
    StudioSession,
    TelemetryErrorEventTable,
    TelemetrySnapshotTable,
    create_studio_engine,
    studio_session_factory,
)
from studio.core.timestamps import from_epoch_ms, new_id, utc_now
from studio.telemetry.payloads import UNKNOWN_SESSION, EventsPayload, SnapshotPayload

logger = get_logger(__name__)


class TelemetryRepository:
    """Writes collector rows through a SQLAlchemy session factory.

    Driver errors surface as ``IntegrityError`` (constraint violations) or
    ``DatabaseError`` (everything else).
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._sessions = studio_session_factory(engine)

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> TelemetryRepository:
        return cls(create_studio_engine(url, **kwargs))

    def init_schema(self) -> None:
        """Create the collector tables if they do not exist."""
        StudioBase.metadata.create_all(self.engine)

    @contextmanager
    def _session(self) -> Iterator[StudioSession]:
        session = self._sessions()
        try:
            yield session
            session.commit()
        except sa_exc.IntegrityError as e:
            session.rollback()
            raise IntegrityError("A unique constraint was violated", cause=e) from e
        except sa_exc.SQLAlchemyError as e:
            session.rollback()
            raise DatabaseError(f"A database error occurred: {e}", cause=e) from e
        finally:
            session.close()

    def save_snapshot(self, payload: SnapshotPayload) -> str:
        """Insert one snapshot row. Returns the new row id."""
        device = payload.device
        usage = payload.usage
        health = payload.health
        row = TelemetrySnapshotTable(
            id=new_id(),
            session_id=payload.session_id or UNKNOWN_SESSION,
            client_signature=payload.client_signature or UNKNOWN_SESSION,
            device_tier=device.device_tier,
            connectivity_tier=device.connectivity_tier,
            platform=device.platform,
            screen_width=device.screen_width,
            screen_height=device.screen_height,
            session_started_at=from_epoch_ms(payload.session.started_at or None) or utc_now(),
            session_duration_ms=payload.session.duration_ms,
            generations_count=usage.generations,
            imports_count=usage.imports,
            exports_count=usage.exports,
            projects_opened=usage.projects_opened,
            canvas_items=usage.canvas_items,
            health_status=health.status if health else None,
            health_services=(
                [s.model_dump(mode="json", exclude_none=True) for s in health.services]
                if health else None
            ),
            health_checked_at=from_epoch_ms(health.checked_at) if health and health.checked_at else None,
            app_version=payload.app_version,
            payload=payload.to_wire(),
        )
        with self._session() as session:
            session.add(row)
        logger.debug("snapshot_persisted", row_id=row.id, session_id=row.session_id)
        return row.id

    def save_events(self, payload: EventsPayload) -> int:
        """Insert one row per event; each falls back to the batch signature."""
        session_id = payload.session_id or UNKNOWN_SESSION
        batch_signature = payload.client_signature or UNKNOWN_SESSION
        rows = [
            TelemetryErrorEventTable(
                id=new_id(),
                session_id=session_id,
                client_signature=event.client_signature or batch_signature,
                code=event.code,
                message=event.message,
                context=event.context,
                occurred_at=from_epoch_ms(event.timestamp),
            )
            for event in payload.events
        ]
        with self._session() as session:
            session.add_all(rows)
        logger.debug("events_persisted", count=len(rows), session_id=session_id)
        return len(rows)

    def count_snapshots(self) -> int:
        with self._session() as session:
            return session.scalar(select(func.count()).select_from(TelemetrySnapshotTable)) or 0

    def count_events(self) -> int:
        with self._session() as session:
            return session.scalar(select(func.count()).select_from(TelemetryErrorEventTable)) or 0

    def list_events(self, *, limit: int = 50) -> list[TelemetryErrorEventTable]:
        """Most recently received events first."""
        with self._session() as session:
            stmt = (
                select(TelemetryErrorEventTable)
                .order_by(TelemetryErrorEventTable.received_at.desc())
                .limit(limit)
            )
            return list(session.scalars(stmt))
