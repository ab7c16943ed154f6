"""Collector tables: received telemetry snapshots and error events.

Retried deliveries land as separate rows; rows are never deduplicated
by content.

Tags:
    studio-core, orm, sqlalchemy, tables, telemetry
"""

from __future__ import annotations

import datetime

from sqlalchemy import JSON, DateTime, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from studio.core.orm.base import StudioBase

_NOW = text("(CURRENT_TIMESTAMP)")


class TelemetrySnapshotTable(StudioBase):
    __tablename__ = "telemetry_snapshots"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    session_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    client_signature: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    device_tier: Mapped[str | None] = mapped_column(Text)
    connectivity_tier: Mapped[str | None] = mapped_column(Text)
    platform: Mapped[str | None] = mapped_column(Text)
    screen_width: Mapped[int | None] = mapped_column(Integer)
    screen_height: Mapped[int | None] = mapped_column(Integer)
    session_started_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)
    session_duration_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    generations_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    imports_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    exports_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    projects_opened: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    canvas_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    health_status: Mapped[str | None] = mapped_column(Text)
    health_services: Mapped[list | None] = mapped_column(JSON)
    health_checked_at: Mapped[datetime.datetime | None] = mapped_column(DateTime)
    app_version: Mapped[str | None] = mapped_column(Text)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    received_at: Mapped[datetime.datetime] = mapped_column(
        DateTime, nullable=False, server_default=_NOW
    )


class TelemetryErrorEventTable(StudioBase):
    __tablename__ = "telemetry_error_events"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    session_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    client_signature: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    code: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    context: Mapped[dict | None] = mapped_column(JSON)
    occurred_at: Mapped[datetime.datetime | None] = mapped_column(DateTime)
    received_at: Mapped[datetime.datetime] = mapped_column(
        DateTime, nullable=False, server_default=_NOW
    )


__all__ = ["TelemetrySnapshotTable", "TelemetryErrorEventTable"]
