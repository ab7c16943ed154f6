"""SQLAlchemy 2.0 ORM layer for the telemetry collector.

Modules
-------
base        StudioBase (declarative base)
session     Engine factory, StudioSession, session factory
tables      TelemetrySnapshotTable, TelemetryErrorEventTable

Tags:
    studio-core, orm, sqlalchemy, declarative
"""

from __future__ import annotations

from studio.core.orm.base import StudioBase
from studio.core.orm.session import (
    StudioSession,
    create_studio_engine,
    studio_session_factory,
)
from studio.core.orm.tables import TelemetryErrorEventTable, TelemetrySnapshotTable

__all__ = [
    "StudioBase",
    "StudioSession",
    "create_studio_engine",
    "studio_session_factory",
    "TelemetrySnapshotTable",
    "TelemetryErrorEventTable",
]
