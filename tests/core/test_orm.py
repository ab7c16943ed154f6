"""Tests for ``studio.core.orm``: engine factory and collector tables."""

from __future__ import annotations

from sqlalchemy import inspect
from sqlalchemy.pool import StaticPool

from studio.core.orm import StudioBase, StudioSession, create_studio_engine, studio_session_factory


class TestCreateStudioEngine:
    def test_memory_sqlite_uses_static_pool(self):
        engine = create_studio_engine("sqlite://")
        assert isinstance(engine.pool, StaticPool)

    def test_file_sqlite(self, tmp_path):
        engine = create_studio_engine(f"sqlite:///{tmp_path / 'c.db'}")
        assert not isinstance(engine.pool, StaticPool)
        with engine.connect() as conn:
            assert conn.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1


class TestSchema:
    def test_tables_created(self):
        engine = create_studio_engine("sqlite://")
        StudioBase.metadata.create_all(engine)
        names = set(inspect(engine).get_table_names())
        assert {"telemetry_snapshots", "telemetry_error_events"} <= names

    def test_session_factory(self):
        factory = studio_session_factory(create_studio_engine("sqlite://"))
        session = factory()
        try:
            assert isinstance(session, StudioSession)
            assert session.expire_on_commit is False
        finally:
            session.close()
