"""Telemetry collector HTTP API (FastAPI)."""

from studio.api.app import create_app

__all__ = ["create_app"]
