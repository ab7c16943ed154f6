"""Centralized settings for studio-core.

One validated, cached settings object carries the application version,
collector and backend URLs, the telemetry opt-out flag, and the sync
retry policy. Values come from ``STUDIO_*`` environment variables or a
``.env`` file.

Examples:
    >>> from studio.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.app_version
    '1.0.0'

Tags:
    settings, configuration, pydantic, environment, studio-core
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_APP_VERSION = "1.0.0"


class StudioSettings(BaseSettings):
    """studio-core configuration.

    Fields
    ──────
    app_version         : Version string baked into the client signature
    build_id            : Identifier of the deployed build (None ⇒ environment default)
    collector_url       : Base URL of the telemetry collector
    backend_url         : Home server probed by the health check
    telemetry_enabled   : Initial opt-in state of the telemetry store
    offline             : Force the process environment to report offline
    effective_type      : Network effective-type hint for the process environment
    health_timeout_s    : Per-URL health probe timeout
    sync_max_retries    : Retries after the first delivery attempt
    sync_retry_delay_s  : Fixed delay between delivery attempts
    database_url        : Collector persistence (None disables persistence)
    data_dir            : Local state directory (store files, disk estimate)
    api_title           : OpenAPI title of the collector
    cors_origins        : Origins allowed to post telemetry to the collector
    """

    model_config = SettingsConfigDict(
        env_prefix="STUDIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Identity ─────────────────────────────────────────────────
    app_version: str = DEFAULT_APP_VERSION
    build_id: str | None = None

    # ── Endpoints ────────────────────────────────────────────────
    collector_url: str = "http://localhost:3000"
    backend_url: str = Field(
        default="http://localhost:8000",
        validation_alias=AliasChoices("STUDIO_BACKEND_URL", "BACKEND_URL"),
    )

    # ── Telemetry ────────────────────────────────────────────────
    telemetry_enabled: bool = True
    offline: bool = False
    effective_type: str | None = None
    health_timeout_s: float = Field(default=5.0, gt=0)
    sync_max_retries: int = Field(default=2, ge=0)
    sync_retry_delay_s: float = Field(default=3.0, ge=0)

    # ── Storage ──────────────────────────────────────────────────
    database_url: str | None = None
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".studio")

    # ── Collector API ────────────────────────────────────────────
    api_title: str = "studio-core collector"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # ── Observability ────────────────────────────────────────────
    debug: bool = False
    log_level: str = "INFO"

    @field_validator("app_version", mode="before")
    @classmethod
    def _blank_version_falls_back(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_APP_VERSION
        return value

    @field_validator("backend_url", "collector_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> StudioSettings:
    """Cached settings, loaded once per process."""
    return StudioSettings()


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
