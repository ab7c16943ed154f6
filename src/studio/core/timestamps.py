"""
Timestamp and identifier helpers.

Telemetry records carry epoch milliseconds on the wire, matching what the
browser side reports, so the helpers here convert between those and
timezone-aware datetimes.

STDLIB ONLY.
"""

import time
import uuid
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def from_epoch_ms(value: int | float | None) -> datetime | None:
    """Convert epoch milliseconds to an aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def new_id() -> str:
    """Random record identifier (uuid4, canonical string form)."""
    return str(uuid.uuid4())
