"""
studio.telemetry - gather → digest → sync pipeline and client signature.

Modules
-------
models       Frozen records (device, snapshot, error event, health)
environment  RuntimeEnvironment protocol and implementations
tiers        Device / connectivity tier classifiers
signature    djb2 hasher and client signature builder
gather       Read-only collection from state containers
digest       Snapshot derivation
health       Backend health probe
store        Snapshot history and error outbox
payloads     Wire models for delivery
sync         Bounded-retry delivery
runner       One-shot startup cycle
repository   Collector persistence
"""

from studio.telemetry.digest import digest_gathered_data
from studio.telemetry.environment import (
    ClientEnvironment,
    ProcessEnvironment,
    RuntimeEnvironment,
    ServerEnvironment,
    gather_feature_flags,
)
from studio.telemetry.gather import (
    StoreStates,
    gather_from_stores,
    gather_storage_estimate,
    with_storage,
)
from studio.telemetry.health import check_health
from studio.telemetry.models import (
    ConnectivityTier,
    DeviceSignals,
    DeviceTier,
    ErrorEvent,
    GatheredData,
    HealthResult,
    HealthStatus,
    TelemetrySnapshot,
)
from studio.telemetry.runner import RunnerState, TelemetryRunner
from studio.telemetry.signature import compute_client_signature, djb2, feature_hash, to_short_code
from studio.telemetry.store import ErrorStore, TelemetryStore
from studio.telemetry.sync import SyncResult, TelemetrySyncer, sync_telemetry
from studio.telemetry.tiers import derive_connectivity_tier, derive_device_tier

__all__ = [
    "ClientEnvironment",
    "ConnectivityTier",
    "DeviceSignals",
    "DeviceTier",
    "ErrorEvent",
    "ErrorStore",
    "GatheredData",
    "HealthResult",
    "HealthStatus",
    "ProcessEnvironment",
    "RunnerState",
    "RuntimeEnvironment",
    "ServerEnvironment",
    "StoreStates",
    "SyncResult",
    "TelemetryRunner",
    "TelemetrySnapshot",
    "TelemetryStore",
    "TelemetrySyncer",
    "check_health",
    "compute_client_signature",
    "derive_connectivity_tier",
    "derive_device_tier",
    "digest_gathered_data",
    "djb2",
    "feature_hash",
    "gather_feature_flags",
    "gather_from_stores",
    "gather_storage_estimate",
    "sync_telemetry",
    "to_short_code",
    "with_storage",
]
