"""Tier classifiers: raw hardware and network signals to coarse tiers.

Both functions are total. ``unknown`` device tiers only arise upstream,
when no device signals were collected at all (see ``tiers_for``).
"""

from __future__ import annotations

from studio.telemetry.models import ConnectivityTier, DeviceSignals, DeviceTier

_CONNECTIVITY_BY_EFFECTIVE_TYPE = {
    "4g": ConnectivityTier.G4,
    "5g": ConnectivityTier.G4,
    "3g": ConnectivityTier.G3,
    "2g": ConnectivityTier.SLOW,
    "slow-2g": ConnectivityTier.SLOW,
}


def derive_device_tier(cores: int | None, memory_gib: float | None) -> DeviceTier:
    """Classify a device from logical core count and memory estimate (GiB).

    First match wins. The second rule promotes ``memory >= 4`` alone to
    ``high``; this decision table is kept as-is.

    Examples:
        >>> derive_device_tier(8, 16)
        <DeviceTier.HIGH: 'high'>
        >>> derive_device_tier(2, 1)
        <DeviceTier.MEDIUM: 'medium'>
        >>> derive_device_tier(0, None)
        <DeviceTier.LOW: 'low'>
    """
    cores = cores or 1
    memory = memory_gib if memory_gib is not None else 0

    if memory >= 8 and cores >= 4:
        return DeviceTier.HIGH
    if memory >= 4 or cores >= 4:
        return DeviceTier.HIGH
    if memory >= 2 or cores >= 2:
        return DeviceTier.MEDIUM
    return DeviceTier.LOW


def derive_connectivity_tier(effective_type: str | None) -> ConnectivityTier:
    """Classify a network effective-type hint (case-insensitive)."""
    if not effective_type:
        return ConnectivityTier.UNKNOWN
    return _CONNECTIVITY_BY_EFFECTIVE_TYPE.get(effective_type.lower(), ConnectivityTier.UNKNOWN)


def tiers_for(device: DeviceSignals | None) -> tuple[DeviceTier, ConnectivityTier]:
    """Both tiers for a device, ``unknown`` for both when no signals exist."""
    if device is None:
        return DeviceTier.UNKNOWN, ConnectivityTier.UNKNOWN
    return (
        derive_device_tier(device.hardware_concurrency, device.device_memory),
        derive_connectivity_tier(device.connection_effective_type),
    )
