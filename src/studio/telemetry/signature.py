"""
Client signature: an offline-computable fingerprint of version and environment.

The signature correlates bug reports with the build and coarse device
profile that produced them, without collecting anything identifying.

Manifesto:
    - **Deterministic:** same five inputs, same signature, every call
    - **Offline:** no I/O, no persisted state
    - **Total:** every input has a fallback, so computation cannot fail
    - **Not a security boundary:** djb2 truncated to six base-36 chars
      accepts collisions

Architecture:
    ::

        feature flags ──sort──► "k:true,k2:false" ──djb2──► fhash (6 chars)

        "{appVersion}-{buildId}-{deviceTier}-{connTier}-{fhash}"
              │
              └──djb2──► to_short_code ──► "v{appVersion}-{hash6}"

Examples:
    >>> djb2("a") == djb2("a")
    True
    >>> to_short_code(35)
    '00000z'
    >>> compute_client_signature(DeviceTier.MEDIUM, ConnectivityTier.G3,
    ...                          app_version="1.0.0")     # doctest: +SKIP
    'v1.0.0-k2j9ab'

Tags:
    hashing, signature, djb2, telemetry, studio-core
"""

from __future__ import annotations

from collections.abc import Mapping

from studio.core.logging import get_logger
from studio.core.settings import DEFAULT_APP_VERSION, get_settings
from studio.telemetry.environment import (
    SERVER_BUILD_ID,
    SERVER_FEATURE_FLAGS,
    RuntimeEnvironment,
    ServerEnvironment,
    gather_feature_flags,
)
from studio.telemetry.models import ConnectivityTier, DeviceTier

logger = get_logger(__name__)

DJB2_SEED = 5381
SHORT_CODE_LENGTH = 6
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
_UINT32 = 0xFFFFFFFF


def djb2(text: str) -> int:
    """djb2 over UTF-16 code units, as an unsigned 32-bit integer.

    Iterating UTF-16 code units (not code points) keeps results identical
    to what a browser computes for the same string, astral characters
    included.
    """
    h = DJB2_SEED
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = ((h * 33) ^ unit) & _UINT32
    return h


def _base36(n: int) -> str:
    if n == 0:
        return "0"
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def to_short_code(n: int) -> str:
    """``abs(n)`` in base 36, truncated to six characters, zero-padded on the left."""
    return _base36(abs(int(n)))[:SHORT_CODE_LENGTH].rjust(SHORT_CODE_LENGTH, "0")


def feature_hash(flags: Mapping[str, bool]) -> str:
    """Short code of a canonicalized (key-sorted) feature flag set."""
    canonical = ",".join(
        f"{key}:{'true' if flags[key] else 'false'}" for key in sorted(flags)
    )
    return to_short_code(djb2(canonical))


def resolve_app_version(app_version: str | None) -> str:
    """Explicit version, else ``STUDIO_APP_VERSION``, else ``"1.0.0"``."""
    if app_version:
        return app_version
    try:
        return get_settings().app_version or DEFAULT_APP_VERSION
    except Exception as e:
        logger.debug("signature_version_fallback", error=str(e))
        return DEFAULT_APP_VERSION


def _resolve_build_id(environment: RuntimeEnvironment) -> str:
    try:
        return environment.build_id() or SERVER_BUILD_ID
    except Exception as e:
        logger.debug("signature_build_id_fallback", error=str(e))
        return SERVER_BUILD_ID


def _resolve_flags(environment: RuntimeEnvironment) -> dict[str, bool]:
    try:
        return gather_feature_flags(environment)
    except Exception as e:
        logger.debug("signature_flags_fallback", error=str(e))
        return {name: False for name in SERVER_FEATURE_FLAGS}


def compute_client_signature(
    device_tier: DeviceTier | str,
    connectivity_tier: ConnectivityTier | str,
    *,
    environment: RuntimeEnvironment | None = None,
    app_version: str | None = None,
) -> str:
    """
    Compute the client signature for the given tiers in ``environment``.

    Args:
        device_tier: Device tier (enum or its string value)
        connectivity_tier: Connectivity tier (enum or its string value)
        environment: Where build id and feature flags come from
            (default: ``ServerEnvironment``)
        app_version: Version to embed (default: settings, then ``"1.0.0"``)

    Returns:
        ``v{app_version}-{hash6}``, e.g. ``v1.0.0-a3f2c1``
    """
    env = environment if environment is not None else ServerEnvironment()
    version = resolve_app_version(app_version)
    build_id = _resolve_build_id(env)
    fhash = feature_hash(_resolve_flags(env))

    device = device_tier.value if isinstance(device_tier, DeviceTier) else str(device_tier)
    conn = (
        connectivity_tier.value
        if isinstance(connectivity_tier, ConnectivityTier)
        else str(connectivity_tier)
    )

    signature_input = f"{version}-{build_id}-{device}-{conn}-{fhash}"
    return f"v{version}-{to_short_code(djb2(signature_input))}"
