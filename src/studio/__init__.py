"""studio-core: client telemetry pipeline and collector for the studio app.

Gather runtime signals, digest them into a signed snapshot, and deliver
snapshots and error events to a collector with bounded retry.
"""

__version__ = "1.0.0"
