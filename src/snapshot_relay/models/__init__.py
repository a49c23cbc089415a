"""
Data Models
===========

Data models for the snapshot relay.

Models:
    - CameraEndpoint: Immutable upstream camera configuration
    - Snapshot / SnapshotSource: One JPEG frame and its origin
    - FetchResult: Snapshot-or-failure returned by a fetcher
    - AcquisitionOutcome / AcquisitionMetrics: Coordinator bookkeeping
"""

from snapshot_relay.models.camera import CameraEndpoint
from snapshot_relay.models.snapshot import Snapshot, SnapshotSource, looks_like_jpeg
from snapshot_relay.models.outcome import (
    AcquisitionMetrics,
    AcquisitionOutcome,
    FetchResult,
)

__all__ = [
    "CameraEndpoint",
    "Snapshot",
    "SnapshotSource",
    "looks_like_jpeg",
    "FetchResult",
    "AcquisitionOutcome",
    "AcquisitionMetrics",
]
