"""
Upstream Module
===============

Strategies for pulling one JPEG frame from the camera.

Components:
    - SnapshotFetcher: Protocol shared by all fetch strategies
    - DirectFetcher: Camera vendor HTTP API (preferred)
    - OnvifFetcher / OnvifSession: ONVIF media snapshot (fallback)
    - SnapshotAuth: Basic or Digest auth for ONVIF snapshot URIs

Fetchers return a FetchResult and never touch the snapshot store;
the acquisition coordinator decides what gets stored.
"""

from typing import Protocol

from snapshot_relay.models.outcome import FetchResult
from snapshot_relay.models.snapshot import SnapshotSource
from snapshot_relay.upstream.direct import DirectFetcher
from snapshot_relay.upstream.onvif import OnvifFetcher, OnvifSession, SnapshotAuth


class SnapshotFetcher(Protocol):
    """
    Protocol for fetch strategies.

    Implementations must not raise from `fetch`; failures are
    reported through FetchResult.error.
    """

    source: SnapshotSource

    async def fetch(self) -> FetchResult:
        ...


__all__ = [
    "SnapshotFetcher",
    "DirectFetcher",
    "OnvifFetcher",
    "OnvifSession",
    "SnapshotAuth",
]
