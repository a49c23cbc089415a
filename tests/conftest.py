"""
Test Configuration
==================

Pytest fixtures and test helpers for the snapshot relay.
"""

import asyncio
from types import SimpleNamespace
from typing import Callable, List, Optional

import httpx
import pytest

from snapshot_relay.errors import SnapshotError, UpstreamRejected
from snapshot_relay.models.camera import CameraEndpoint
from snapshot_relay.models.outcome import FetchResult
from snapshot_relay.models.snapshot import Snapshot, SnapshotSource


# Smallest byte string that passes as a JPEG (SOI ... EOI)
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00\xff\xd9"


class FakeFetcher:
    """
    Scripted fetch strategy.

    Records every call into a shared `calls` list so tests can assert
    on ordering across fetchers.
    """

    def __init__(
        self,
        source: SnapshotSource,
        data: Optional[bytes] = None,
        error: Optional[SnapshotError] = None,
        calls: Optional[List[str]] = None,
        delay: float = 0.0,
    ) -> None:
        self.source = source
        self.data = data
        self.error = error or UpstreamRejected("scripted failure")
        self.calls = calls if calls is not None else []
        self.delay = delay

    @property
    def call_count(self) -> int:
        return self.calls.count(self.source.value)

    async def fetch(self) -> FetchResult:
        self.calls.append(self.source.value)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.data is None:
            return FetchResult.failure(self.source, self.error)
        return FetchResult.success(Snapshot(data=self.data, source=self.source))


class CountingCoordinator:
    """Stand-in for AcquisitionCoordinator that only counts calls."""

    def __init__(self, result: bool = True, delay: float = 0.0) -> None:
        self.result = result
        self.delay = delay
        self.calls = 0

    async def acquire(self) -> bool:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.result


class FakeMediaService:
    """Media service answering GetProfiles / GetSnapshotUri."""

    def __init__(self, profiles: List[str], snapshot_uri: Optional[str]) -> None:
        self.profiles = profiles
        self.snapshot_uri = snapshot_uri
        self.requested_tokens: List[str] = []

    async def GetProfiles(self):
        return [SimpleNamespace(token=token) for token in self.profiles]

    async def GetSnapshotUri(self, params):
        self.requested_tokens.append(params["ProfileToken"])
        return SimpleNamespace(Uri=self.snapshot_uri)


class FakeOnvifCamera:
    """
    Stand-in for onvif.ONVIFCamera.

    Class attributes configure the next instances; `instances` collects
    every camera created so tests can inspect arguments and closing.
    """

    profiles: List[str] = ["MainStream", "SubStream"]
    snapshot_uri: Optional[str] = "http://192.168.1.50/onvif/snapshot.jpg"
    error: Optional[Exception] = None
    delay: float = 0.0
    instances: List["FakeOnvifCamera"] = []

    def __init__(self, host, port, user, passwd, **kwargs) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.passwd = passwd
        self.kwargs = kwargs
        self.closed = False
        self.media = FakeMediaService(list(self.profiles), self.snapshot_uri)
        type(self).instances.append(self)

    async def update_xaddrs(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

    async def create_media_service(self) -> FakeMediaService:
        return self.media

    async def close(self) -> None:
        self.closed = True


class ManualClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """Async client whose requests are answered by `handler`."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), verify=False)


@pytest.fixture
def jpeg_bytes() -> bytes:
    return JPEG_BYTES


@pytest.fixture
def endpoint() -> CameraEndpoint:
    return CameraEndpoint(
        host="192.168.1.50",
        username="admin",
        password="s3cret",
        onvif_port=8000,
    )


@pytest.fixture
def onvif_camera(monkeypatch):
    """Replace the ONVIF device library with FakeOnvifCamera."""

    class Camera(FakeOnvifCamera):
        instances = []

    monkeypatch.setattr("snapshot_relay.upstream.onvif.ONVIFCamera", Camera)
    return Camera
