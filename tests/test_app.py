"""
HTTP Surface Tests
==================

FastAPI routes against a service whose camera is mocked.
"""

import logging
import signal

import httpx
import pytest
from fastapi.testclient import TestClient
from onvif.exceptions import ONVIFError

from conftest import JPEG_BYTES, mock_client
from snapshot_relay.config import PollingConfig, ServerConfig, Settings
from snapshot_relay.main import NO_CACHE_HEADERS, create_app, install_sigterm_logging
from snapshot_relay.service import SnapshotService
from snapshot_relay.store import FileSnapshotStore, MemorySnapshotStore


class FakeCamera:
    """Vendor API stand-in that can be switched off."""

    def __init__(self, online: bool = True) -> None:
        self.online = online
        self.requests = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests += 1
        if not self.online:
            raise httpx.ConnectError("camera offline", request=request)
        return httpx.Response(200, content=JPEG_BYTES, headers={"Content-Type": "image/jpeg"})


def _client(endpoint, camera, store=None, mode="push", static_dir=None, onvif_enabled=False):
    service = SnapshotService(
        endpoint=endpoint,
        client=mock_client(camera),
        store=store or MemorySnapshotStore(),
        polling=PollingConfig(mode=mode, interval_ms=60000, inactivity_timeout_ms=60000),
        onvif_enabled=onvif_enabled,
    )
    app = create_app(Settings(server=ServerConfig(static_dir=static_dir)), service=service)
    return TestClient(app), service


def _assert_no_cache(response):
    for name, value in NO_CACHE_HEADERS.items():
        assert response.headers[name] == value


class TestSnapshotRoutes:
    """Snapshot serving."""

    def test_snapshot_served_with_no_cache_headers(self, endpoint):
        client, service = _client(endpoint, FakeCamera())
        with client:
            response = client.get("/snapshot.jpg")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert response.content == JPEG_BYTES
        _assert_no_cache(response)

    def test_cache_busting_name_variant(self, endpoint):
        client, _ = _client(endpoint, FakeCamera())
        with client:
            response = client.get("/snapshot/1712345678901.jpg")

        assert response.status_code == 200
        assert response.content == JPEG_BYTES
        _assert_no_cache(response)

    def test_unavailable_snapshot_returns_503(self, endpoint):
        client, _ = _client(endpoint, FakeCamera(online=False))
        with client:
            response = client.get("/snapshot.jpg")

        assert response.status_code == 503
        assert response.json() == {"error": "Snapshot not available"}

    def test_last_good_image_served_when_camera_down(self, endpoint, tmp_path):
        path = tmp_path / "snapshot.jpg"
        path.write_bytes(b"\xff\xd8older")
        client, _ = _client(endpoint, FakeCamera(online=False), store=FileSnapshotStore(path))
        with client:
            response = client.get("/snapshot.jpg")

        assert response.status_code == 200
        assert response.content == b"\xff\xd8older"

    def test_request_activates_push_polling(self, endpoint):
        camera = FakeCamera()
        client, service = _client(endpoint, camera)
        with client:
            client.get("/snapshot.jpg")
            client.get("/snapshot.jpg")
            debug = client.get("/debug").json()

        assert debug["polling"] is True
        assert debug["state"] == "polling"
        assert camera.requests == 1

    def test_on_demand_acquires_per_request(self, endpoint):
        camera = FakeCamera()
        client, service = _client(endpoint, camera, mode="on_demand")
        with client:
            for _ in range(3):
                assert client.get("/snapshot.jpg").status_code == 200

        assert camera.requests == 3
        assert service.coordinator.metrics.attempts == 3


class TestPresenceRoutes:
    """Connect / disconnect signalling."""

    def test_connect_and_disconnect(self, endpoint):
        client, service = _client(endpoint, FakeCamera())
        with client:
            first = client.get("/connect").json()
            second = client.get("/connect").json()
            polling = service.trigger.polling
            left = client.get("/disconnect").json()
            gone = client.get("/disconnect").json()
            extra = client.get("/disconnect").json()
            stopped = not service.trigger.polling

        assert first == {"status": "connected", "clients": 1}
        assert second == {"status": "connected", "clients": 2}
        assert polling is True
        assert left == {"status": "disconnected", "clients": 1}
        assert gone == {"status": "disconnected", "clients": 0}
        assert extra == {"status": "disconnected", "clients": 0}
        assert stopped

    def test_connect_ignored_on_demand(self, endpoint):
        camera = FakeCamera()
        client, _ = _client(endpoint, camera, mode="on_demand")
        with client:
            response = client.get("/connect").json()

        assert response["status"] == "ignored"
        assert camera.requests == 0


class TestDiagnostics:
    """Debug, health and manual trigger."""

    def test_debug_before_any_snapshot(self, endpoint, tmp_path):
        store = FileSnapshotStore(tmp_path / "snapshot.jpg")
        client, _ = _client(endpoint, FakeCamera(), store=store)
        with client:
            debug = client.get("/debug").json()

        assert debug["exists"] is False
        assert debug["path"] == str(tmp_path / "snapshot.jpg")
        assert debug["clients"] == 0
        assert debug["polling"] is False
        assert debug["onvif_session"] is False
        assert debug["last_acquisition"] is None

    def test_debug_after_snapshot(self, endpoint, tmp_path):
        store = FileSnapshotStore(tmp_path / "snapshot.jpg")
        client, _ = _client(endpoint, FakeCamera(), store=store)
        with client:
            client.get("/snapshot.jpg")
            debug = client.get("/debug").json()

        assert debug["exists"] is True
        assert debug["size"] == len(JPEG_BYTES)
        assert debug["last_acquisition"]["success"] is True
        assert debug["last_acquisition"]["source"] == "direct"
        assert debug["acquisitions"]["direct_successes"] == 1

    def test_test_snapshot_reports_result(self, endpoint):
        client, _ = _client(endpoint, FakeCamera(online=False))
        with client:
            body = client.get("/test-snapshot").json()

        assert body["success"] is False
        assert body["outcome"]["success"] is False

    def test_health(self, endpoint):
        client, _ = _client(endpoint, FakeCamera())
        with client:
            body = client.get("/health").json()
        assert body["status"] == "healthy"

    def test_root_info(self, endpoint):
        client, _ = _client(endpoint, FakeCamera(), mode="on_demand")
        with client:
            body = client.get("/").json()
        assert body["mode"] == "on_demand"
        assert body["snapshot_url"] == "/snapshot.jpg"

    def test_static_dir_served_at_root(self, endpoint, tmp_path):
        (tmp_path / "index.html").write_text("<html>viewer</html>")
        client, _ = _client(endpoint, FakeCamera(), static_dir=str(tmp_path))
        with client:
            index = client.get("/")
            snap = client.get("/snapshot.jpg")

        assert index.status_code == 200
        assert "viewer" in index.text
        assert snap.headers["content-type"] == "image/jpeg"

    def test_root_info_when_static_dir_missing(self, endpoint, tmp_path):
        client, _ = _client(endpoint, FakeCamera(), static_dir=str(tmp_path / "absent"))
        with client:
            response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "SnapshotRelay"


class TestServiceStartup:
    """ONVIF session handling during startup."""

    def test_onvif_init_failure_is_non_fatal(self, endpoint, onvif_camera):
        error = ONVIFError("request failed")
        error.__cause__ = httpx.ConnectError("no route to host")
        onvif_camera.error = error

        client, service = _client(endpoint, FakeCamera(), onvif_enabled=True)
        with client:
            snap = client.get("/snapshot.jpg")
            debug = client.get("/debug").json()

        assert len(onvif_camera.instances) == 1
        assert service.onvif_session is None
        assert snap.status_code == 200
        assert snap.content == JPEG_BYTES
        assert debug["onvif_session"] is False
        assert debug["last_acquisition"]["source"] == "direct"

    def test_onvif_session_serves_when_direct_rejected(self, endpoint, onvif_camera):
        def camera(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/onvif/snapshot.jpg":
                return httpx.Response(200, content=JPEG_BYTES, headers={"Content-Type": "image/jpeg"})
            return httpx.Response(401)

        client, service = _client(endpoint, camera, onvif_enabled=True)
        with client:
            snap = client.get("/snapshot.jpg")
            debug = client.get("/debug").json()

        assert service.onvif_session.profile_token == "MainStream"
        assert snap.content == JPEG_BYTES
        assert debug["onvif_session"] is True
        assert debug["last_acquisition"]["source"] == "onvif"

    def test_onvif_skipped_when_disabled(self, endpoint, onvif_camera):
        client, service = _client(endpoint, FakeCamera(), onvif_enabled=False)
        with client:
            client.get("/health")

        assert onvif_camera.instances == []
        assert service.onvif_session is None


class TestSigtermLogging:
    """SIGTERM is logged and passed on to the previous handler."""

    def test_previous_handler_still_runs(self, caplog):
        received = []
        original = signal.signal(signal.SIGTERM, lambda signum, frame: received.append(signum))
        try:
            previous = install_sigterm_logging()
            handler = signal.getsignal(signal.SIGTERM)

            with caplog.at_level(logging.INFO, logger="snapshot_relay.main"):
                handler(signal.SIGTERM, None)

            assert callable(previous)
            assert received == [signal.SIGTERM]
            assert "Received SIGTERM" in caplog.text
        finally:
            signal.signal(signal.SIGTERM, original)
