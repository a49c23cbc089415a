"""
Direct Snapshot Fetcher
=======================

Fetches one JPEG frame from the camera vendor's HTTP snapshot API.

Request shape:
    GET https://{host}/cgi-bin/api.cgi?cmd=Snap&channel=0&rs={nonce}
        &user={user}&password={password}

Credentials are sent both as HTTP basic auth and in the query string,
which is what the camera firmware expects. Camera certificates are
self-issued, so the shared client is created without verification.

Design Rules:
    - One request per fetch, bounded by the client timeout
    - Never raises: failures come back as FetchResult.failure
    - Does NOT write to the snapshot store
"""

import logging
import time
from typing import Callable, Optional

import httpx

from snapshot_relay.errors import SnapshotError, UpstreamRejected, UpstreamUnreachable
from snapshot_relay.models.camera import CameraEndpoint
from snapshot_relay.models.outcome import FetchResult
from snapshot_relay.models.snapshot import Snapshot, SnapshotSource, looks_like_jpeg


logger = logging.getLogger(__name__)


def _millis_nonce() -> str:
    return str(int(time.time() * 1000))


class DirectFetcher:
    """
    Vendor API snapshot fetcher.

    Attributes:
        endpoint: Camera to fetch from
        client: Shared async HTTP client (TLS verification disabled)
        timeout: Per-request timeout in seconds

    Example:
        fetcher = DirectFetcher(endpoint, client)
        result = await fetcher.fetch()
        if result.ok:
            store_bytes(result.snapshot.data)
    """

    source = SnapshotSource.DIRECT

    def __init__(
        self,
        endpoint: CameraEndpoint,
        client: httpx.AsyncClient,
        timeout: float = 10.0,
        nonce: Optional[Callable[[], str]] = None,
    ) -> None:
        self.endpoint = endpoint
        self.client = client
        self.timeout = timeout
        self._nonce = nonce or _millis_nonce

    def build_params(self) -> dict:
        """Query string for one snapshot request (fresh nonce each call)."""
        return {
            "cmd": "Snap",
            "channel": self.endpoint.channel,
            "rs": self._nonce(),
            "user": self.endpoint.username,
            "password": self.endpoint.password,
        }

    async def fetch(self) -> FetchResult:
        """
        Request one snapshot from the vendor API.

        Returns:
            FetchResult with the snapshot, or with UpstreamUnreachable
            (transport error, timeout) / UpstreamRejected (bad status,
            empty or non-JPEG body).
        """
        logger.info(f"Attempting direct snapshot from {self.endpoint.direct_url}")
        try:
            data = await self._request()
        except SnapshotError as e:
            logger.error(f"Direct snapshot failed: {e}")
            return FetchResult.failure(self.source, e)

        return FetchResult.success(
            Snapshot(data=data, captured_at=time.time(), source=self.source)
        )

    async def _request(self) -> bytes:
        try:
            response = await self.client.get(
                self.endpoint.direct_url,
                params=self.build_params(),
                auth=httpx.BasicAuth(self.endpoint.username, self.endpoint.password),
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise UpstreamUnreachable(f"timed out after {self.timeout}s: {e!r}") from e
        except httpx.HTTPError as e:
            raise UpstreamUnreachable(f"request error: {e!r}") from e

        if not response.is_success:
            raise UpstreamRejected(f"HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "")
        if not looks_like_jpeg(content_type, response.content):
            raise UpstreamRejected(
                f"not a JPEG (content-type={content_type or 'missing'}, "
                f"{len(response.content)} bytes)"
            )

        return response.content
