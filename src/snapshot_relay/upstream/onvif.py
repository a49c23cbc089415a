"""
ONVIF Snapshot Fetcher
======================

Fallback snapshot path through the camera's ONVIF media service.

This module provides:
    - OnvifSession: Device session established once at startup
      (clock sync, media service discovery, profile, snapshot URI)
    - SnapshotAuth: Basic credentials first, Digest when challenged
    - OnvifFetcher: Fetch strategy that uses an optional session

Design Rules:
    - The session is created at most once per process; a failed
      establishment leaves the fetcher without a session
    - Without a session the fetcher fails immediately (no lazy connect)
    - Only responses declared as image/jpeg are accepted
    - Never raises: failures come back as FetchResult.failure
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Generator, Optional, Tuple

import httpx
from onvif import ONVIFCamera
from onvif.exceptions import ONVIFError
from zeep.exceptions import Error as ZeepError

from snapshot_relay.errors import (
    SessionUnavailable,
    SnapshotError,
    UpstreamRejected,
    UpstreamUnreachable,
)
from snapshot_relay.models.camera import CameraEndpoint
from snapshot_relay.models.outcome import FetchResult
from snapshot_relay.models.snapshot import Snapshot, SnapshotSource


logger = logging.getLogger(__name__)


# Device round trips during establishment, each bounded by the request timeout
ESTABLISH_STEPS = 4


# =============================================================================
# Device Session
# =============================================================================

def _classify(error: Exception) -> SnapshotError:
    """Map a device library failure onto the relay's error kinds."""
    network = (httpx.TransportError, OSError)
    cause = error.__cause__ or error.__context__
    if isinstance(error, network) or isinstance(cause, network):
        return UpstreamUnreachable(f"ONVIF device unreachable: {error}")
    return UpstreamRejected(f"ONVIF device error: {error}")


@dataclass(frozen=True)
class OnvifSession:
    """
    Established ONVIF device session.

    Attributes:
        endpoint: Camera the session is bound to
        profile_token: Media profile used for snapshots
        snapshot_uri: HTTP URI returning a JPEG still
    """

    endpoint: CameraEndpoint
    profile_token: str
    snapshot_uri: str

    @classmethod
    async def establish(
        cls,
        endpoint: CameraEndpoint,
        timeout: float = 10.0,
    ) -> "OnvifSession":
        """
        Open a session against the camera's device service.

        Steps:
            1. Read the device clock and discover service addresses
            2. GetProfiles on the media service, first profile wins
            3. GetSnapshotUri for that profile

        Raises:
            UpstreamUnreachable: Device service not reachable or too slow
            UpstreamRejected: Fault, bad credentials or missing data
        """
        logger.info(f"Initializing ONVIF session at {endpoint.host}:{endpoint.onvif_port}")

        camera = ONVIFCamera(
            endpoint.host,
            endpoint.onvif_port,
            endpoint.username,
            endpoint.password,
            adjust_time=True,
        )
        budget = timeout * ESTABLISH_STEPS
        try:
            profile_token, snapshot_uri = await asyncio.wait_for(
                _discover(camera), timeout=budget
            )
        except asyncio.TimeoutError as e:
            raise UpstreamUnreachable(f"ONVIF session setup timed out after {budget:.0f}s") from e
        except (ONVIFError, ZeepError, httpx.HTTPError, OSError) as e:
            raise _classify(e) from e
        finally:
            await camera.close()

        logger.info(f"ONVIF session ready: profile={profile_token}")
        return cls(
            endpoint=endpoint,
            profile_token=profile_token,
            snapshot_uri=snapshot_uri,
        )


async def _discover(camera: ONVIFCamera) -> Tuple[str, str]:
    await camera.update_xaddrs()
    media = await camera.create_media_service()

    profiles = await media.GetProfiles()
    if not profiles:
        raise UpstreamRejected("device reported no media profiles")
    profile_token = profiles[0].token

    result = await media.GetSnapshotUri({"ProfileToken": profile_token})
    snapshot_uri = getattr(result, "Uri", None)
    if not snapshot_uri:
        raise UpstreamRejected(f"no snapshot URI for profile {profile_token}")
    return profile_token, snapshot_uri


# =============================================================================
# Snapshot Authentication
# =============================================================================

class SnapshotAuth(httpx.Auth):
    """
    Auth for snapshot URIs: Basic first, Digest on a Digest challenge.

    Once the camera has answered with a Digest challenge, later
    requests go straight to Digest.
    """

    def __init__(self, username: str, password: str) -> None:
        self._basic = httpx.BasicAuth(username, password)
        self._digest = httpx.DigestAuth(username, password)
        self.use_digest = False

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        if self.use_digest:
            yield from self._digest.auth_flow(request)
            return

        response = yield next(self._basic.auth_flow(request))
        if response.status_code != 401:
            return

        challenge = response.headers.get("www-authenticate", "")
        if not challenge.lower().startswith("digest"):
            return

        logger.debug("Snapshot URI requires Digest authentication")
        self.use_digest = True
        del request.headers["Authorization"]
        yield from self._digest.auth_flow(request)


# =============================================================================
# Fetch Strategy
# =============================================================================

class OnvifFetcher:
    """
    ONVIF snapshot fetcher.

    Attributes:
        client: Shared async HTTP client
        session: Established session, or None when unavailable
        timeout: Per-request timeout in seconds
    """

    source = SnapshotSource.ONVIF

    def __init__(
        self,
        client: httpx.AsyncClient,
        session: Optional[OnvifSession] = None,
        timeout: float = 10.0,
    ) -> None:
        self.client = client
        self.timeout = timeout
        self._auth: Optional[SnapshotAuth] = None
        self.session = session

    @property
    def session(self) -> Optional[OnvifSession]:
        return self._session

    @session.setter
    def session(self, session: Optional[OnvifSession]) -> None:
        self._session = session
        self._auth = None
        if session is not None:
            self._auth = SnapshotAuth(session.endpoint.username, session.endpoint.password)

    @property
    def available(self) -> bool:
        """Whether a device session is established."""
        return self._session is not None

    async def fetch(self) -> FetchResult:
        """
        Retrieve a snapshot through the session's snapshot URI.

        Returns:
            FetchResult with the snapshot, or with SessionUnavailable /
            UpstreamUnreachable / UpstreamRejected.
        """
        if self._session is None:
            logger.info("ONVIF device not initialized")
            return FetchResult.failure(
                self.source, SessionUnavailable("ONVIF session not established")
            )

        logger.info("Attempting ONVIF snapshot...")
        try:
            data = await self._request(self._session)
        except SnapshotError as e:
            logger.error(f"ONVIF snapshot failed: {e}")
            return FetchResult.failure(self.source, e)

        return FetchResult.success(
            Snapshot(data=data, captured_at=time.time(), source=self.source)
        )

    async def _request(self, session: OnvifSession) -> bytes:
        try:
            response = await self.client.get(
                session.snapshot_uri,
                auth=self._auth,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise UpstreamUnreachable(f"request error: {e!r}") from e

        if not response.is_success:
            raise UpstreamRejected(f"HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "")
        if content_type.split(";", 1)[0].strip().lower() != "image/jpeg":
            raise UpstreamRejected(f"response not JPEG: {content_type or 'missing'}")
        if not response.content:
            raise UpstreamRejected("empty JPEG body")

        return response.content
