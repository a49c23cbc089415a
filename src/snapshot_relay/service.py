"""
Snapshot Service
================

Owns every long-lived component of the relay and their lifecycle.

Startup:
    1. Ensure the snapshot directory exists (best-effort)
    2. Open the shared upstream HTTP client (TLS verification off)
    3. Establish the ONVIF session (failure is non-fatal: direct only)
    4. Start the acquisition trigger (inactivity check in push mode)

Shutdown:
    Stop the trigger (cancels the recurring poll) and close the client.

Example:
    service = SnapshotService.from_settings(settings)
    await service.start()
    ...
    await service.stop()
"""

import logging
from typing import Optional

import httpx

from snapshot_relay.acquisition import AcquisitionCoordinator
from snapshot_relay.config import PollingConfig, Settings
from snapshot_relay.errors import SnapshotError
from snapshot_relay.models.camera import CameraEndpoint
from snapshot_relay.models.snapshot import Snapshot
from snapshot_relay.polling import ActivityPoller, AcquisitionTrigger, OnDemandTrigger
from snapshot_relay.store import FileSnapshotStore, MemorySnapshotStore, SnapshotStore
from snapshot_relay.upstream import DirectFetcher, OnvifFetcher, OnvifSession


logger = logging.getLogger(__name__)


# =============================================================================
# Factories
# =============================================================================

def create_snapshot_store(settings: Settings) -> SnapshotStore:
    """Create the snapshot store backend selected in config."""
    backend = settings.store.backend

    if backend == "file":
        logger.info(f"Using FileSnapshotStore: {settings.store.path}")
        return FileSnapshotStore(settings.store.path)
    elif backend == "memory":
        logger.info("Using MemorySnapshotStore")
        return MemorySnapshotStore()
    else:
        raise ValueError(f"Unknown store backend: {backend}")


def create_trigger(polling: PollingConfig, coordinator: AcquisitionCoordinator) -> AcquisitionTrigger:
    """Create the acquisition trigger for the configured mode."""
    mode = polling.mode

    if mode == "push":
        return ActivityPoller(
            coordinator,
            interval=polling.interval_seconds,
            inactivity_timeout=polling.inactivity_timeout_seconds,
            expire_idle_clients=polling.expire_idle_clients,
        )
    elif mode == "on_demand":
        return OnDemandTrigger(coordinator)
    else:
        raise ValueError(f"Unknown polling mode: {mode}")


def create_http_client(timeout: float) -> httpx.AsyncClient:
    """Shared upstream client; camera certificates are self-signed."""
    return httpx.AsyncClient(verify=False, timeout=timeout)


# =============================================================================
# Service
# =============================================================================

class SnapshotService:
    """
    Composition root for the relay.

    Attributes:
        endpoint: Camera configuration
        client: Shared upstream HTTP client
        store: Latest-snapshot store
        direct: Vendor API fetcher
        onvif: ONVIF fetcher (session attached at start)
        coordinator: Fallback chain
        trigger: Push poller or on-demand trigger
    """

    def __init__(
        self,
        endpoint: CameraEndpoint,
        client: httpx.AsyncClient,
        store: SnapshotStore,
        polling: Optional[PollingConfig] = None,
        timeout: float = 10.0,
        onvif_enabled: bool = True,
    ) -> None:
        self.endpoint = endpoint
        self.client = client
        self.store = store
        self.timeout = timeout
        self.onvif_enabled = onvif_enabled

        self.direct = DirectFetcher(endpoint, client, timeout=timeout)
        self.onvif = OnvifFetcher(client, session=None, timeout=timeout)
        self.coordinator = AcquisitionCoordinator(
            fetchers=[self.direct, self.onvif],
            store=store,
        )

        self.trigger: AcquisitionTrigger = create_trigger(
            polling or PollingConfig(), self.coordinator
        )

        self._started = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "SnapshotService":
        return cls(
            endpoint=settings.camera.endpoint(),
            client=create_http_client(settings.camera.timeout_seconds),
            store=create_snapshot_store(settings),
            polling=settings.polling,
            timeout=settings.camera.timeout_seconds,
            onvif_enabled=settings.camera.onvif_enabled,
        )

    @property
    def mode(self) -> str:
        return self.trigger.mode

    @property
    def onvif_session(self) -> Optional[OnvifSession]:
        return self.onvif.session

    async def start(self) -> None:
        """Bring up the session and the trigger. Never fails on camera errors."""
        if self._started:
            return

        if isinstance(self.store, FileSnapshotStore):
            self.store.ensure_directory()

        if self.onvif_enabled and self.endpoint.host:
            await self.init_onvif()
        else:
            logger.info("ONVIF fallback disabled")

        await self.trigger.start()
        self._started = True
        logger.info(
            f"Snapshot service started: camera={self.endpoint.host or 'unset'}, "
            f"mode={self.mode}"
        )

    async def init_onvif(self) -> bool:
        """
        Establish the ONVIF session once.

        Returns:
            True if a session is available afterwards.
        """
        if self.onvif.session is not None:
            return True
        try:
            self.onvif.session = await OnvifSession.establish(
                self.endpoint, timeout=self.timeout
            )
        except SnapshotError as e:
            logger.warning(f"ONVIF initialization failed, using direct API only: {e}")
            return False
        return True

    async def stop(self) -> None:
        """Cancel background work and release the upstream client."""
        await self.trigger.stop()
        await self.client.aclose()
        self._started = False
        logger.info("Snapshot service stopped")

    # -------------------------------------------------------------------------
    # Operations used by the HTTP surface
    # -------------------------------------------------------------------------

    async def snapshot_for_request(self) -> Snapshot:
        """
        Apply the trigger's activation rule, then read the store.

        Raises:
            StoreUnavailable: Nothing stored yet
        """
        await self.trigger.on_snapshot_request()
        return await self.store.read()

    async def debug_info(self) -> dict:
        stat = await self.store.stat()
        outcome = self.coordinator.last_outcome
        return {
            **stat.to_dict(),
            **self.trigger.to_dict(),
            "onvif_session": self.onvif.session is not None,
            "acquisition_in_flight": self.coordinator.in_flight,
            "last_acquisition": outcome.model_dump(mode="json") if outcome else None,
            "acquisitions": self.coordinator.metrics.to_dict(),
        }
