"""
On-Demand Trigger
=================

Stateless alternative to the activity-driven poller: every snapshot
request runs one acquisition before the stored image is served.

No timers, no idle detection. Connect/disconnect signals are accepted
and ignored so the same front-end works against either mode.
"""

import logging

from snapshot_relay.acquisition import AcquisitionCoordinator
from snapshot_relay.polling.poller import PollerState


logger = logging.getLogger(__name__)


class OnDemandTrigger:
    """Acquire-per-request trigger."""

    mode = "on_demand"

    def __init__(self, coordinator: AcquisitionCoordinator) -> None:
        self.coordinator = coordinator
        self.requests: int = 0

    @property
    def state(self) -> PollerState:
        return PollerState.IDLE

    @property
    def polling(self) -> bool:
        return False

    @property
    def clients(self) -> int:
        return 0

    async def on_snapshot_request(self) -> None:
        self.requests += 1
        success = await self.coordinator.acquire()
        if not success:
            logger.warning("On-demand acquisition failed, serving last stored snapshot")

    async def connect(self) -> int:
        return 0

    async def disconnect(self) -> int:
        return 0

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "state": PollerState.IDLE.value,
            "polling": False,
            "clients": 0,
            "requests": self.requests,
        }
