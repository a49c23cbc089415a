"""
Polling Module
==============

Decides when acquisitions happen.

Components:
    - AcquisitionTrigger: Protocol shared by both modes
    - ActivityPoller: Push mode, recurring acquisition while clients are active
    - OnDemandTrigger: One acquisition per snapshot request
    - PollerState: IDLE / POLLING

One mode is chosen per deployment (settings.polling.mode).
"""

from typing import Protocol

from snapshot_relay.polling.poller import ActivityPoller, PollerState
from snapshot_relay.polling.on_demand import OnDemandTrigger


class AcquisitionTrigger(Protocol):
    """Protocol for acquisition triggers used by the HTTP surface."""

    mode: str

    @property
    def state(self) -> PollerState:
        ...

    @property
    def clients(self) -> int:
        ...

    async def on_snapshot_request(self) -> None:
        ...

    async def connect(self) -> int:
        ...

    async def disconnect(self) -> int:
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    def to_dict(self) -> dict:
        ...


__all__ = [
    "AcquisitionTrigger",
    "ActivityPoller",
    "OnDemandTrigger",
    "PollerState",
]
