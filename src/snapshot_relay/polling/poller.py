"""
Activity-Driven Poller
======================

Keeps the snapshot cache warm while viewers are around.

States:
    IDLE     - no recurring acquisition
    POLLING  - acquisition repeats every `interval` seconds

Transitions:
    IDLE -> POLLING:
        - connect() takes the interested-client count from 0 to 1
        - on_snapshot_request() arrives while IDLE (implicit activation)
        On entry one acquisition runs immediately, then the recurring
        schedule starts.

    POLLING -> IDLE:
        - disconnect() brings the client count back to 0
        - check_inactivity() finds no client activity within the
          inactivity window and no interested clients left

Client activity means a snapshot request or a connect signal. With
`expire_idle_clients` enabled, clients that stayed silent for the whole
inactivity window are treated as gone (their disconnect was lost).

All transitions are serialized by one lock, so concurrent activators
wait for the first activation and its initial acquisition.
"""

import asyncio
import logging
import math
import time
from enum import Enum
from typing import Callable, Optional, Set

from snapshot_relay.acquisition import AcquisitionCoordinator


logger = logging.getLogger(__name__)


class PollerState(str, Enum):
    """Poller states."""

    IDLE = "idle"
    POLLING = "polling"


class ActivityPoller:
    """
    Push-variant acquisition trigger with idle detection.

    Attributes:
        coordinator: Runs the acquisition fallback chain
        interval: Seconds between recurring acquisitions
        inactivity_timeout: Seconds without activity before polling stops
        expire_idle_clients: Drop silent clients at the inactivity check

    Example:
        poller = ActivityPoller(coordinator, interval=5.0, inactivity_timeout=30.0)
        await poller.start()

        await poller.connect()          # IDLE -> POLLING
        await poller.disconnect()       # POLLING -> IDLE

        await poller.stop()
    """

    mode = "push"

    def __init__(
        self,
        coordinator: AcquisitionCoordinator,
        interval: float = 5.0,
        inactivity_timeout: float = 30.0,
        expire_idle_clients: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        if inactivity_timeout <= 0:
            raise ValueError("inactivity_timeout must be > 0")

        self.coordinator = coordinator
        self.interval = interval
        self.inactivity_timeout = inactivity_timeout
        self.expire_idle_clients = expire_idle_clients
        self._clock = clock

        self._state = PollerState.IDLE
        self._clients: int = 0
        self._last_activity: Optional[float] = None
        self._lock = asyncio.Lock()

        self._poll_task: Optional[asyncio.Task] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()

        self.polls: int = 0
        self.activations: int = 0

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def polling(self) -> bool:
        return self._state is PollerState.POLLING

    @property
    def clients(self) -> int:
        """Current interested-client count."""
        return self._clients

    def idle_seconds(self) -> float:
        """Seconds since the last client activity (inf if none yet)."""
        if self._last_activity is None:
            return math.inf
        return self._clock() - self._last_activity

    def _touch(self) -> None:
        self._last_activity = self._clock()

    # -------------------------------------------------------------------------
    # Signals
    # -------------------------------------------------------------------------

    async def connect(self) -> int:
        """
        Register an interested client.

        Returns:
            Client count after the change.
        """
        self._clients += 1
        self._touch()
        logger.info(f"Client connected. Total clients: {self._clients}")

        if self._clients == 1 and self._state is PollerState.IDLE:
            await self._activate("first client connected")
        return self._clients

    async def disconnect(self) -> int:
        """
        Unregister an interested client (clamped at zero).

        Returns:
            Client count after the change.
        """
        if self._clients == 0:
            logger.debug("Disconnect with no connected clients ignored")
            return 0

        self._clients -= 1
        logger.info(f"Client disconnected. Total clients: {self._clients}")

        if self._clients == 0:
            await self._deactivate("no clients connected")
        return self._clients

    async def on_snapshot_request(self) -> None:
        """Record a snapshot request; activates polling when IDLE."""
        self._touch()
        if self._state is PollerState.IDLE:
            await self._activate("snapshot requested")

    async def check_inactivity(self) -> bool:
        """
        Stop polling if clients have gone quiet.

        Returns:
            True if this check moved the poller to IDLE.
        """
        async with self._lock:
            if self._state is not PollerState.POLLING:
                return False

            idle_for = self.idle_seconds()
            if idle_for <= self.inactivity_timeout:
                return False

            if self._clients > 0:
                if not self.expire_idle_clients:
                    return False
                logger.warning(
                    f"{self._clients} client(s) silent for {idle_for:.1f}s, "
                    f"treating as disconnected"
                )
                self._clients = 0

            logger.info("No snapshot requests for a while - stopping polling")
            self._stop_polling()
            return True

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def _activate(self, reason: str) -> None:
        async with self._lock:
            if self._state is PollerState.POLLING:
                logger.debug("Polling already active")
                return

            logger.info(f"Starting camera polling ({reason})")
            self.activations += 1
            await self._poll_once()

            self._state = PollerState.POLLING
            self._poll_task = asyncio.create_task(
                self._poll_loop(),
                name="snapshot_poll",
            )
            logger.info(f"Polling interval set to {self.interval * 1000:.0f}ms")

    async def _deactivate(self, reason: str) -> None:
        async with self._lock:
            if self._state is not PollerState.POLLING:
                return
            logger.info(f"Stopping camera polling ({reason})")
            self._stop_polling()

    def _stop_polling(self) -> None:
        self._state = PollerState.IDLE
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    # -------------------------------------------------------------------------
    # Background tasks
    # -------------------------------------------------------------------------

    async def _poll_once(self) -> bool:
        """Run one acquisition; cancelling the caller does not abort it."""
        self.polls += 1
        logger.info("Polling snapshot...")
        task = asyncio.create_task(self.coordinator.acquire())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Snapshot poll failed")
            return False

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self._poll_once()

    async def _watch_loop(self) -> None:
        while True:
            await asyncio.sleep(self.inactivity_timeout)
            await self.check_inactivity()

    async def start(self) -> None:
        """Start the periodic inactivity check."""
        if self._watch_task is None:
            self._watch_task = asyncio.create_task(
                self._watch_loop(),
                name="inactivity_check",
            )

    async def stop(self) -> None:
        """Cancel the recurring poll, the inactivity check and pending polls."""
        poll_task = self._poll_task
        self._stop_polling()

        tasks = [t for t in (poll_task, self._watch_task, *self._pending) if t is not None]
        self._watch_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Background task ended with error during stop: {e!r}")

    def to_dict(self) -> dict:
        idle = self.idle_seconds()
        return {
            "mode": self.mode,
            "state": self._state.value,
            "polling": self.polling,
            "clients": self._clients,
            "idle_seconds": None if math.isinf(idle) else round(idle, 1),
            "interval_ms": round(self.interval * 1000),
            "inactivity_timeout_ms": round(self.inactivity_timeout * 1000),
            "polls": self.polls,
            "activations": self.activations,
        }
