"""
Memory Snapshot Store
=====================

Keeps the latest snapshot in process memory.

The slot holds an immutable Snapshot and is swapped as a whole under
an asyncio lock, so readers see either the old or the new snapshot.
"""

import asyncio
import logging
from typing import Optional

from snapshot_relay.errors import StoreUnavailable
from snapshot_relay.models.snapshot import Snapshot
from snapshot_relay.store.base import StoreStat


logger = logging.getLogger(__name__)


class MemorySnapshotStore:
    """In-memory single-slot snapshot store."""

    def __init__(self) -> None:
        self._snapshot: Optional[Snapshot] = None
        self._lock = asyncio.Lock()
        self.writes: int = 0

    async def write(self, snapshot: Snapshot) -> None:
        async with self._lock:
            self._snapshot = snapshot
            self.writes += 1
        logger.debug(f"Snapshot held in memory ({snapshot.size} bytes)")

    async def read(self) -> Snapshot:
        async with self._lock:
            snapshot = self._snapshot
        if snapshot is None:
            raise StoreUnavailable("no snapshot has been stored yet")
        return snapshot

    async def stat(self) -> StoreStat:
        snapshot = self._snapshot
        if snapshot is None:
            return StoreStat(exists=False, location="memory")
        return StoreStat(
            exists=True,
            location="memory",
            size=snapshot.size,
            modified=snapshot.captured_at,
        )
