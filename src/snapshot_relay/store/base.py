"""
Snapshot Store Interface
========================

Single-slot holder for the most recent snapshot.

Contract:
    - write(data) replaces the current snapshot unconditionally
    - read() returns the latest Snapshot or raises StoreUnavailable
    - A reader never observes a partially written snapshot
    - Concurrent writes are unordered (last completed write wins)
"""

from dataclasses import dataclass
from typing import Optional, Protocol

from snapshot_relay.models.snapshot import Snapshot


@dataclass(frozen=True)
class StoreStat:
    """Presence and metadata of the stored snapshot (for diagnostics)."""

    exists: bool
    location: str
    size: int = 0
    modified: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "exists": self.exists,
            "path": self.location,
            "size": self.size,
            "modified": self.modified,
            "error": self.error,
        }


class SnapshotStore(Protocol):
    """Protocol for snapshot store backends."""

    async def write(self, snapshot: Snapshot) -> None:
        """Replace the stored snapshot. Raises StoreUnavailable on failure."""
        ...

    async def read(self) -> Snapshot:
        """Return the latest snapshot. Raises StoreUnavailable when absent."""
        ...

    async def stat(self) -> StoreStat:
        ...
