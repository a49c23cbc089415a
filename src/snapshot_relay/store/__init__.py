"""
Store Module
============

Single-slot storage for the most recent snapshot.

Components:
    - SnapshotStore: Protocol (write / read / stat)
    - FileSnapshotStore: One JPEG file, atomic replace (default)
    - MemorySnapshotStore: In-process slot
    - StoreStat: Diagnostics for the debug endpoint
"""

from snapshot_relay.store.base import SnapshotStore, StoreStat
from snapshot_relay.store.file_store import FileSnapshotStore
from snapshot_relay.store.memory_store import MemorySnapshotStore


__all__ = [
    "SnapshotStore",
    "StoreStat",
    "FileSnapshotStore",
    "MemorySnapshotStore",
]
