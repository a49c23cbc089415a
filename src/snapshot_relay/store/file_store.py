"""
File Snapshot Store
===================

Keeps the latest snapshot as one JPEG file on local disk.

Writes go to a temporary file in the same directory which is then
renamed over the target with os.replace. The rename is atomic on the
same filesystem, so a concurrent reader gets either the previous image
or the new one, never a partial file.

File I/O runs in worker threads so the event loop keeps serving other
requests while a write is in progress.
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from snapshot_relay.errors import StoreUnavailable
from snapshot_relay.models.snapshot import Snapshot, SnapshotSource
from snapshot_relay.store.base import StoreStat


logger = logging.getLogger(__name__)


SNAPSHOT_FILE_MODE = 0o644


class FileSnapshotStore:
    """
    File-backed single-slot snapshot store.

    Attributes:
        path: Location of the snapshot file

    Example:
        store = FileSnapshotStore("./public/snapshot.jpg")
        store.ensure_directory()
        await store.write(snapshot)
        latest = await store.read()
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def ensure_directory(self) -> None:
        """Create the parent directory. Best-effort: errors are ignored."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.debug(f"Could not create {self.path.parent}: {e}")

    async def write(self, snapshot: Snapshot) -> None:
        try:
            await asyncio.to_thread(self._write_atomic, snapshot.data)
        except OSError as e:
            raise StoreUnavailable(f"failed to write {self.path}: {e}") from e
        logger.info(f"Snapshot saved successfully to: {self.path} ({snapshot.size} bytes)")

    def _write_atomic(self, data: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp",
        )
        try:
            # mkstemp creates 0600; a separate static server must be able to read it
            os.fchmod(fd, SNAPSHOT_FILE_MODE)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    async def read(self) -> Snapshot:
        try:
            data, modified = await asyncio.to_thread(self._read)
        except FileNotFoundError as e:
            raise StoreUnavailable("no snapshot has been stored yet") from e
        except OSError as e:
            raise StoreUnavailable(f"failed to read {self.path}: {e}") from e
        return Snapshot(data=data, captured_at=modified, source=SnapshotSource.STORE)

    def _read(self):
        # Open once so data and mtime belong to the same file even if a
        # rename happens in between
        with open(self.path, "rb") as f:
            modified = os.fstat(f.fileno()).st_mtime
            return f.read(), modified

    async def stat(self) -> StoreStat:
        try:
            st = await asyncio.to_thread(os.stat, self.path)
        except OSError as e:
            return StoreStat(exists=False, location=str(self.path), error=str(e))
        return StoreStat(
            exists=True,
            location=str(self.path),
            size=st.st_size,
            modified=st.st_mtime,
        )
