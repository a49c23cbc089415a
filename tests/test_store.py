"""
Snapshot Store Tests
====================

Single-slot semantics for the file and memory backends.
"""

import asyncio
import os
import stat

import pytest

from snapshot_relay.errors import StoreUnavailable
from snapshot_relay.models.snapshot import Snapshot, SnapshotSource
from snapshot_relay.store import FileSnapshotStore, MemorySnapshotStore


def _snap(data: bytes) -> Snapshot:
    return Snapshot(data=data, source=SnapshotSource.DIRECT)


@pytest.fixture(params=["file", "memory"])
def store(request, tmp_path):
    if request.param == "file":
        return FileSnapshotStore(tmp_path / "public" / "snapshot.jpg")
    return MemorySnapshotStore()


def _prepare(store) -> None:
    if isinstance(store, FileSnapshotStore):
        store.ensure_directory()


class TestSnapshotStore:
    """Behaviour shared by every backend."""

    def test_read_before_write_is_unavailable(self, store):
        """Nothing written yet -> StoreUnavailable, every time."""
        _prepare(store)

        async def scenario():
            for _ in range(2):
                with pytest.raises(StoreUnavailable):
                    await store.read()

        asyncio.run(scenario())

    def test_last_write_wins(self, store):
        """Sequential writes leave exactly the final payload."""
        _prepare(store)
        payloads = [b"\xff\xd8first", b"\xff\xd8second", b"\xff\xd8third"]

        async def scenario():
            for data in payloads:
                await store.write(_snap(data))
            return await store.read()

        latest = asyncio.run(scenario())
        assert latest.data == payloads[-1]

    def test_stat_reports_presence(self, store):
        _prepare(store)

        async def scenario():
            before = await store.stat()
            await store.write(_snap(b"\xff\xd8abc"))
            after = await store.stat()
            return before, after

        before, after = asyncio.run(scenario())
        assert before.exists is False
        assert after.exists is True
        assert after.size == 5
        assert after.modified is not None

    def test_concurrent_reads_see_whole_snapshots(self, store):
        """Readers overlapping writers only ever see complete payloads."""
        _prepare(store)
        small = b"\xff\xd8" + b"a" * 10
        large = b"\xff\xd8" + b"b" * 200_000

        async def scenario():
            await store.write(_snap(small))
            writers = [store.write(_snap(large if i % 2 else small)) for i in range(10)]
            readers = [store.read() for _ in range(20)]
            results = await asyncio.gather(*writers, *readers)
            return [r for r in results if r is not None]

        seen = asyncio.run(scenario())
        assert seen
        for snapshot in seen:
            assert snapshot.data in (small, large)


class TestFileSnapshotStore:
    """File-specific behaviour."""

    def test_ensure_directory_creates_parent(self, tmp_path):
        store = FileSnapshotStore(tmp_path / "a" / "b" / "snapshot.jpg")
        store.ensure_directory()
        assert (tmp_path / "a" / "b").is_dir()

    def test_ensure_directory_ignores_errors(self, tmp_path):
        """A file in the way of the directory is not fatal."""
        blocker = tmp_path / "public"
        blocker.write_bytes(b"not a directory")
        store = FileSnapshotStore(blocker / "snapshot.jpg")
        store.ensure_directory()

    def test_write_replaces_file_without_leftovers(self, tmp_path):
        path = tmp_path / "snapshot.jpg"
        store = FileSnapshotStore(path)

        async def scenario():
            await store.write(_snap(b"\xff\xd8one"))
            await store.write(_snap(b"\xff\xd8two"))

        asyncio.run(scenario())
        assert path.read_bytes() == b"\xff\xd8two"
        assert [p.name for p in tmp_path.iterdir()] == ["snapshot.jpg"]

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permission bits")
    def test_written_file_is_world_readable(self, tmp_path):
        path = tmp_path / "snapshot.jpg"
        store = FileSnapshotStore(path)

        asyncio.run(store.write(_snap(b"\xff\xd8x")))
        assert stat.S_IMODE(path.stat().st_mode) == 0o644

    def test_write_failure_raises_store_unavailable(self, tmp_path):
        store = FileSnapshotStore(tmp_path / "missing-dir" / "snapshot.jpg")

        with pytest.raises(StoreUnavailable):
            asyncio.run(store.write(_snap(b"\xff\xd8x")))

    def test_read_uses_file_mtime_as_capture_time(self, tmp_path):
        path = tmp_path / "snapshot.jpg"
        path.write_bytes(b"\xff\xd8existing")
        store = FileSnapshotStore(path)

        snapshot = asyncio.run(store.read())
        assert snapshot.data == b"\xff\xd8existing"
        assert snapshot.source == SnapshotSource.STORE
        assert snapshot.captured_at == pytest.approx(path.stat().st_mtime)
