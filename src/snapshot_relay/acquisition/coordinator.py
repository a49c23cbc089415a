"""
Acquisition Coordinator
=======================

Runs the snapshot fallback chain and writes the result to the store.

Algorithm:
    1. Try the direct (vendor API) fetcher
    2. Only if that failed, try the ONVIF fetcher
    3. First success is written to the store -> True
    4. Both failed -> False, store untouched

Design Rules:
    - Fetcher failures are absorbed here and reduced to a boolean
    - No retries inside one acquire(); cadence belongs to the caller
    - Overlapping acquire() calls share the chain already in flight
      instead of starting a second one
    - The last outcome is kept for diagnostics
"""

import asyncio
import logging
import time
from typing import Optional, Sequence

from snapshot_relay.errors import StoreUnavailable, UpstreamUnreachable
from snapshot_relay.models.outcome import (
    AcquisitionMetrics,
    AcquisitionOutcome,
    FetchResult,
)
from snapshot_relay.models.snapshot import SnapshotSource
from snapshot_relay.store.base import SnapshotStore
from snapshot_relay.upstream import SnapshotFetcher


logger = logging.getLogger(__name__)


class AcquisitionCoordinator:
    """
    Fallback chain over the upstream fetchers.

    Attributes:
        fetchers: Fetch strategies in preference order
        store: Snapshot store receiving successful results
        metrics: Counters for observability
        last_outcome: Outcome of the most recent completed chain

    Example:
        coordinator = AcquisitionCoordinator(
            fetchers=[direct_fetcher, onvif_fetcher],
            store=store,
        )
        if not await coordinator.acquire():
            logger.error("Both snapshot methods failed")
    """

    def __init__(
        self,
        fetchers: Sequence[SnapshotFetcher],
        store: SnapshotStore,
    ) -> None:
        if not fetchers:
            raise ValueError("at least one fetcher is required")

        self.fetchers = list(fetchers)
        self.store = store
        self.metrics = AcquisitionMetrics()
        self.last_outcome: Optional[AcquisitionOutcome] = None
        self._in_flight: Optional[asyncio.Future] = None

    @property
    def in_flight(self) -> bool:
        """Whether a fallback chain is currently running."""
        return self._in_flight is not None and not self._in_flight.done()

    async def acquire(self) -> bool:
        """
        Obtain a fresh snapshot and store it.

        If a chain is already running, waits for it and returns its
        result rather than hitting the camera again.

        Returns:
            True iff a snapshot was fetched and stored.
        """
        if self.in_flight:
            self.metrics.coalesced += 1
            logger.debug("Acquisition already in flight, waiting for it")
            return await asyncio.shield(self._in_flight)

        future = asyncio.get_running_loop().create_future()
        self._in_flight = future
        try:
            success = await self._run_chain()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved; the exception propagates to this caller
            future.exception()
            raise
        else:
            future.set_result(success)
            return success
        finally:
            if self._in_flight is future:
                self._in_flight = None

    async def _run_chain(self) -> bool:
        started = time.monotonic()
        self.metrics.attempts += 1
        errors = {}

        for fetcher in self.fetchers:
            result = await self._fetch(fetcher)
            if not result.ok:
                errors[result.source.value] = str(result.error)
                continue

            snapshot = result.snapshot
            try:
                await self.store.write(snapshot)
            except StoreUnavailable as e:
                self.metrics.store_errors += 1
                logger.error(f"Failed to save {result.source.value} snapshot: {e}")
                errors["store"] = str(e)
                break

            if result.source == SnapshotSource.DIRECT:
                self.metrics.direct_successes += 1
            elif result.source == SnapshotSource.ONVIF:
                self.metrics.onvif_successes += 1

            self._record(True, started, errors, result.source, snapshot.size)
            return True

        self.metrics.failures += 1
        if "store" in errors:
            logger.error("Snapshot fetched but could not be stored")
        else:
            logger.error("Both snapshot methods failed")
        self._record(False, started, errors)
        return False

    async def _fetch(self, fetcher: SnapshotFetcher) -> FetchResult:
        try:
            return await fetcher.fetch()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error from {fetcher.source.value} fetcher")
            return FetchResult.failure(fetcher.source, UpstreamUnreachable(repr(e)))

    def _record(
        self,
        success: bool,
        started: float,
        errors: dict,
        source: Optional[SnapshotSource] = None,
        size: int = 0,
    ) -> None:
        self.last_outcome = AcquisitionOutcome(
            success=success,
            source=source,
            duration_ms=round((time.monotonic() - started) * 1000.0, 1),
            size=size,
            errors=errors,
        )
