"""
Acquisition Outcome Models
==========================

Result types passed between the upstream fetchers and the
acquisition coordinator, plus the record of the last acquisition
reported by the debug endpoint.
"""

import time
from dataclasses import dataclass
from typing import Dict, Optional

from pydantic import BaseModel, Field

from snapshot_relay.errors import SnapshotError
from snapshot_relay.models.snapshot import Snapshot, SnapshotSource


@dataclass(frozen=True, slots=True)
class FetchResult:
    """
    Outcome of one upstream fetch: a snapshot or a failure.

    Exactly one of ``snapshot`` and ``error`` is set.
    """

    source: SnapshotSource
    snapshot: Optional[Snapshot] = None
    error: Optional[SnapshotError] = None

    @property
    def ok(self) -> bool:
        return self.snapshot is not None

    @classmethod
    def success(cls, snapshot: Snapshot) -> "FetchResult":
        return cls(source=snapshot.source, snapshot=snapshot)

    @classmethod
    def failure(cls, source: SnapshotSource, error: SnapshotError) -> "FetchResult":
        return cls(source=source, error=error)


class AcquisitionOutcome(BaseModel):
    """Record of a finished acquisition (fallback chain run)."""

    success: bool
    source: Optional[SnapshotSource] = None
    finished_at: float = Field(default_factory=time.time)
    duration_ms: float = 0.0
    size: int = 0
    errors: Dict[str, str] = Field(default_factory=dict)


@dataclass
class AcquisitionMetrics:
    """Counters for coordinator observability."""

    attempts: int = 0
    direct_successes: int = 0
    onvif_successes: int = 0
    failures: int = 0
    coalesced: int = 0
    store_errors: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "attempts": self.attempts,
            "direct_successes": self.direct_successes,
            "onvif_successes": self.onvif_successes,
            "failures": self.failures,
            "coalesced": self.coalesced,
            "store_errors": self.store_errors,
        }
