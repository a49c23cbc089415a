"""
Acquisition Module
==================

Fallback orchestration between the upstream fetchers and the store.
"""

from snapshot_relay.acquisition.coordinator import AcquisitionCoordinator


__all__ = [
    "AcquisitionCoordinator",
]
