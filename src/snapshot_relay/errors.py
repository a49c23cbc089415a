"""
Error Taxonomy
==============

Exceptions raised inside the acquisition pipeline.

Fetch-level errors never reach HTTP clients: the upstream fetchers wrap
them into a FetchResult and the coordinator reduces them to a boolean.
StoreUnavailable is the only one the HTTP surface maps to a response.
"""


class SnapshotError(Exception):
    """Base class for snapshot acquisition and storage errors."""


class UpstreamUnreachable(SnapshotError):
    """Network failure or timeout talking to the camera."""


class UpstreamRejected(SnapshotError):
    """Camera answered, but with a non-2xx status, a fault or non-JPEG content."""


class SessionUnavailable(SnapshotError):
    """ONVIF session was never established."""


class StoreUnavailable(SnapshotError):
    """No snapshot has been written yet, or the backing storage failed."""
