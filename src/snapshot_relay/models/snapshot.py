"""
Snapshot Data Model
===================

Internal representation of one JPEG frame pulled from the camera.

Design Rules:
    - Immutable (frozen) so a stored snapshot can be shared between
      concurrent readers without copying
    - Bytes are passed through unchanged (no decoding, no resizing)
"""

import time
from dataclasses import dataclass, field
from enum import Enum


JPEG_SOI = b"\xff\xd8"


class SnapshotSource(str, Enum):
    """
    Where a snapshot came from.

    Attributes:
        DIRECT: Camera vendor HTTP API
        ONVIF: ONVIF media snapshot URI
        STORE: Loaded back from the store without a known origin
    """

    DIRECT = "direct"
    ONVIF = "onvif"
    STORE = "store"


@dataclass(frozen=True, slots=True)
class Snapshot:
    """
    A single still frame.

    Attributes:
        data: JPEG-encoded image bytes
        captured_at: UNIX timestamp when the frame was obtained
        source: Upstream that produced the frame
    """

    data: bytes
    captured_at: float = field(default_factory=time.time)
    source: SnapshotSource = SnapshotSource.STORE

    @property
    def size(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the image."""
        return (
            f"Snapshot(size={self.size}, "
            f"captured_at={self.captured_at:.3f}, "
            f"source={self.source.value})"
        )


def looks_like_jpeg(content_type: str, data: bytes) -> bool:
    """
    Check whether an upstream payload is a JPEG image.

    A declared ``image/jpeg`` content type is trusted; otherwise the
    payload must start with the JPEG start-of-image marker.
    """
    if not data:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type == "image/jpeg":
        return True
    return data.startswith(JPEG_SOI)
