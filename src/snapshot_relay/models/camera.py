"""
Camera Endpoint Model
=====================

Immutable description of the single upstream camera.

Constructed once at process start from configuration and shared by
both upstream fetchers. Never mutated.
"""

from pydantic import BaseModel, ConfigDict, Field


class CameraEndpoint(BaseModel):
    """
    Upstream camera address, credentials and API locations.

    Attributes:
        host: Camera IP address or hostname
        username: Camera user (sent via basic auth and query string)
        password: Camera password
        onvif_port: Port of the ONVIF device service
        snapshot_path: Path of the vendor snapshot API
        channel: Vendor API channel number
    """

    model_config = ConfigDict(frozen=True)

    host: str
    username: str = ""
    password: str = ""
    onvif_port: int = Field(default=8000, ge=1, le=65535)
    snapshot_path: str = "/cgi-bin/api.cgi"
    channel: int = Field(default=0, ge=0)

    @property
    def direct_url(self) -> str:
        """Vendor snapshot endpoint (query string added per request)."""
        path = self.snapshot_path if self.snapshot_path.startswith("/") else f"/{self.snapshot_path}"
        return f"https://{self.host}{path}"

    def __repr__(self) -> str:
        """Repr without the password."""
        return (
            f"CameraEndpoint(host={self.host!r}, username={self.username!r}, "
            f"onvif_port={self.onvif_port})"
        )

    __str__ = __repr__
