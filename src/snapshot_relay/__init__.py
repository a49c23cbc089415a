"""
Snapshot Relay
==============

Caching HTTP relay for still images from a single IP camera.

The relay pulls a JPEG from the camera (vendor HTTP API first, ONVIF as
fallback), keeps the latest good image on local storage, and serves it
to browsers with caching disabled. Acquisition is either kept warm while
viewers are active (push mode) or performed on every request (on-demand).

Components:
    - upstream: Direct and ONVIF fetch strategies
    - store: Single-slot latest-snapshot storage
    - acquisition: Fallback chain and outcome tracking
    - polling: Activity-driven poller and on-demand trigger
    - service: Lifecycle owner for all of the above
    - main: FastAPI application

Example:
    uvicorn snapshot_relay.main:app --port 3000
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
