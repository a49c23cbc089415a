"""
Snapshot Relay Main Application
===============================

FastAPI entry point for the camera snapshot relay.

Endpoints:
    GET /                    - Service information (or static index if configured)
    GET /health              - Liveness probe
    GET /snapshot.jpg        - Latest snapshot, caching disabled
    GET /snapshot/{name}.jpg - Same, cache-busting file names
    GET /connect             - Viewer presence signal (push mode)
    GET /disconnect          - Viewer absence signal (push mode)
    GET /debug               - Store, poller and acquisition diagnostics
    GET /test-snapshot       - Run one acquisition immediately
"""

import logging
import signal
import threading
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Callable, Optional, Union

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from snapshot_relay import __version__
from snapshot_relay.config import Settings, settings
from snapshot_relay.errors import StoreUnavailable
from snapshot_relay.service import SnapshotService


logger = logging.getLogger(__name__)


NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def get_service(request: Request) -> SnapshotService:
    return request.app.state.service


# =============================================================================
# Signal Handling
# =============================================================================

SignalHandler = Union[Callable, int, None]


def install_sigterm_logging() -> Optional[SignalHandler]:
    """
    Log SIGTERM, then hand it to the handler installed before us.

    The server's own handler keeps driving the shutdown. Only possible
    in the main thread.

    Returns:
        The previous handler to restore on shutdown, or None if nothing
        was installed.
    """
    if threading.current_thread() is not threading.main_thread():
        return None

    previous = signal.getsignal(signal.SIGTERM)

    def _handle_sigterm(signum, frame):
        logger.info("Received SIGTERM, initiating graceful shutdown...")
        if callable(previous):
            previous(signum, frame)
        elif previous == signal.SIG_DFL:
            raise SystemExit(128 + signum)

    signal.signal(signal.SIGTERM, _handle_sigterm)
    return previous


# =============================================================================
# Application Factory
# =============================================================================

def create_app(
    app_settings: Optional[Settings] = None,
    service: Optional[SnapshotService] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        app_settings: Settings to use (module settings when omitted)
        service: Pre-built service, mainly for tests. Built from
            settings at startup when omitted.
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Start the snapshot service and stop it on shutdown."""
        app.state.startup_time = time.time()
        if app.state.service is None:
            app.state.service = SnapshotService.from_settings(app_settings)

        logger.info(f"Starting snapshot relay {__version__}")
        logger.info(f"Camera IP: {app_settings.camera.host or 'unset'}")
        logger.info(f"Snapshot path: {app_settings.store.path}")

        previous_sigterm = install_sigterm_logging()
        await app.state.service.start()

        yield

        logger.info("Shutting down gracefully...")
        await app.state.service.stop()
        if previous_sigterm is not None:
            signal.signal(signal.SIGTERM, previous_sigterm)
        logger.info("Shutdown complete")

    app = FastAPI(
        title="SnapshotRelay",
        description="Caching snapshot relay for a single IP camera",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service
    app.state.startup_time = time.time()

    static_dir = app_settings.server.static_dir
    serve_static = bool(static_dir) and Path(static_dir).is_dir()
    if static_dir and not serve_static:
        logger.warning(f"Static directory not found, not serving it: {static_dir}")

    _register_routes(app, info_route=not serve_static)

    if serve_static:
        # Mounted last so the API routes above take precedence
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")

    return app


# =============================================================================
# HTTP Endpoints
# =============================================================================

def _register_routes(app: FastAPI, info_route: bool = True) -> None:

    if info_route:
        @app.get("/")
        async def root(request: Request) -> JSONResponse:
            """Service information endpoint."""
            service = get_service(request)
            return JSONResponse({
                "service": "SnapshotRelay",
                "version": __version__,
                "status": "running",
                "mode": service.mode,
                "snapshot_url": "/snapshot.jpg",
            })

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        """
        Liveness probe - is the process alive?

        Always returns 200 if the service is running.
        """
        return JSONResponse({
            "status": "healthy",
            "uptime_seconds": round(time.time() - request.app.state.startup_time, 1),
        })

    @app.get("/snapshot.jpg")
    async def snapshot(request: Request) -> Response:
        """Latest snapshot with caching disabled."""
        return await _serve_snapshot(get_service(request))

    @app.get("/snapshot/{name}.jpg")
    async def snapshot_named(name: str, request: Request) -> Response:
        """Latest snapshot under a cache-busting file name."""
        return await _serve_snapshot(get_service(request))

    @app.get("/connect")
    async def connect(request: Request) -> JSONResponse:
        """Viewer presence signal; the first client starts polling."""
        service = get_service(request)
        if service.mode != "push":
            return JSONResponse({"status": "ignored", "mode": service.mode, "clients": 0})
        clients = await service.trigger.connect()
        return JSONResponse({"status": "connected", "clients": clients})

    @app.get("/disconnect")
    async def disconnect(request: Request) -> JSONResponse:
        """Viewer absence signal; the last client stops polling."""
        service = get_service(request)
        if service.mode != "push":
            return JSONResponse({"status": "ignored", "mode": service.mode, "clients": 0})
        clients = await service.trigger.disconnect()
        return JSONResponse({"status": "disconnected", "clients": clients})

    @app.get("/debug")
    async def debug(request: Request) -> JSONResponse:
        """Snapshot file status and poller state."""
        return JSONResponse(await get_service(request).debug_info())

    @app.get("/test-snapshot")
    async def test_snapshot(request: Request) -> JSONResponse:
        """Trigger one acquisition immediately."""
        logger.info("Manual snapshot test triggered")
        service = get_service(request)
        success = await service.coordinator.acquire()
        outcome = service.coordinator.last_outcome
        return JSONResponse({
            "message": "Snapshot test completed",
            "success": success,
            "outcome": outcome.model_dump(mode="json") if outcome else None,
        })


async def _serve_snapshot(service: SnapshotService) -> Response:
    try:
        snap = await service.snapshot_for_request()
    except StoreUnavailable as e:
        logger.error(f"Failed to read snapshot: {e}")
        return JSONResponse(
            {"error": "Snapshot not available"},
            status_code=503,
            headers=NO_CACHE_HEADERS,
        )

    return Response(
        content=snap.data,
        media_type="image/jpeg",
        headers=NO_CACHE_HEADERS,
    )


# =============================================================================
# FastAPI Application
# =============================================================================

app = create_app()


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    import uvicorn

    uvicorn.run(
        "snapshot_relay.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run()
