#!/usr/bin/env python3
"""
Camera Probe Script
===================

Standalone script to check both snapshot paths against a real camera.

This script:
    1. Fetches one frame through the vendor API
    2. Establishes an ONVIF session and fetches one frame through it
    3. Runs the full fallback chain a number of times
    4. Reports a summary and optionally saves the last frame

Prerequisites:
    - A reachable camera
    - Install the package: pip install -e .

Usage:
    python scripts/probe_camera.py --host 192.168.1.50 --user admin --password secret
    CAMERA_IP=192.168.1.50 CAMERA_PASSWORD=secret python scripts/probe_camera.py --rounds 5
"""

import argparse
import asyncio
import logging
import os
import sys
import time

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from snapshot_relay.acquisition import AcquisitionCoordinator
from snapshot_relay.errors import SnapshotError
from snapshot_relay.models.camera import CameraEndpoint
from snapshot_relay.service import create_http_client
from snapshot_relay.store import FileSnapshotStore, MemorySnapshotStore
from snapshot_relay.upstream import DirectFetcher, OnvifFetcher, OnvifSession


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run_probe(
    endpoint: CameraEndpoint,
    rounds: int,
    timeout: float,
    output: str,
) -> dict:
    """
    Probe the camera.

    Args:
        endpoint: Camera to probe
        rounds: Number of fallback-chain acquisitions to run
        timeout: Per-request timeout in seconds
        output: File to save the last frame to ("" = don't save)

    Returns:
        Summary dict
    """
    logger.info("=" * 60)
    logger.info("Camera Probe")
    logger.info("=" * 60)
    logger.info(f"Camera: {endpoint.host}")
    logger.info(f"ONVIF port: {endpoint.onvif_port}")
    logger.info(f"Rounds: {rounds}")
    logger.info("=" * 60)

    client = create_http_client(timeout)
    summary = {"direct": False, "onvif_session": False, "onvif": False, "chain_successes": 0}

    try:
        # Direct API
        started = time.monotonic()
        result = await DirectFetcher(endpoint, client, timeout=timeout).fetch()
        summary["direct"] = result.ok
        if result.ok:
            logger.info(
                f"Direct API: OK ({result.snapshot.size} bytes, "
                f"{(time.monotonic() - started) * 1000:.0f}ms)"
            )
        else:
            logger.warning(f"Direct API: FAILED ({result.error})")

        # ONVIF
        session = None
        try:
            session = await OnvifSession.establish(endpoint, timeout=timeout)
            summary["onvif_session"] = True
            logger.info(f"ONVIF session: OK (profile={session.profile_token})")
        except SnapshotError as e:
            logger.warning(f"ONVIF session: FAILED ({e})")

        onvif = OnvifFetcher(client, session=session, timeout=timeout)
        result = await onvif.fetch()
        summary["onvif"] = result.ok
        if result.ok:
            logger.info(f"ONVIF snapshot: OK ({result.snapshot.size} bytes)")
        else:
            logger.warning(f"ONVIF snapshot: FAILED ({result.error})")

        # Fallback chain
        store = FileSnapshotStore(output) if output else MemorySnapshotStore()
        if isinstance(store, FileSnapshotStore):
            store.ensure_directory()
        coordinator = AcquisitionCoordinator(
            [DirectFetcher(endpoint, client, timeout=timeout), onvif],
            store,
        )
        for i in range(rounds):
            if await coordinator.acquire():
                summary["chain_successes"] += 1
            outcome = coordinator.last_outcome
            logger.info(
                f"Round {i + 1}/{rounds}: success={outcome.success} "
                f"source={outcome.source.value if outcome.source else '-'} "
                f"duration={outcome.duration_ms:.0f}ms"
            )
    finally:
        await client.aclose()

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    for key, value in summary.items():
        logger.info(f"{key}: {value}")
    if output and summary["chain_successes"]:
        logger.info(f"Last frame saved to: {output}")
    logger.info("=" * 60)

    return summary


def main():
    parser = argparse.ArgumentParser(
        description="Check vendor API and ONVIF snapshot paths of a camera"
    )
    parser.add_argument(
        "--host",
        type=str,
        default=os.environ.get("CAMERA_IP", ""),
        help="Camera IP address or hostname",
    )
    parser.add_argument(
        "--user",
        type=str,
        default=os.environ.get("CAMERA_USERNAME", "admin"),
        help="Camera user",
    )
    parser.add_argument(
        "--password",
        type=str,
        default=os.environ.get("CAMERA_PASSWORD", ""),
        help="Camera password",
    )
    parser.add_argument(
        "--onvif-port",
        type=int,
        default=int(os.environ.get("ONVIF_PORT", "8000")),
        help="ONVIF device service port (default: 8000)",
    )
    parser.add_argument(
        "--rounds",
        type=int,
        default=3,
        help="Fallback chain acquisitions to run (default: 3)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Per-request timeout in seconds (default: 10)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="",
        help="Save the last acquired frame to this file",
    )

    args = parser.parse_args()
    if not args.host:
        parser.error("--host or CAMERA_IP is required")

    endpoint = CameraEndpoint(
        host=args.host,
        username=args.user,
        password=args.password,
        onvif_port=args.onvif_port,
    )
    result = asyncio.run(run_probe(
        endpoint=endpoint,
        rounds=args.rounds,
        timeout=args.timeout,
        output=args.output,
    ))

    sys.exit(0 if result["chain_successes"] > 0 else 1)


if __name__ == "__main__":
    main()
