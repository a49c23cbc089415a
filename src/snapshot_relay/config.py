"""
Snapshot Relay Configuration
============================

This module handles configuration loading for the snapshot relay.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    CAMERA_IP           -> camera.host
    CAMERA_USERNAME     -> camera.username
    CAMERA_PASSWORD     -> camera.password
    ONVIF_PORT          -> camera.onvif_port
    FETCH_TIMEOUT       -> camera.timeout_seconds
    POLLING_INTERVAL    -> polling.interval_ms
    INACTIVITY_TIMEOUT  -> polling.inactivity_timeout_ms
    SNAPSHOT_MODE       -> polling.mode
    SNAPSHOT_PATH       -> store.path
    SNAPSHOT_STORE      -> store.backend
    STATIC_DIR          -> server.static_dir
    PORT                -> server.port
    LOG_LEVEL           -> logging.level
    LOG_FORMAT          -> logging.format

Example:
    from snapshot_relay.config import settings

    print(settings.camera.host)
    print(settings.polling.interval_seconds)
"""

import os
import logging
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

from snapshot_relay.models.camera import CameraEndpoint


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class CameraConfig(BaseModel):
    """Upstream camera connection configuration."""

    host: str = Field(default="", description="Camera IP address or hostname")
    username: str = Field(default="admin", description="Camera user")
    password: str = Field(default="", description="Camera password")
    onvif_port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="ONVIF device service port",
    )
    snapshot_path: str = Field(
        default="/cgi-bin/api.cgi",
        description="Vendor snapshot API path",
    )
    channel: int = Field(default=0, ge=0, description="Vendor API channel")
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single upstream request",
    )
    onvif_enabled: bool = Field(
        default=True,
        description="Establish an ONVIF session at startup for fallback",
    )

    def endpoint(self) -> CameraEndpoint:
        """Build the immutable endpoint used by the fetchers."""
        return CameraEndpoint(
            host=self.host,
            username=self.username,
            password=self.password,
            onvif_port=self.onvif_port,
            snapshot_path=self.snapshot_path,
            channel=self.channel,
        )


class PollingConfig(BaseModel):
    """Acquisition trigger configuration."""

    mode: Literal["push", "on_demand"] = Field(
        default="push",
        description="'push' keeps the cache warm while clients are active, "
                    "'on_demand' fetches on every request",
    )
    interval_ms: int = Field(
        default=5000,
        ge=10,
        description="Recurring acquisition interval while polling",
    )
    inactivity_timeout_ms: int = Field(
        default=30000,
        ge=10,
        description="Stop polling after this long without client activity",
    )
    expire_idle_clients: bool = Field(
        default=True,
        description="Treat connected clients without activity in the "
                    "inactivity window as departed",
    )

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000.0

    @property
    def inactivity_timeout_seconds(self) -> float:
        return self.inactivity_timeout_ms / 1000.0


class StoreConfig(BaseModel):
    """Snapshot store configuration."""

    backend: Literal["file", "memory"] = Field(
        default="file",
        description="Store backend: 'file' or 'memory'",
    )
    path: str = Field(
        default="./public/snapshot.jpg",
        description="Location of the latest snapshot file",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port")
    static_dir: Optional[str] = Field(
        default=None,
        description="Directory served at / (front-end), if any",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the snapshot relay.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    camera: CameraConfig = Field(default_factory=CameraConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/app/config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Camera settings
    if env_host := os.environ.get("CAMERA_IP"):
        config_data.setdefault("camera", {})["host"] = env_host
    if env_user := os.environ.get("CAMERA_USERNAME"):
        config_data.setdefault("camera", {})["username"] = env_user
    if env_pass := os.environ.get("CAMERA_PASSWORD"):
        config_data.setdefault("camera", {})["password"] = env_pass
    if env_onvif := os.environ.get("ONVIF_PORT"):
        config_data.setdefault("camera", {})["onvif_port"] = int(env_onvif)
    if env_timeout := os.environ.get("FETCH_TIMEOUT"):
        config_data.setdefault("camera", {})["timeout_seconds"] = float(env_timeout)

    # Polling settings
    if env_interval := os.environ.get("POLLING_INTERVAL"):
        config_data.setdefault("polling", {})["interval_ms"] = int(env_interval)
    if env_idle := os.environ.get("INACTIVITY_TIMEOUT"):
        config_data.setdefault("polling", {})["inactivity_timeout_ms"] = int(env_idle)
    if env_mode := os.environ.get("SNAPSHOT_MODE"):
        config_data.setdefault("polling", {})["mode"] = env_mode

    # Store settings
    if env_path := os.environ.get("SNAPSHOT_PATH"):
        config_data.setdefault("store", {})["path"] = env_path
    if env_backend := os.environ.get("SNAPSHOT_STORE"):
        config_data.setdefault("store", {})["backend"] = env_backend

    # Server settings
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    if env_static := os.environ.get("STATIC_DIR"):
        config_data.setdefault("server", {})["static_dir"] = env_static

    # Logging settings
    if env_log := os.environ.get("LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log
    if env_fmt := os.environ.get("LOG_FORMAT"):
        config_data.setdefault("logging", {})["format"] = env_fmt


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
