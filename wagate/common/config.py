"""
Configuration settings for the messaging gateway.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

# Deployment profiles. Each one is a bundle of defaults; every value can still
# be overridden through its own environment variable.
VARIANTS: dict[str, dict[str, Any]] = {
    "server": {
        "STORE_BACKEND": "file",
        "ROUTE_PREFIX": "",
        "DASHBOARD": True,
        "CONNECT_ON_STARTUP": True,
        "AUTO_RECONNECT": True,
        "RECONNECT_AFTER_CLEAR": True,
        "IDLE_TIMEOUT": 0.0,
        "CONNECT_TIMEOUT": 60.0,
        "CORS_ENABLED": False,
    },
    "serverless": {
        "STORE_BACKEND": "file",
        "ROUTE_PREFIX": "/api",
        "DASHBOARD": True,
        "CONNECT_ON_STARTUP": False,
        "AUTO_RECONNECT": False,
        "RECONNECT_AFTER_CLEAR": False,
        "IDLE_TIMEOUT": 300.0,
        "CONNECT_TIMEOUT": 45.0,
        "CORS_ENABLED": True,
    },
    "document": {
        "STORE_BACKEND": "mongo",
        "ROUTE_PREFIX": "",
        "DASHBOARD": False,
        "CONNECT_ON_STARTUP": True,
        "AUTO_RECONNECT": True,
        "RECONNECT_AFTER_CLEAR": True,
        "IDLE_TIMEOUT": 0.0,
        "CONNECT_TIMEOUT": 60.0,
        "CORS_ENABLED": False,
    },
}


def _env_bool(name: str, default: bool) -> bool:  # noqa: FBT001
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value is not None else default


class Config:
    """Central configuration class for all gateway settings."""

    def __init__(self, variant: str | None = None) -> None:
        self.VARIANT: str = variant or os.getenv("WAGATE_VARIANT", "server")
        if self.VARIANT not in VARIANTS:
            msg = (
                f"Unknown variant '{self.VARIANT}'. "
                f"Expected one of: {', '.join(sorted(VARIANTS))}"
            )
            raise ValueError(msg)
        profile = VARIANTS[self.VARIANT]

        # Connection lifecycle
        self.CONNECT_TIMEOUT: float = _env_float(
            "WAGATE_CONNECT_TIMEOUT", profile["CONNECT_TIMEOUT"]
        )
        self.MAX_RETRY_ATTEMPTS: int = int(os.getenv("WAGATE_MAX_RETRY_ATTEMPTS", "3"))
        self.RETRY_BASE_DELAY: float = 5.0  # First reconnect delay, doubled per attempt
        self.RETRY_MAX_DELAY: float = 15.0
        self.FRESH_RETRY_DELAY: float = 5.0  # Delay before the post-wipe attempt
        self.RECONNECT_AFTER_CLEAR_DELAY: float = 2.0
        self.CONNECT_ON_STARTUP: bool = _env_bool(
            "WAGATE_CONNECT_ON_STARTUP", profile["CONNECT_ON_STARTUP"]
        )
        self.AUTO_RECONNECT: bool = _env_bool(
            "WAGATE_AUTO_RECONNECT", profile["AUTO_RECONNECT"]
        )
        self.RECONNECT_AFTER_CLEAR: bool = _env_bool(
            "WAGATE_RECONNECT_AFTER_CLEAR", profile["RECONNECT_AFTER_CLEAR"]
        )

        # Idle teardown, 0 disables it
        self.IDLE_TIMEOUT: float = _env_float("WAGATE_IDLE_TIMEOUT", profile["IDLE_TIMEOUT"])
        self.IDLE_CHECK_INTERVAL: float = 30.0

        # Addressing
        self.COUNTRY_CODE: str = os.getenv("WAGATE_COUNTRY_CODE", "62")
        self.TRUNK_PREFIX: str = "0"
        self.ADDRESS_SUFFIX: str = "@s.whatsapp.net"

        # Messaging client
        self.CLIENT_FACTORY: str | None = os.getenv(
            "WAGATE_CLIENT_FACTORY", "wagate.server.neonize_client:create_client"
        )
        self.CLIENT_NAME: str = os.getenv("WAGATE_CLIENT_NAME", "Wagate")

        # Server settings
        self.SERVER_HOST: str = os.getenv("WAGATE_HOST", "0.0.0.0")  # noqa: S104
        self.SERVER_PORT: int = int(os.getenv("WAGATE_PORT", os.getenv("PORT", "3000")))
        self.SERVER_URL: str = f"http://{self.SERVER_HOST}:{self.SERVER_PORT}"
        self.ROUTE_PREFIX: str = os.getenv("WAGATE_ROUTE_PREFIX", profile["ROUTE_PREFIX"])
        self.DASHBOARD: bool = _env_bool("WAGATE_DASHBOARD", profile["DASHBOARD"])
        self.CORS_ENABLED: bool = _env_bool("WAGATE_CORS", profile["CORS_ENABLED"])

        # Credential store
        self.STORE_BACKEND: str = os.getenv("WAGATE_STORE", profile["STORE_BACKEND"])
        self.BASE_DIR: Path = Path(__file__).parent.parent
        self.DATA_DIR: Path = Path(os.getenv("WAGATE_DATA_DIR", str(self.BASE_DIR / "data")))
        if self.VARIANT == "serverless":
            default_auth_dir = Path(tempfile.gettempdir()) / "auth_info"
        else:
            default_auth_dir = self.DATA_DIR / "auth_info"
        self.AUTH_DIR: Path = Path(os.getenv("WAGATE_AUTH_DIR", str(default_auth_dir)))
        self.MONGO_URI: str = os.getenv("WAGATE_MONGO_URI", "mongodb://localhost:27017")
        self.MONGO_DATABASE: str = os.getenv("WAGATE_MONGO_DB", "wagate")
        self.MONGO_COLLECTION: str = os.getenv("WAGATE_MONGO_COLLECTION", "auth_state")

        # Logging
        self.LOG_LEVEL: int = getattr(
            logging, os.getenv("WAGATE_LOG_LEVEL", "INFO").upper(), logging.INFO
        )
        self.LOG_FILE: str | None = os.getenv("WAGATE_LOG_FILE")
