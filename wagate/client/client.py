"""
HTTP client for a running gateway.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://127.0.0.1:3000"
# Above the gateway's longest connect timeout, /connect and /qr may wait that long
DEFAULT_TIMEOUT = 75.0


class GatewayClientError(Exception):
    """Raised when the gateway answers with ``success: false`` or an error status."""

    def __init__(self, message: str, status_code: int, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class GatewayClient:
    """Thin wrapper over the gateway's REST endpoints."""

    def __init__(
        self, base_url: str = DEFAULT_URL, prefix: str = "", timeout: float = DEFAULT_TIMEOUT
    ):
        self.base_url = base_url.rstrip("/")
        self.prefix = prefix.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{self.prefix}{path}"

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        r = self.session.request(method, self._url(path), timeout=self.timeout, **kwargs)
        try:
            data = r.json()
        except ValueError:
            r.raise_for_status()
            msg = f"Non-JSON response from {path}"
            raise GatewayClientError(msg, r.status_code) from None
        if r.status_code >= 400 or data.get("success") is False:  # noqa: PLR2004
            message = data.get("message") or data.get("error") or r.reason
            logger.debug("%s %s failed: %s", method, path, message)
            raise GatewayClientError(message, r.status_code, data.get("error"))
        return data

    def health(self) -> dict[str, Any]:
        return self._request("GET", "/health")

    def status(self) -> dict[str, Any]:
        return self._request("GET", "/status")

    def qr(self) -> dict[str, Any]:
        """Fetch the pending pairing code."""
        return self._request("GET", "/qr")

    def connect(self) -> dict[str, Any]:
        return self._request("POST", "/connect")

    def send_message(self, phone: str, message: str) -> dict[str, Any]:
        """Send a text message; returns the gateway's delivery record."""
        return self._request(
            "POST", "/send-message", json={"phone": phone, "message": message}
        )

    def clear_auth(self) -> dict[str, Any]:
        return self._request("POST", "/clear-auth")
