"""Business logic services for the gateway.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from wagate.common.exceptions import (
    ConnectionClosed,
    ConnectTimeout,
    PairingUnavailable,
    ValidationError,
)
from wagate.common.phone import normalize_phone, to_address

if TYPE_CHECKING:
    from wagate.common.config import Config
    from wagate.common.models import SendMessageRequest
    from wagate.server.connection_manager import ConnectionManager

DASHBOARD_PATH = Path(__file__).parent / "dashboard.html"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class GatewayService:
    """Maps façade operations onto the connection manager."""

    def __init__(
        self,
        config: Config,
        manager: ConnectionManager,
        logger: logging.Logger | None = None,
    ):
        self.config = config
        self.manager = manager
        self.logger = logger or logging.getLogger(__name__)
        self.started_at = time.monotonic()

    def uptime(self) -> int:
        return int(time.monotonic() - self.started_at)

    def health(self) -> dict[str, Any]:
        """Health check endpoint."""
        status = self.manager.get_status()
        return {
            "status": "ok",
            "service": "wagate",
            "connected": status.connected,
            "timestamp": _now_iso(),
        }

    def status(self) -> dict[str, Any]:
        snapshot = self.manager.get_status()
        identity = snapshot.identity
        return {
            "connected": snapshot.connected,
            "status": snapshot.state.value,
            "qrAvailable": snapshot.qr_available,
            "botNumber": identity.number if identity else None,
            "botName": identity.name if identity else None,
            "connectionAttempts": snapshot.attempts,
            "maxAttempts": snapshot.max_attempts,
            "lastActivity": int(snapshot.last_activity * 1000),
            "lastError": snapshot.last_error,
            "credentialsStored": snapshot.credentials_stored,
            "uptime": self.uptime(),
            "timestamp": _now_iso(),
        }

    async def qr(self) -> dict[str, Any]:
        """Return the pending pairing code, starting a connection if needed."""
        if self.manager.get_status().connected:
            return {"success": False, "message": "Already connected", "connected": True}

        if self.manager.pairing is None:
            try:
                await self.manager.ensure_connected()
            except (ConnectTimeout, ConnectionClosed) as err:
                # A pairing code may still have arrived before the failure.
                self.logger.info("Connect for pairing code failed: %s", err)

        pairing = self.manager.pairing
        if pairing is None:
            if self.manager.get_status().connected:
                return {"success": False, "message": "Already connected", "connected": True}
            msg = "Pairing code not available yet. Try connect first"
            raise PairingUnavailable(msg)
        return {
            "success": True,
            "qr": pairing.payload,
            "message": "Scan this code with the messaging app",
            "length": len(pairing.payload),
        }

    async def connect(self) -> dict[str, Any]:
        result = await self.manager.ensure_connected()
        if result.connected:
            return {"success": True, "connected": True}
        return {"success": True, "connected": False, "needsScan": True, "qr": result.qr}

    async def send_message(self, req: SendMessageRequest) -> dict[str, Any]:
        if not req.phone or not req.message:
            msg = "Phone and message are required"
            raise ValidationError(msg)
        phone = normalize_phone(
            req.phone, self.config.COUNTRY_CODE, self.config.TRUNK_PREFIX
        )
        address = to_address(phone, self.config.ADDRESS_SUFFIX)
        message_id = await self.manager.send_text(address, req.message)
        return {
            "success": True,
            "message": "Message sent successfully",
            "to": phone,
            "messageId": message_id,
            "timestamp": _now_iso(),
        }

    async def clear_auth(self) -> dict[str, Any]:
        await self.manager.clear()
        if self.manager.reconnect_after_clear:
            message = "Auth cleared. Reconnecting..."
        else:
            message = "Auth cleared successfully"
        return {"success": True, "message": message}

    def dashboard(self) -> str:
        """Render the status page for the configured route prefix."""
        with DASHBOARD_PATH.open() as f:
            content = f.read()
        return content.replace("{{API_PREFIX}}", self.config.ROUTE_PREFIX)
