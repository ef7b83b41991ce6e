"""
Pydantic models for session state, credentials and request validation.
"""

from __future__ import annotations

import time
from enum import Enum

from pydantic import BaseModel, Field


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_PAIRING = "awaiting-pairing"
    CONNECTED = "connected"


class CloseReason(str, Enum):
    """Why the messaging client closed its connection."""

    LOGGED_OUT = "logged-out"
    CONNECTION_LOST = "connection-lost"
    RESTART_REQUIRED = "restart-required"
    REPLACED = "replaced"
    UNKNOWN = "unknown"


class Identity(BaseModel):
    """Account the session is paired with."""

    id: str
    name: str | None = None

    @property
    def number(self) -> str:
        # "6281234567890:12@s.whatsapp.net" -> "6281234567890"
        return self.id.split(":")[0].split("@")[0]


class PairingArtifact(BaseModel):
    payload: str
    generated_at: float = Field(default_factory=time.time)


class CredentialRecord(BaseModel):
    key: str
    blob: bytes
    updated_at: float = Field(default_factory=time.time)


class RetryCounter(BaseModel):
    """Bounds automatic reconnects after unexpected closes."""

    attempts: int = 0
    max_attempts: int = 3
    base_delay: float = 5.0
    max_delay: float = 15.0

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def next_delay(self) -> float:
        """Exponential backoff for the attempt that just failed."""
        exponent = max(self.attempts - 1, 0)
        return min(self.base_delay * 2**exponent, self.max_delay)

    def reset(self) -> None:
        self.attempts = 0


class ConnectResult(BaseModel):
    connected: bool
    needs_scan: bool = False
    qr: str | None = None


class StatusSnapshot(BaseModel):
    state: ConnectionState
    connected: bool
    qr_available: bool
    identity: Identity | None = None
    attempts: int
    max_attempts: int
    last_activity: float
    last_error: str | None = None
    credentials_stored: bool = False


class SendMessageRequest(BaseModel):
    # Optional so that missing fields reach our own validation
    phone: str | None = None
    message: str | None = None
