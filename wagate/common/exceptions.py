"""
Custom exceptions for the messaging gateway.

The class name of each exception is the error code reported to HTTP callers.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base exception for failures surfaced to HTTP callers."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code

    @property
    def code(self) -> str:
        return type(self).__name__


class ValidationError(GatewayError):
    """Exception for missing or malformed request fields."""

    status_code = 400


class RecipientNotFound(GatewayError):
    """Exception for destinations not registered on the network."""

    status_code = 404


class NotConnected(GatewayError):
    """Exception for operations that need an open session."""

    status_code = 503


class PairingUnavailable(GatewayError):
    """Exception for pairing code requests that cannot be served."""

    status_code = 503


class ConnectionClosed(GatewayError):
    """Exception for a session that closed while a caller was waiting on it."""

    status_code = 502


class ConnectTimeout(GatewayError):
    """Exception for connection attempts that produced no signal in time."""

    status_code = 504


class StoreError(GatewayError):
    """Exception for credential store failures."""

    status_code = 500
