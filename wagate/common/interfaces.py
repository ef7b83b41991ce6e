"""
Interfaces and protocols for dependency injection.

The messaging protocol itself lives in an external library. Adapters for such
a library implement ``MessagingClient`` and report what happens on the wire
through the ``ClientEvents`` sink they are constructed with.
"""

from __future__ import annotations

from typing import Callable, Protocol

from wagate.common.models import CloseReason, Identity


class CredentialStore(Protocol):
    """Protocol for credential persistence operations."""

    def load(self, key: str) -> bytes | None: ...

    def save(self, key: str, blob: bytes) -> None: ...

    def delete(self, key: str) -> None: ...

    def delete_all(self) -> None: ...

    def keys(self) -> list[str]: ...


class ClientEvents(Protocol):
    """Signals a messaging client emits.

    Must be called on the event loop thread; adapters around threaded
    libraries should hop over with ``loop.call_soon_threadsafe``.
    """

    def on_pairing_code(self, payload: str) -> None: ...

    def on_open(self, identity: Identity) -> None: ...

    def on_close(self, reason: CloseReason, detail: str | None = None) -> None: ...

    def on_credentials_update(self, updates: dict[str, bytes | None]) -> None: ...


class MessagingClient(Protocol):
    """Protocol for one connection to the messaging network.

    Adapters must leave reconnecting to the caller: every close is reported
    through ``ClientEvents.on_close`` and the client is not reused afterwards.
    """

    @property
    def identity(self) -> Identity | None: ...

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def is_registered(self, address: str) -> bool: ...

    async def send_text(self, address: str, body: str) -> str: ...


# factory(store, events, client_name) -> client
ClientFactory = Callable[[CredentialStore, ClientEvents, str], MessagingClient]
