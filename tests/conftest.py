from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable

import pytest

from wagate.common.config import Config
from wagate.common.models import CloseReason, Identity
from wagate.server.connection_manager import ConnectionManager
from wagate.server.persistence import FileCredentialStore

BOT_ID = "6281111111111:7@s.whatsapp.net"

Action = Callable[["FakeClient"], None]


class FakeClient:
    """Scripted stand-in for a messaging protocol client."""

    def __init__(self, store, events, name: str, script: list[Action]):
        self.store = store
        self.events = events
        self.name = name
        self.script = script
        self.closed = False
        self.sent: list[tuple[str, str]] = []
        self.registered: set[str] | None = None  # None: everyone is registered
        self.fail_send = False
        self.connect_delay = 0.0
        self._identity: Identity | None = None

    @property
    def identity(self) -> Identity | None:
        return self._identity

    async def connect(self) -> None:
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        for action in self.script:
            action(self)

    async def close(self) -> None:
        self.closed = True

    async def is_registered(self, address: str) -> bool:
        return self.registered is None or address in self.registered

    async def send_text(self, address: str, body: str) -> str:
        if self.fail_send:
            msg = "socket write failed"
            raise RuntimeError(msg)
        self.sent.append((address, body))
        return f"MSG{len(self.sent)}"

    # Signals the test can trigger after connect()

    def pair(self, payload: str = "2@pairing-payload") -> None:
        self.events.on_pairing_code(payload)

    def open(self, identity_id: str = BOT_ID, name: str = "Test Bot") -> None:
        self._identity = Identity(id=identity_id, name=name)
        self.events.on_open(self._identity)

    def drop(self, reason: CloseReason = CloseReason.CONNECTION_LOST) -> None:
        self.events.on_close(reason, "test")

    def save_creds(self, **updates: bytes | None) -> None:
        self.events.on_credentials_update(updates)


def opens(client: FakeClient) -> None:
    client.open()


def pairs(payload: str = "2@pairing-payload") -> Action:
    return lambda client: client.pair(payload)


def drops(reason: CloseReason = CloseReason.CONNECTION_LOST) -> Action:
    return lambda client: client.drop(reason)


def saves(**updates: bytes | None) -> Action:
    return lambda client: client.save_creds(**updates)


def fails(client: FakeClient) -> None:
    msg = "handshake refused"
    raise RuntimeError(msg)


class FakeFactory:
    """Client factory handing out FakeClients with queued scripts."""

    def __init__(self, default: list[Action] | None = None):
        self.default = default or []
        self.connect_delay = 0.0
        self.scripts: list[list[Action]] = []
        self.clients: list[FakeClient] = []

    def plan(self, *actions: Action) -> None:
        self.scripts.append(list(actions))

    def __call__(self, store, events, name: str) -> FakeClient:
        script = self.scripts.pop(0) if self.scripts else self.default
        client = FakeClient(store, events, name, script)
        client.connect_delay = self.connect_delay
        self.clients.append(client)
        return client

    @property
    def last(self) -> FakeClient:
        return self.clients[-1]


class CountingStore(FileCredentialStore):
    def __init__(self, directory: Path):
        super().__init__(directory)
        self.wipes = 0

    def delete_all(self) -> None:
        self.wipes += 1
        super().delete_all()


async def drain_reconnects(manager: ConnectionManager, limit: int = 20) -> None:
    """Run scheduled reconnects and the attempts they start until none is pending."""
    for _ in range(limit):
        pending = {
            task
            for task in (manager._reconnect_task, manager._connect_task)
            if task is not None and not task.done()
        }
        if not pending:
            return
        await asyncio.wait(pending)
    msg = "reconnects did not settle"
    raise AssertionError(msg)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep WAGATE_* settings of the calling shell out of the tests."""
    import os  # noqa: PLC0415

    for name in list(os.environ):
        if name.startswith("WAGATE_") or name == "PORT":
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("WAGATE_DATA_DIR", str(tmp_path / "data"))


@pytest.fixture
def factory() -> FakeFactory:
    return FakeFactory()


@pytest.fixture
def store(tmp_path: Path) -> CountingStore:
    return CountingStore(tmp_path / "auth")


@pytest.fixture
def manager(factory: FakeFactory, store: CountingStore) -> ConnectionManager:
    return ConnectionManager(
        factory,
        store,
        config=Config("server"),
        connect_timeout=1.0,
        retry_base_delay=0,
        fresh_retry_delay=0,
        reconnect_after_clear=False,
        connect_on_startup=False,
    )
