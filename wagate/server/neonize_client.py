"""
Messaging client backed by the neonize library (Python bindings for whatsmeow).

neonize keeps its session in an SQLite file and runs its socket in a blocking
``connect()`` call that fires callbacks from library threads. This adapter
runs ``connect()`` in an executor, hops every callback onto the event loop,
and mirrors the SQLite file into the credential store under ``SESSION_KEY``.
"""

from __future__ import annotations

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from wagate.common.models import CloseReason, Identity

if TYPE_CHECKING:
    from wagate.common.interfaces import ClientEvents, CredentialStore

logger = logging.getLogger(__name__)

SESSION_KEY = "neonize-session.sqlite3"
SESSION_DIR = Path(tempfile.gettempdir()) / "wagate-neonize"


class NeonizeClient:
    """One connection attempt over a neonize ``NewClient``."""

    def __init__(
        self,
        store: CredentialStore,
        events: ClientEvents,
        name: str,
        session_dir: Path = SESSION_DIR,
    ):
        self.store = store
        self.events = events
        self.name = name
        self.session_path = session_dir / SESSION_KEY
        self._loop: asyncio.AbstractEventLoop | None = None
        self._client: Any = None
        self._runner: asyncio.Future[Any] | None = None
        self._identity: Identity | None = None
        self._closed = False
        self._logged_out = False
        self._disconnect_task: asyncio.Task[None] | None = None

    @property
    def identity(self) -> Identity | None:
        return self._identity

    # ------------------------------------------------------------------
    # MessagingClient
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Restore the stored session and start the socket in the background."""
        self._loop = asyncio.get_running_loop()
        self._restore_session()
        self._client = self._build()
        logger.info("Starting neonize client '%s'", self.name)
        self._runner = self._loop.run_in_executor(None, self._client.connect)
        self._runner.add_done_callback(self._on_runner_done)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._disconnect()
        self._persist_session()

    async def is_registered(self, address: str) -> bool:
        number = address.split("@")[0]
        responses = await self._call(self._client.is_on_whatsapp, f"+{number}")
        return any(response.IsIn for response in responses)

    async def send_text(self, address: str, body: str) -> str:
        jid = self._build_jid(address.split("@")[0])
        response = await self._call(self._client.send_message, jid, body)
        return str(response.ID)

    # ------------------------------------------------------------------
    # Library wiring
    # ------------------------------------------------------------------

    def _build(self) -> Any:
        # neonize loads its native library on import
        from neonize.client import NewClient  # noqa: PLC0415
        from neonize.events import (  # noqa: PLC0415
            ConnectedEv,
            DisconnectedEv,
            LoggedOutEv,
            PairStatusEv,
            StreamReplacedEv,
        )

        client = NewClient(str(self.session_path))
        client.event.qr(self._on_qr)
        client.event(ConnectedEv)(self._on_connected)
        client.event(PairStatusEv)(self._on_paired)
        client.event(LoggedOutEv)(self._on_logged_out)
        client.event(StreamReplacedEv)(self._on_replaced)
        client.event(DisconnectedEv)(self._on_disconnected)
        return client

    def _build_jid(self, number: str) -> Any:
        from neonize.utils import build_jid  # noqa: PLC0415

        return build_jid(number)

    async def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    async def _disconnect(self) -> None:
        if self._client is None:
            return
        try:
            await self._call(self._client.disconnect)
        except Exception:  # noqa: BLE001
            logger.exception("neonize disconnect failed")

    def _dispatch(self, func: Callable[..., None], *args: Any) -> None:
        """Run ``func`` on the event loop; neonize calls back from its own threads."""
        assert self._loop is not None
        self._loop.call_soon_threadsafe(func, *args)

    # Callbacks from neonize threads

    def _on_qr(self, _client: Any, data: bytes) -> None:
        payload = data.decode("utf-8") if isinstance(data, bytes) else str(data)
        self._dispatch(self.events.on_pairing_code, payload)

    def _on_connected(self, client: Any, _event: Any) -> None:
        me = client.get_me()
        identity = Identity(
            id=f"{me.JID.User}@{me.JID.Server}", name=me.PushName or None
        )
        self._dispatch(self._opened, identity)

    def _on_paired(self, _client: Any, _event: Any) -> None:
        self._dispatch(self._persist_session)

    def _on_logged_out(self, _client: Any, event: Any) -> None:
        self._dispatch(self._report_close, CloseReason.LOGGED_OUT, f"reason {event.Reason}")

    def _on_replaced(self, _client: Any, _event: Any) -> None:
        self._dispatch(self._report_close, CloseReason.REPLACED, "stream replaced")

    def _on_disconnected(self, _client: Any, _event: Any) -> None:
        self._dispatch(self._report_close, CloseReason.CONNECTION_LOST, "disconnected")

    # Loop-side handlers

    def _opened(self, identity: Identity) -> None:
        if self._closed:
            return
        self._identity = identity
        self._persist_session()
        self.events.on_open(identity)

    def _report_close(self, reason: CloseReason, detail: str) -> None:
        if self._closed:
            return
        self._closed = True
        self._identity = None
        if reason is CloseReason.LOGGED_OUT:
            self._logged_out = True
        else:
            self._persist_session()
        self.events.on_close(reason, detail)
        # whatsmeow would reconnect by itself; the connection manager owns that.
        assert self._loop is not None
        self._disconnect_task = self._loop.create_task(self._disconnect())

    def _on_runner_done(self, runner: asyncio.Future[Any]) -> None:
        if runner.cancelled():
            return
        err = runner.exception()
        if err is not None:
            logger.error("neonize client stopped with an error", exc_info=err)
        self._report_close(CloseReason.CONNECTION_LOST, str(err or "socket closed"))

    # ------------------------------------------------------------------
    # Session file <-> credential store
    # ------------------------------------------------------------------

    def _restore_session(self) -> None:
        self.session_path.parent.mkdir(parents=True, exist_ok=True)
        for stale in self.session_path.parent.glob(f"{SESSION_KEY}*"):
            stale.unlink()
        blob = self.store.load(SESSION_KEY)
        if blob is not None:
            self.session_path.write_bytes(blob)
            logger.info("Restored neonize session (%d bytes)", len(blob))

    def _persist_session(self) -> None:
        if self._logged_out or not self.session_path.exists():
            return
        self.events.on_credentials_update({SESSION_KEY: self.session_path.read_bytes()})


def create_client(store: CredentialStore, events: ClientEvents, name: str) -> NeonizeClient:
    """Default client factory for ``WAGATE_CLIENT_FACTORY``."""
    return NeonizeClient(store, events, name)
