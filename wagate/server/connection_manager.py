"""
Connection lifecycle for the single shared messaging session.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from wagate.common.config import Config
from wagate.common.exceptions import (
    ConnectionClosed,
    ConnectTimeout,
    NotConnected,
    RecipientNotFound,
    StoreError,
)
from wagate.common.mixins import Configurable
from wagate.common.models import (
    CloseReason,
    ConnectionState,
    ConnectResult,
    Identity,
    PairingArtifact,
    RetryCounter,
    StatusSnapshot,
)

if TYPE_CHECKING:
    from wagate.common.interfaces import ClientFactory, CredentialStore, MessagingClient


class _AttemptEvents:
    """Event sink bound to one connection attempt.

    Signals from an attempt that has since been torn down or replaced are
    dropped, so a late close from an old client never schedules a reconnect.
    """

    def __init__(self, manager: ConnectionManager, generation: int):
        self._manager = manager
        self._generation = generation

    def _current(self) -> bool:
        if self._generation != self._manager.generation:
            self._manager.logger.debug(
                "Ignoring signal from stale attempt %d", self._generation
            )
            return False
        return True

    def on_pairing_code(self, payload: str) -> None:
        if self._current():
            self._manager._handle_pairing_code(payload)

    def on_open(self, identity: Identity) -> None:
        if self._current():
            self._manager._handle_open(identity)

    def on_close(self, reason: CloseReason, detail: str | None = None) -> None:
        if self._current():
            self._manager._handle_close(reason, detail)

    def on_credentials_update(self, updates: dict[str, bytes | None]) -> None:
        # Credential writes are kept even from a stale attempt, losing one
        # would force a new pairing.
        self._manager._handle_credentials_update(updates)


class ConnectionManager(Configurable):
    """Owns the session handle, its pairing code and its reconnect policy."""

    def __init__(
        self,
        client_factory: ClientFactory,
        store: CredentialStore,
        config: Config | None = None,
        **overrides: Any,
    ):
        self.config = config or Config()
        self.apply_overrides(
            overrides,
            self.config,
            [
                "connect_timeout",
                "max_retry_attempts",
                "retry_base_delay",
                "retry_max_delay",
                "fresh_retry_delay",
                "auto_reconnect",
                "reconnect_after_clear",
                "reconnect_after_clear_delay",
                "connect_on_startup",
                "idle_timeout",
                "idle_check_interval",
                "client_name",
            ],
        )
        self.logger = logging.getLogger(__name__)
        self.client_factory = client_factory
        self.store = store

        self.state = ConnectionState.DISCONNECTED
        self.client: MessagingClient | None = None
        self.identity: Identity | None = None
        self.pairing: PairingArtifact | None = None
        self.retry = RetryCounter(
            max_attempts=self.max_retry_attempts,
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
        )
        self.generation = 0
        self.last_activity = time.time()
        self.last_error: str | None = None

        self._lock = asyncio.Lock()
        self._waiter: asyncio.Future[ConnectResult] | None = None
        self._fresh_attempt = False
        self._reconnect_task: asyncio.Task[None] | None = None
        self._connect_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def ensure_connected(self) -> ConnectResult:
        """Return the open session or start one and wait for its first signal.

        Raises:
            ConnectTimeout: No pairing code or open signal within the bound.
            ConnectionClosed: The attempt closed before either signal.
        """
        async with self._lock:
            self.touch()
            if self.state is ConnectionState.CONNECTED and self.client is not None:
                return ConnectResult(connected=True)
            if self.state is ConnectionState.AWAITING_PAIRING and self.pairing:
                return ConnectResult(connected=False, needs_scan=True, qr=self.pairing.payload)
            if self._waiter is None or self._waiter.done():
                self._cancel_reconnect()
                await self._start_attempt()
            waiter = self._waiter
            attempt = self.generation

        assert waiter is not None
        try:
            return await asyncio.wait_for(asyncio.shield(waiter), self.connect_timeout)
        except asyncio.TimeoutError as err:
            msg = f"No pairing code or connection within {self.connect_timeout:g}s"
            self.logger.warning(msg)
            error = ConnectTimeout(msg)
            async with self._lock:
                # The next call starts a new client instead of joining this one.
                if self.generation == attempt and not waiter.done():
                    await self._teardown("timeout", error)
            raise error from err

    def get_status(self) -> StatusSnapshot:
        """Snapshot of the session; never blocks and never connects."""
        try:
            credentials_stored = bool(self.store.keys())
        except StoreError:
            self.logger.exception("Cannot inspect credential store")
            credentials_stored = False
        connected = self.state is ConnectionState.CONNECTED
        return StatusSnapshot(
            state=self.state,
            connected=connected,
            qr_available=self.pairing is not None,
            identity=self.identity if connected else None,
            attempts=self.retry.attempts,
            max_attempts=self.retry.max_attempts,
            last_activity=self.last_activity,
            last_error=self.last_error,
            credentials_stored=credentials_stored,
        )

    async def send_text(self, address: str, body: str) -> str:
        """Send a text message, returning the network's message id."""
        client = self.client
        if self.state is not ConnectionState.CONNECTED or client is None:
            msg = "Messaging session is not connected"
            raise NotConnected(msg)
        self.touch()
        if not await client.is_registered(address):
            msg = f"Recipient not registered: {address}"
            raise RecipientNotFound(msg)
        message_id = await client.send_text(address, body)
        self.touch()
        self.logger.info("Message %s sent to %s", message_id, address)
        return message_id

    async def clear(self) -> None:
        """Tear down the session and delete every stored credential.

        Raises:
            StoreError: The credential store could not be cleared.
        """
        async with self._lock:
            self.logger.info("Clearing session and credentials")
            self._cancel_reconnect()
            await self._teardown("clear")
            self.pairing = None
            self.retry.reset()
            self._fresh_attempt = False
            self.last_error = None
            self.store.delete_all()

        if self.reconnect_after_clear:
            self.logger.info(
                "Reconnecting with fresh state in %ss", self.reconnect_after_clear_delay
            )
            self._schedule_reconnect_in(self.reconnect_after_clear_delay)

    def touch(self) -> None:
        self.last_activity = time.time()

    def seconds_idle(self) -> float:
        return time.time() - self.last_activity

    async def reap_idle(self) -> bool:
        """Tear down a connected session idle past the window; keep credentials."""
        if not self._idle_expired():
            return False
        async with self._lock:
            if not self._idle_expired():
                return False
            idle = self.seconds_idle()
            self.logger.warning("Session inactive for %.0fs, closing", idle)
            await self._teardown("idle")
            return True

    def _idle_expired(self) -> bool:
        return (
            bool(self.idle_timeout)
            and self.state is ConnectionState.CONNECTED
            and self.seconds_idle() > self.idle_timeout
        )

    async def start(self) -> None:
        """Start background work: idle reaping and the optional startup connect."""
        if self.idle_timeout:
            self._spawn(self._idle_loop(), "idle-reaper")
        if self.connect_on_startup:
            self._spawn(self._connect_in_background(), "startup-connect")

    async def shutdown(self) -> None:
        """Cancel background work and close the session best-effort."""
        self._cancel_reconnect()
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        async with self._lock:
            await self._teardown("shutdown")

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    async def _start_attempt(self) -> None:
        """Create a client and start connecting. Caller holds the lock."""
        self.generation += 1
        self.retry.attempts += 1
        self.state = ConnectionState.CONNECTING
        self.identity = None
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[ConnectResult] = loop.create_future()
        # Mark the outcome as retrieved; nobody may be waiting on it.
        waiter.add_done_callback(lambda f: f.cancelled() or f.exception())
        self._waiter = waiter

        self.logger.info(
            "Connection attempt %d/%d", self.retry.attempts, self.retry.max_attempts
        )
        events = _AttemptEvents(self, self.generation)
        try:
            client = self.client_factory(self.store, events, self.client_name)
        except Exception as err:  # noqa: BLE001
            self._client_failed(events, err)
            return
        self.client = client
        # connect() runs outside the lock so the caller's wait stays bounded.
        self._connect_task = self._spawn(self._run_connect(client, events), "client-connect")

    async def _run_connect(self, client: MessagingClient, events: _AttemptEvents) -> None:
        try:
            await client.connect()
        except Exception as err:  # noqa: BLE001
            self._client_failed(events, err)

    def _client_failed(self, events: _AttemptEvents, err: Exception) -> None:
        self.logger.error("Messaging client failed to start", exc_info=err)
        self.last_error = f"client start failed: {err}"
        # The client may already have reported its own close.
        if (
            self.generation == events._generation
            and self.state is not ConnectionState.DISCONNECTED
        ):
            self._handle_close(CloseReason.CONNECTION_LOST, str(err))

    async def _teardown(self, why: str, error: Exception | None = None) -> None:
        """Close the current client and forget it. Caller holds the lock."""
        client = self.client
        self.generation += 1
        self.client = None
        self.identity = None
        self.state = ConnectionState.DISCONNECTED
        self._fail_waiter(error or ConnectionClosed(f"Session closed ({why})"))
        task = self._connect_task
        self._connect_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        if client is None:
            return
        try:
            await client.close()
            self.logger.info("Session closed (%s)", why)
        except Exception:  # noqa: BLE001
            self.logger.exception("Error closing session (%s)", why)

    def _resolve_waiter(self, result: ConnectResult) -> None:
        if self._waiter is not None and not self._waiter.done():
            self._waiter.set_result(result)

    def _fail_waiter(self, error: Exception) -> None:
        if self._waiter is not None and not self._waiter.done():
            self._waiter.set_exception(error)

    # ------------------------------------------------------------------
    # Client signals
    # ------------------------------------------------------------------

    def _handle_pairing_code(self, payload: str) -> None:
        self.logger.info("Pairing code generated (%d chars)", len(payload))
        self.state = ConnectionState.AWAITING_PAIRING
        self.pairing = PairingArtifact(payload=payload)
        self.retry.reset()
        self._fresh_attempt = False
        self._resolve_waiter(ConnectResult(connected=False, needs_scan=True, qr=payload))

    def _handle_open(self, identity: Identity) -> None:
        self.logger.info(
            "Connected as %s (%s)", identity.number, identity.name or "N/A"
        )
        self.state = ConnectionState.CONNECTED
        self.identity = identity
        self.pairing = None
        self.retry.reset()
        self._fresh_attempt = False
        self.last_error = None
        self.touch()
        self._resolve_waiter(ConnectResult(connected=True))

    def _handle_close(self, reason: CloseReason, detail: str | None) -> None:
        self.logger.warning("Connection closed: reason=%s detail=%s", reason.value, detail)
        self.state = ConnectionState.DISCONNECTED
        self.client = None
        self.identity = None
        self._fail_waiter(ConnectionClosed(f"Connection closed: {reason.value}"))

        if reason is CloseReason.LOGGED_OUT:
            self.logger.info("Logged out, clearing credentials")
            self.pairing = None
            self.retry.reset()
            self._fresh_attempt = False
            self._wipe_credentials()
            return

        if not self.auto_reconnect:
            return

        if self._fresh_attempt:
            self._fresh_attempt = False
            self.retry.reset()
            self.last_error = "reconnect with fresh credentials failed"
            self.logger.error("Fresh connection attempt failed, giving up until next request")
            return

        if self.retry.exhausted:
            self.logger.warning("Max retry attempts reached, clearing credentials")
            self.retry.reset()
            self._wipe_credentials()
            self._fresh_attempt = True
            delay = self.fresh_retry_delay
        else:
            delay = self.retry.next_delay()
        self.logger.info("Reconnecting in %ss", delay)
        self._schedule_reconnect_in(delay)

    def _handle_credentials_update(self, updates: dict[str, bytes | None]) -> None:
        for key, blob in updates.items():
            try:
                if blob is None:
                    self.store.delete(key)
                else:
                    self.store.save(key, blob)
            except StoreError as err:
                self.logger.exception("Credential update for '%s' not persisted", key)
                self.last_error = str(err)

    def _wipe_credentials(self) -> None:
        try:
            self.store.delete_all()
        except StoreError as err:
            self.logger.exception("Credential wipe failed")
            self.last_error = str(err)

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    def _spawn(self, coro: Any, name: str) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        err = task.exception()
        if err is not None:
            self.logger.error(
                "Background task %s failed", task.get_name(), exc_info=err
            )
            self.last_error = f"{task.get_name()}: {err}"

    def _schedule_reconnect_in(self, delay: float) -> None:
        self._cancel_reconnect()
        self._reconnect_task = self._spawn(self._reconnect_after(delay), "reconnect")

    def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        # A reconnect never cancels itself from inside its own attempt.
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._reconnect_task = None

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        async with self._lock:
            if self.state is not ConnectionState.DISCONNECTED or self.client is not None:
                return
            await self._start_attempt()

    async def _connect_in_background(self) -> None:
        try:
            result = await self.ensure_connected()
        except (ConnectTimeout, ConnectionClosed) as err:
            self.logger.warning("Startup connect did not complete: %s", err)
            return
        self.logger.info(
            "Startup connect: %s", "connected" if result.connected else "waiting for scan"
        )

    async def _idle_loop(self) -> None:
        while True:
            await asyncio.sleep(self.idle_check_interval)
            await self.reap_idle()
