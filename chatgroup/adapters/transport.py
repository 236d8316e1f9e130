"""Live session stream over an aiohttp websocket.

One connection per active session. The lifecycle is an explicit state
machine::

    CLOSED --open()--> CONNECTING --handshake--> OPEN
    CONNECTING/OPEN --close or error--> WAITING_TO_RECONNECT --delay--> CONNECTING
    any --close()/open(other)--> CLOSED

Reconnects use a fixed delay with no backoff and continue until the
owner tears the stream down. Every connection attempt carries an epoch;
callbacks from an older epoch are ignored, so a late close from a torn
down connection can never schedule a reconnect for a newer session.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

import aiohttp

from chatgroup.adapters.events import StreamEvent, decode_frame
from chatgroup.config import ClientConfig
from chatgroup.errors import StreamDecodeError, TransportError

logger = logging.getLogger(__name__)

EventHandler = Callable[[StreamEvent], None]


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    WAITING_TO_RECONNECT = "waiting_to_reconnect"
    CLOSED = "closed"


class StreamTransport:
    """Owns the websocket for the active session and dispatches its events."""

    def __init__(
        self,
        config: ClientConfig,
        on_event: EventHandler,
        http: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._on_event = on_event
        self._http = http
        self._owns_http = http is None
        self._session_id: str | None = None
        self._state = ConnectionState.CLOSED
        self._epoch = 0
        self._task: asyncio.Task | None = None
        self._reconnect_timer: asyncio.TimerHandle | None = None
        self.connect_attempts = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None

    @property
    def http(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession()
            self._owns_http = True
        return self._http

    # ── lifecycle ───────────────────────────────────────────────────

    def open(self, session_id: str | None) -> None:
        """Point the stream at *session_id* (None closes it).

        Reopening the session that is already active is a no-op.
        """
        if session_id == self._session_id and self._state is not ConnectionState.CLOSED:
            return
        self._teardown()
        self._session_id = session_id
        if session_id:
            logger.info("Opening stream for session %s", session_id)
            self._connect()

    def close(self) -> None:
        self._teardown()
        self._session_id = None

    async def aclose(self) -> None:
        """Close the stream and the HTTP session if this transport created it."""
        task = self._task
        self.close()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        if self._owns_http and self._http is not None and not self._http.closed:
            await self._http.close()

    def _teardown(self) -> None:
        if self._state is ConnectionState.CLOSED and self._task is None:
            return
        self._epoch += 1
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        if self._session_id:
            logger.info("Closed stream for session %s", self._session_id)
        self._state = ConnectionState.CLOSED

    def _connect(self) -> None:
        self._reconnect_timer = None
        session_id = self._session_id
        if not session_id:
            return
        self._epoch += 1
        self._state = ConnectionState.CONNECTING
        self.connect_attempts += 1
        self._task = asyncio.get_running_loop().create_task(
            self._run(session_id, self._epoch),
        )

    # ── connection ──────────────────────────────────────────────────

    async def _run(self, session_id: str, epoch: int) -> None:
        url = self._config.stream_url(session_id)
        try:
            async with self.http.ws_connect(url) as ws:
                if epoch != self._epoch:
                    return
                self._state = ConnectionState.OPEN
                logger.info("Stream connected for session %s", session_id)
                async for msg in ws:
                    if epoch != self._epoch:
                        return
                    if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                        self._handle_frame(msg.data)
                    elif msg.type is aiohttp.WSMsgType.ERROR:
                        raise TransportError(session_id, str(ws.exception()))
        except TransportError as exc:
            logger.info("%s", exc)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            logger.info(
                "Stream connection for session %s failed: %s",
                session_id, exc or type(exc).__name__,
            )
        self._on_connection_lost(session_id, epoch)

    def _on_connection_lost(self, session_id: str, epoch: int) -> None:
        if epoch != self._epoch:
            return
        self._task = None
        self._state = ConnectionState.WAITING_TO_RECONNECT
        logger.debug(
            "Stream for session %s closed; reconnecting in %.1fs",
            session_id, self._config.reconnect_delay_seconds,
        )
        self._reconnect_timer = asyncio.get_running_loop().call_later(
            self._config.reconnect_delay_seconds, self._connect,
        )

    def _handle_frame(self, raw: str | bytes) -> None:
        try:
            event = decode_frame(raw)
        except StreamDecodeError as exc:
            logger.warning("Failed to parse chat stream payload: %s", exc.reason)
            return
        if event is None:
            return
        try:
            self._on_event(event)
        except Exception:
            logger.exception("Stream event handler failed for %s", event.event_type)
