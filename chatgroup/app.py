"""Client entry point: logging setup and the top-level ChatClient facade."""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from chatgroup.adapters.api import ChatApi
from chatgroup.adapters.transport import StreamTransport
from chatgroup.config import ClientConfig
from chatgroup.handlers.session_manager import SessionContext, SessionManager, ViewListener

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [pid=%(process)d] %(message)s"


def configure_logging(level: str = "INFO", log_file: str | Path | None = None) -> None:
    """Install stderr (and optional rotating file) handlers on the root logger."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    root.handlers.clear()
    formatter = logging.Formatter(LOG_FORMAT)
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)
    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    # aiohttp access/client chatter is noise at INFO
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


class ChatClient:
    """Wires config, HTTP API, stream transport and session state together.

    Must be used from inside a running event loop::

        async with ChatClient(ClientConfig.from_env(), listener=render) as client:
            client.open_session(session_id)
            await client.refresh()
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        listener: ViewListener | None = None,
        api: ChatApi | None = None,
    ) -> None:
        self.config = config or ClientConfig.from_env()
        self.api = api or ChatApi(self.config)
        self.sessions = SessionManager(
            self.config,
            self.api,
            lambda on_event: StreamTransport(self.config, on_event),
            listener=listener,
        )

    @property
    def transport(self) -> StreamTransport:
        return self.sessions.transport

    @property
    def context(self) -> SessionContext | None:
        return self.sessions.context

    def open_session(self, session_id: str | None) -> SessionContext | None:
        return self.sessions.open_session(session_id)

    async def refresh(self) -> bool:
        return await self.sessions.refresh()

    async def list_sessions(self) -> list[dict]:
        return await self.api.list_sessions()

    async def send_message(self, content: str, meta: dict | None = None) -> bool:
        """Post a message to the active session.

        The created message is upserted right away; the stream echo of the
        same id later is then a no-op.
        """
        ctx = self.context
        if ctx is None:
            return False
        message = await self.api.create_message(ctx.session_id, content, meta)
        if message is None or ctx.closed:
            return False
        if ctx.messages.upsert(message):
            ctx.notify()
        return True

    async def close(self) -> None:
        self.sessions.close()
        await self.transport.aclose()
        await self.api.close()

    async def __aenter__(self) -> ChatClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
