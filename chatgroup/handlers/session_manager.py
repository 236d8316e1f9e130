"""Per-session state and session switching.

All derived state for a session (messages, run buffers, mention status,
artifact caches) lives in one :class:`SessionContext`. Switching or
closing a session discards the whole context; nothing carries over.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from chatgroup.errors import FetchError
from chatgroup.handlers.event_processor import EventProcessor
from chatgroup.shared.models.session import ChatViewState
from chatgroup.shared.services.artifacts import DiffViewerController, RunLogLoader
from chatgroup.shared.services.mention_resolver import MentionResolver
from chatgroup.shared.services.message_store import MessageStore
from chatgroup.shared.services.run_aggregator import RunAggregator

if TYPE_CHECKING:
    from chatgroup.adapters.api import ChatApi
    from chatgroup.adapters.transport import StreamTransport
    from chatgroup.config import ClientConfig

logger = logging.getLogger(__name__)

ViewListener = Callable[[ChatViewState], None]


class SessionContext:
    """Everything derived for one open session."""

    def __init__(
        self,
        session_id: str,
        config: ClientConfig,
        api: ChatApi,
        listener: ViewListener | None = None,
    ) -> None:
        self.session_id = session_id
        self.closed = False
        self._listener = listener
        self.messages = MessageStore()
        self.runs = RunAggregator(
            grace_seconds=config.run_grace_seconds,
            on_expire=lambda _run_id: self.notify(),
        )
        self.mentions = MentionResolver()
        self.diff_viewer = DiffViewerController(
            api,
            max_chars=config.max_inline_diff_chars,
            max_files=config.max_inline_diff_files,
            max_file_patch_chars=config.max_inline_file_patch_chars,
        )
        self.run_logs = RunLogLoader(api)

    def view(self) -> ChatViewState:
        return ChatViewState(
            session_id=self.session_id,
            messages=self.messages.messages(),
            streaming_runs=list(self.runs.runs.values()),
            agent_states=self.mentions.agent_states,
        )

    def notify(self) -> None:
        if self.closed or self._listener is None:
            return
        try:
            self._listener(self.view())
        except Exception:
            logger.exception("View listener failed for session %s", self.session_id)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.runs.close()
        self.diff_viewer.reset()
        self.run_logs.reset()
        self.mentions.clear()
        self.messages.clear()
        logger.debug("Discarded state for session %s", self.session_id)


class SessionManager:
    """Owns the active :class:`SessionContext` and the stream that feeds it."""

    def __init__(
        self,
        config: ClientConfig,
        api: ChatApi,
        transport_factory: Callable[[Callable], StreamTransport],
        listener: ViewListener | None = None,
    ) -> None:
        self._config = config
        self._api = api
        self._listener = listener
        self._context: SessionContext | None = None
        self.processor = EventProcessor(lambda: self._context)
        self.transport = transport_factory(self.processor)

    @property
    def context(self) -> SessionContext | None:
        return self._context

    @property
    def session_id(self) -> str | None:
        return self._context.session_id if self._context else None

    def open_session(self, session_id: str | None) -> SessionContext | None:
        """Switch to *session_id*, discarding the previous session's state.

        Passing None (or an empty id) just tears the current session down.
        """
        if session_id and session_id == self.session_id:
            return self._context
        if self._context is not None:
            logger.info("Leaving session %s", self._context.session_id)
            self._context.close()
            self._context = None
        if session_id:
            self._context = SessionContext(
                session_id, self._config, self._api, self._listener,
            )
        self.transport.open(session_id or None)
        if self._context is not None:
            self._context.notify()
        return self._context

    async def refresh(self) -> bool:
        """Load members and message history for the active session.

        Messages already delivered by the stream are kept; the listing is
        upserted on top. Returns False when the listing failed or the
        session changed while it was loading.
        """
        ctx = self._context
        if ctx is None:
            return False
        try:
            agents = await self._api.list_agents()
            members = await self._api.list_session_agents(ctx.session_id)
            messages = await self._api.list_messages(ctx.session_id)
        except FetchError as exc:
            logger.warning("Failed to load session %s: %s", ctx.session_id, exc)
            return False
        if ctx.closed or ctx is not self._context:
            logger.debug("Discarding listing for inactive session %s", ctx.session_id)
            return False

        member_ids = {m.agent_id for m in members}
        ctx.mentions.set_agents(a for a in agents if a.id in member_ids)
        for member in members:
            ctx.mentions.on_agent_state(member.agent_id, member.state)
        ctx.messages.load(messages)
        for message in messages:
            ctx.runs.on_message(message)
        ctx.notify()
        return True

    def close(self) -> None:
        self.open_session(None)
