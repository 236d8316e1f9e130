"""Routes decoded stream events to the active session's components.

Dispatch is synchronous and happens in delivery order on the event loop.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from chatgroup.adapters.events import (
    AgentDelta,
    AgentStateChanged,
    MessageNew,
    StreamEvent,
)

if TYPE_CHECKING:
    from chatgroup.handlers.session_manager import SessionContext

logger = logging.getLogger(__name__)


class EventProcessor:
    """Applies stream events to whichever session context is current."""

    def __init__(self, context_provider: Callable[[], SessionContext | None]) -> None:
        self._context_provider = context_provider

    def __call__(self, event: StreamEvent) -> None:
        self.process(event)

    def process(self, event: StreamEvent) -> bool:
        """Apply *event*; returns True when view state changed."""
        ctx = self._context_provider()
        if ctx is None or ctx.closed:
            logger.debug("Dropping %s: no active session", event.event_type)
            return False

        if isinstance(event, MessageNew):
            changed = self._handle_message_new(ctx, event)
        elif isinstance(event, AgentDelta):
            changed = ctx.runs.on_delta(event) is not None
        elif isinstance(event, AgentStateChanged):
            changed = ctx.mentions.on_agent_state(event.agent_id, event.state)
        else:
            return False

        if changed:
            ctx.notify()
        return changed

    def _handle_message_new(self, ctx: SessionContext, event: MessageNew) -> bool:
        message = event.message
        if message.session_id != ctx.session_id:
            logger.debug(
                "Ignoring message %s for session %s (active: %s)",
                message.id, message.session_id, ctx.session_id,
            )
            return False
        stored = ctx.messages.upsert(message)
        retired = ctx.runs.on_message(message)
        return stored or retired
