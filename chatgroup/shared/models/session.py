"""Derived view state for one chat session."""
from __future__ import annotations

from dataclasses import dataclass, field

from chatgroup.shared.models.agent import AgentState
from chatgroup.shared.models.message import ChatMessage
from chatgroup.shared.models.run import StreamingRun


@dataclass(frozen=True)
class ChatViewState:
    """Snapshot consumed by the rendering layer.

    ``messages`` is in display order; ``streaming_runs`` keeps the order
    in which runs started.
    """
    session_id: str | None = None
    messages: list[ChatMessage] = field(default_factory=list)
    streaming_runs: list[StreamingRun] = field(default_factory=list)
    agent_states: dict[str, AgentState] = field(default_factory=dict)
