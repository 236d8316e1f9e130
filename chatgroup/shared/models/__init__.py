"""Data models shared by the stream, store and artifact layers."""
from __future__ import annotations

from chatgroup.shared.models.agent import (
    AgentState,
    ChatAgent,
    MentionStatus,
    SessionAgent,
    parse_agent_state,
)
from chatgroup.shared.models.diff import DiffFileEntry, DiffMeta
from chatgroup.shared.models.message import Attachment, ChatMessage, SenderType
from chatgroup.shared.models.run import RunHistoryItem, StreamingRun
from chatgroup.shared.models.session import ChatViewState

__all__ = [
    "AgentState",
    "Attachment",
    "ChatAgent",
    "ChatMessage",
    "ChatViewState",
    "DiffFileEntry",
    "DiffMeta",
    "MentionStatus",
    "RunHistoryItem",
    "SenderType",
    "SessionAgent",
    "StreamingRun",
    "parse_agent_state",
]
