"""Event types carried by the live session stream.

Each inbound frame is a JSON object with a ``type`` discriminator. It is
parsed into one of the typed dataclasses below; frames with a type this
client does not know are ignored so that newer servers can add events.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Union

from chatgroup.errors import StreamDecodeError
from chatgroup.shared.models.message import ChatMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageNew:
    message: ChatMessage
    event_type: str = "message_new"


@dataclass(frozen=True)
class AgentDelta:
    run_id: str
    agent_id: str = ""
    content: str = ""
    delta: bool = False
    is_final: bool = False
    event_type: str = "agent_delta"


@dataclass(frozen=True)
class AgentStateChanged:
    agent_id: str
    state: str
    event_type: str = "agent_state"


StreamEvent = Union[MessageNew, AgentDelta, AgentStateChanged]


def _message_new(data: dict[str, Any]) -> MessageNew:
    message = ChatMessage.from_dict(data.get("message"))
    if message is None:
        raise StreamDecodeError("message_new without a valid message")
    return MessageNew(message=message)


def _agent_delta(data: dict[str, Any]) -> AgentDelta:
    run_id = data.get("run_id")
    if not isinstance(run_id, str) or not run_id:
        raise StreamDecodeError("agent_delta without run_id")
    agent_id = data.get("agent_id")
    content = data.get("content")
    return AgentDelta(
        run_id=run_id,
        agent_id=agent_id if isinstance(agent_id, str) else "",
        content=content if isinstance(content, str) else "",
        delta=data.get("delta") is True,
        is_final=data.get("is_final") is True,
    )


def _agent_state(data: dict[str, Any]) -> AgentStateChanged:
    agent_id = data.get("agent_id")
    state = data.get("state")
    if not isinstance(agent_id, str) or not isinstance(state, str):
        raise StreamDecodeError("agent_state without agent_id/state")
    return AgentStateChanged(agent_id=agent_id, state=state)


# Map of event type strings to parsers
_EVENT_MAP = {
    "message_new": _message_new,
    "agent_delta": _agent_delta,
    "agent_state": _agent_state,
}


def dict_to_event(data: dict[str, Any]) -> StreamEvent | None:
    """Convert a decoded frame to a typed event.

    Returns None for unknown event types. Raises StreamDecodeError when
    a known event type is missing required fields.
    """
    event_type = data.get("type")
    parser = _EVENT_MAP.get(event_type) if isinstance(event_type, str) else None
    if parser is None:
        logger.debug("Ignoring stream event of unknown type %r", event_type)
        return None
    return parser(data)


def decode_frame(raw: str | bytes) -> StreamEvent | None:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise StreamDecodeError(str(exc)) from exc
    if not isinstance(data, dict):
        raise StreamDecodeError(f"expected an object, got {type(data).__name__}")
    return dict_to_event(data)
