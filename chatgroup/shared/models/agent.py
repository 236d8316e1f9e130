"""Agent and session-member models.

The session/agent collaborator owns these records; the client only
reads them to label messages and resolve mention badges.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class AgentState(str, Enum):
    """Lifecycle state of an agent inside a session."""
    IDLE = "idle"
    RUNNING = "running"
    WAITING_APPROVAL = "waitingapproval"
    DEAD = "dead"


class MentionStatus(str, Enum):
    """Badge status for one @handle in one message."""
    RUNNING = "running"
    RECEIVED = "received"
    COMPLETED = "completed"
    FAILED = "failed"


def parse_agent_state(value: Any) -> AgentState | None:
    """Map a wire value to an AgentState, or None if it is not one."""
    if isinstance(value, AgentState):
        return value
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower().replace("_", "")
    for state in AgentState:
        if state.value == normalized:
            return state
    return None


def parse_mention_status(value: Any) -> MentionStatus | None:
    if isinstance(value, MentionStatus):
        return value
    if not isinstance(value, str):
        return None
    try:
        return MentionStatus(value.strip().lower())
    except ValueError:
        return None


@dataclass(frozen=True)
class ChatAgent:
    """An AI agent definition that can join sessions."""
    id: str
    name: str
    runner_type: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatAgent | None:
        if not isinstance(data, dict):
            return None
        agent_id = data.get("id")
        name = data.get("name")
        if not isinstance(agent_id, str) or not isinstance(name, str):
            return None
        runner_type = data.get("runner_type")
        return cls(
            id=agent_id,
            name=name,
            runner_type=runner_type if isinstance(runner_type, str) else None,
        )


@dataclass(frozen=True)
class SessionAgent:
    """Membership of an agent in one session, with its current state."""
    id: str
    session_id: str
    agent_id: str
    state: AgentState = AgentState.IDLE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionAgent | None:
        if not isinstance(data, dict):
            return None
        fields = [data.get(k) for k in ("id", "session_id", "agent_id")]
        if not all(isinstance(v, str) for v in fields):
            return None
        return cls(
            id=fields[0],
            session_id=fields[1],
            agent_id=fields[2],
            state=parse_agent_state(data.get("state")) or AgentState.IDLE,
        )
