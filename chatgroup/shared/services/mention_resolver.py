"""Per-message @mention badge status.

An explicit status map attached to the message wins outright. Without
one, the live agent state is the only signal, and it can only say
"running".
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from chatgroup.shared.meta import extract_mention_statuses, parse_mentions
from chatgroup.shared.models.agent import (
    AgentState,
    ChatAgent,
    MentionStatus,
    parse_agent_state,
)
from chatgroup.shared.models.message import ChatMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MentionBadge:
    handle: str
    status: MentionStatus | None
    # Status inferred from live agent state, not reported for the message.
    inferred: bool = False

    @property
    def failed(self) -> bool:
        return self.status is MentionStatus.FAILED

    @property
    def show_check(self) -> bool:
        return self.status in (
            MentionStatus.RUNNING,
            MentionStatus.RECEIVED,
            MentionStatus.COMPLETED,
        )

    @property
    def pulse(self) -> bool:
        return self.status is MentionStatus.RUNNING and not self.inferred


class MentionResolver:
    def __init__(self) -> None:
        self._agent_states: dict[str, AgentState] = {}
        self._agent_ids_by_name: dict[str, str] = {}
        self._status_maps: dict[str, dict[str, MentionStatus]] = {}

    @property
    def agent_states(self) -> dict[str, AgentState]:
        return dict(self._agent_states)

    def set_agents(self, agents: Iterable[ChatAgent]) -> None:
        """Register session members so handles can be matched to agent ids."""
        self._agent_ids_by_name = {agent.name: agent.id for agent in agents}

    def on_agent_state(self, agent_id: str, state: object) -> bool:
        parsed = parse_agent_state(state)
        if parsed is None:
            logger.debug("Ignoring unknown state %r for agent %s", state, agent_id)
            return False
        if self._agent_states.get(agent_id) is parsed:
            return False
        self._agent_states[agent_id] = parsed
        return True

    def set_status_map(
        self, message_id: str, statuses: dict[str, MentionStatus],
    ) -> None:
        self._status_maps[message_id] = dict(statuses)

    def set_status(
        self, message_id: str, handle: str, status: MentionStatus,
    ) -> None:
        self._status_maps.setdefault(message_id, {})[handle] = status

    def status_map_for(
        self, message: ChatMessage,
    ) -> dict[str, MentionStatus] | None:
        explicit = self._status_maps.get(message.id)
        if explicit is not None:
            return explicit
        return extract_mention_statuses(message.meta)

    def resolve(self, message: ChatMessage, handle: str) -> MentionStatus | None:
        status_map = self.status_map_for(message)
        if status_map is not None:
            return status_map.get(handle)
        return self._state_status(handle)

    def badges(self, message: ChatMessage) -> list[MentionBadge]:
        handles = parse_mentions(message.content)
        status_map = self.status_map_for(message)
        if status_map is not None:
            return [MentionBadge(handle=h, status=status_map.get(h)) for h in handles]
        badges = []
        for handle in handles:
            status = self._state_status(handle)
            badges.append(
                MentionBadge(handle=handle, status=status, inferred=status is not None)
            )
        return badges

    def _state_status(self, handle: str) -> MentionStatus | None:
        agent_id = self._agent_ids_by_name.get(handle)
        if agent_id and self._agent_states.get(agent_id) is AgentState.RUNNING:
            return MentionStatus.RUNNING
        return None

    def clear(self) -> None:
        self._agent_states.clear()
        self._agent_ids_by_name.clear()
        self._status_maps.clear()
